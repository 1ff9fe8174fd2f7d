"""Pydantic schemas for the documents API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CreateTextDocumentRequest(BaseModel):
    title: str | None = Field(default=None, max_length=500)
    text: str = Field(..., min_length=1)


class CreateBlobDocumentRequest(BaseModel):
    title: str | None = Field(default=None, max_length=500)
    locator: str = Field(..., min_length=1, max_length=2000)
    mime_type: str = Field(..., min_length=1, max_length=255)


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    top_k: int | None = Field(default=None, ge=1, le=100)


class DocumentResponse(BaseModel):
    """A document record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str | None = None
    source_kind: str
    source_locator: str | None = None
    mime_type: str
    status: str
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class DocumentStatusResponse(BaseModel):
    document_id: str
    status: str
    chunk_count: int
    error_message: str | None = None


class DocumentCreatedResponse(BaseModel):
    """Returned when a document is accepted for ingestion."""

    document: DocumentResponse
    job_id: str
    queue_name: str


class ChunkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    chunk_index: int
    content: str
    content_hash: str
    start_char: int
    end_char: int
    has_embedding: bool = False


class ScoredChunkResponse(BaseModel):
    chunk_index: int
    content: str
    score: float
    start_char: int
    end_char: int


class SearchResponse(BaseModel):
    document_id: str
    query: str
    results: list[ScoredChunkResponse]
    total_chars: int


class ReprocessResponse(BaseModel):
    document_id: str
    job_id: str
    status: str


class ReprocessAllResponse(BaseModel):
    queued: int
    job_ids: list[str]
