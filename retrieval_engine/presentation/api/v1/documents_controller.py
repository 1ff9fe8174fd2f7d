"""Documents API controller — intake, status, chunks, search, reprocess and delete."""

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from retrieval_engine.application.schemas import (
    ChunkResponse,
    CreateBlobDocumentRequest,
    CreateTextDocumentRequest,
    DocumentCreatedResponse,
    DocumentResponse,
    DocumentStatusResponse,
    ReprocessAllResponse,
    ReprocessResponse,
    ScoredChunkResponse,
    SearchRequest,
    SearchResponse,
)
from retrieval_engine.application.services import DocumentService
from retrieval_engine.config import get_settings
from retrieval_engine.domain.entities import Chunk, Document, IngestionJob
from retrieval_engine.domain.exceptions import (
    DocumentNotReadyError,
    DocumentValidationError,
    EntityNotFoundError,
)
from retrieval_engine.infrastructure.dependencies import get_document_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["Documents"])


# ── Helpers ──────────────────────────────────────────────────────────

def _to_response(document: Document) -> DocumentResponse:
    return DocumentResponse(
        id=document.id,
        title=document.title,
        source_kind=document.source_kind.value,
        source_locator=document.source_locator,
        mime_type=document.mime_type,
        status=document.status.value,
        error_message=document.error_message,
        created_at=document.created_at,
        updated_at=document.updated_at,
    )


def _to_created(document: Document, job: IngestionJob) -> DocumentCreatedResponse:
    return DocumentCreatedResponse(
        document=_to_response(document),
        job_id=job.id,
        queue_name=job.queue_name,
    )


def _to_chunk(chunk: Chunk) -> ChunkResponse:
    return ChunkResponse(
        id=chunk.id,
        chunk_index=chunk.chunk_index,
        content=chunk.content,
        content_hash=chunk.content_hash,
        start_char=chunk.start_char,
        end_char=chunk.end_char,
        has_embedding=chunk.has_embedding,
    )


# ── Intake ───────────────────────────────────────────────────────────

@router.post("", response_model=DocumentCreatedResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_text_document(
    data: CreateTextDocumentRequest,
    service: DocumentService = Depends(get_document_service),
) -> DocumentCreatedResponse:
    """Accept inline text for ingestion."""
    try:
        document, job = await service.create_from_text(data.title, data.text)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _to_created(document, job)


@router.post("/upload", response_model=DocumentCreatedResponse, status_code=status.HTTP_202_ACCEPTED)
async def upload_document(
    file: UploadFile = File(...),
    title: str | None = Form(default=None),
    service: DocumentService = Depends(get_document_service),
) -> DocumentCreatedResponse:
    """Upload a file (PDF, DOCX, text) for ingestion."""
    settings = get_settings()
    content = await file.read()

    if len(content) > settings.max_upload_size_mb * 1024 * 1024:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.max_upload_size_mb} MB",
        )

    content_type = file.content_type
    if content_type == "application/octet-stream":
        content_type = None

    try:
        document, job = await service.create_from_upload(
            title, file.filename or "upload", content, mime_type=content_type
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _to_created(document, job)


@router.post("/from-blob", response_model=DocumentCreatedResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_blob_document(
    data: CreateBlobDocumentRequest,
    service: DocumentService = Depends(get_document_service),
) -> DocumentCreatedResponse:
    """Register an already stored blob for ingestion."""
    try:
        document, job = await service.create_from_blob(data.title, data.locator, data.mime_type)
    except (ValueError, DocumentValidationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _to_created(document, job)


# ── Queries ──────────────────────────────────────────────────────────

@router.get("", response_model=list[DocumentResponse])
async def list_documents(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    service: DocumentService = Depends(get_document_service),
) -> list[DocumentResponse]:
    documents = await service.list_documents(skip=skip, limit=limit)
    return [_to_response(d) for d in documents]


@router.get("/{document_id}", response_model=DocumentStatusResponse)
async def get_document_status(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> DocumentStatusResponse:
    """Current status, chunk count and error message of a document."""
    try:
        view = await service.get_document_status(document_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return DocumentStatusResponse(
        document_id=view.document_id,
        status=view.status.value,
        chunk_count=view.chunk_count,
        error_message=view.error_message,
    )


@router.get("/{document_id}/chunks", response_model=list[ChunkResponse])
async def list_chunks(
    document_id: str,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    service: DocumentService = Depends(get_document_service),
) -> list[ChunkResponse]:
    """A page of the document's chunks in original order."""
    try:
        chunks = await service.list_chunks(document_id, offset=offset, limit=limit)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return [_to_chunk(c) for c in chunks]


@router.post("/{document_id}/search", response_model=SearchResponse)
async def search_document(
    document_id: str,
    data: SearchRequest,
    service: DocumentService = Depends(get_document_service),
) -> SearchResponse:
    """Rank a ready document's chunks for a query."""
    try:
        ranked = await service.search(document_id, data.query, data.top_k)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except DocumentNotReadyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return SearchResponse(
        document_id=document_id,
        query=data.query,
        results=[
            ScoredChunkResponse(
                chunk_index=r.chunk_index,
                content=r.content,
                score=r.score,
                start_char=r.chunk.start_char,
                end_char=r.chunk.end_char,
            )
            for r in ranked
        ],
        total_chars=sum(len(r.content) for r in ranked),
    )


# ── Reprocessing ─────────────────────────────────────────────────────

@router.post("/reprocess-all", response_model=ReprocessAllResponse, status_code=status.HTTP_202_ACCEPTED)
async def reprocess_all_documents(
    service: DocumentService = Depends(get_document_service),
) -> ReprocessAllResponse:
    jobs = await service.reprocess_all()
    return ReprocessAllResponse(queued=len(jobs), job_ids=[j.id for j in jobs])


@router.post("/{document_id}/reprocess", response_model=ReprocessResponse, status_code=status.HTTP_202_ACCEPTED)
async def reprocess_document(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> ReprocessResponse:
    """Purge the document's chunks and queue it for ingestion again."""
    try:
        job = await service.request_reprocess(document_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return ReprocessResponse(document_id=document_id, job_id=job.id, status=job.status.value)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> None:
    deleted = await service.delete_document(document_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
