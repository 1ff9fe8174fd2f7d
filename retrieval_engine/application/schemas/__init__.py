from .documents import (
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
from .jobs import JobStateResponse

__all__ = [
    "ChunkResponse",
    "CreateBlobDocumentRequest",
    "CreateTextDocumentRequest",
    "DocumentCreatedResponse",
    "DocumentResponse",
    "DocumentStatusResponse",
    "ReprocessAllResponse",
    "ReprocessResponse",
    "ScoredChunkResponse",
    "SearchRequest",
    "SearchResponse",
    "JobStateResponse",
]
