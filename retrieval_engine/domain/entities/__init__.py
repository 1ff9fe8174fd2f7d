from .chunk import Chunk, ChunkDraft, ScoredChunk
from .document import Document, DocumentStatus, SourceKind
from .ingestion_job import Backoff, BackoffType, IngestionJob, JobOptions, JobStatus

__all__ = [
    "Chunk",
    "ChunkDraft",
    "ScoredChunk",
    "Document",
    "DocumentStatus",
    "SourceKind",
    "Backoff",
    "BackoffType",
    "IngestionJob",
    "JobOptions",
    "JobStatus",
]
