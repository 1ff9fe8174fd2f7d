from .chunker import TextChunker
from .embedding_service import EmbeddingService, fallback_embedding
from .retrieval_service import (
    CosineSimilarityStrategy,
    KeywordOverlapStrategy,
    RetrievalService,
    RetrievalStrategy,
    StoreVectorSearchStrategy,
)
from .ingestion_service import IngestionResult, IngestionService
from .job_queue_service import JobQueueService, JobState
from .sse_manager import SSEManager
from .job_worker import JobWorker
from .document_service import DocumentService, DocumentStatusView

__all__ = [
    "TextChunker",
    "EmbeddingService",
    "fallback_embedding",
    "CosineSimilarityStrategy",
    "KeywordOverlapStrategy",
    "RetrievalService",
    "RetrievalStrategy",
    "StoreVectorSearchStrategy",
    "IngestionResult",
    "IngestionService",
    "JobQueueService",
    "JobState",
    "SSEManager",
    "JobWorker",
    "DocumentService",
    "DocumentStatusView",
]
