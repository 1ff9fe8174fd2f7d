from .blob_storage import BlobStorage, StoredBlob
from .chunk_repository import ChunkRepository
from .document_repository import DocumentRepository
from .embedding_provider import EmbeddingProvider
from .job_repository import JobRepository
from .text_extractor import TextExtractor

__all__ = [
    "BlobStorage",
    "StoredBlob",
    "ChunkRepository",
    "DocumentRepository",
    "EmbeddingProvider",
    "JobRepository",
    "TextExtractor",
]
