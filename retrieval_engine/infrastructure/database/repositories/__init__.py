from .document_repository import SQLAlchemyDocumentRepository
from .chunk_repository import SQLAlchemyChunkRepository
from .job_repository import SQLAlchemyJobRepository

__all__ = [
    "SQLAlchemyDocumentRepository",
    "SQLAlchemyChunkRepository",
    "SQLAlchemyJobRepository",
]
