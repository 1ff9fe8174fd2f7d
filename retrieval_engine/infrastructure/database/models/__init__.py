from .document_models import DocumentModel
from .chunk_models import ChunkModel
from .job_models import IngestionJobModel

__all__ = [
    "DocumentModel",
    "ChunkModel",
    "IngestionJobModel",
]
