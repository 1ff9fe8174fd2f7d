"""Domain entity for documents — the unit of ingestion and the owner of chunks."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

DEFAULT_FAILURE_MESSAGE = "Document processing failed"


def failure_message(message: str | None) -> str:
    """The error message stored with a FAILED document; never blank."""
    return (message or "").strip() or DEFAULT_FAILURE_MESSAGE


class DocumentStatus(str, Enum):
    """Lifecycle states of a document in the ingestion pipeline."""

    PROCESSING = "PROCESSING"
    READY = "READY"
    FAILED = "FAILED"


class SourceKind(str, Enum):
    """Where a document's raw content came from."""

    TEXT = "text"      # inline text, stored as a .txt blob
    UPLOAD = "upload"  # uploaded file
    BLOB = "blob"      # reference to an externally stored blob


@dataclass
class Document:
    """Core domain entity: a document whose text is chunked and embedded.

    A document exclusively owns its chunks. Reprocessing purges every chunk
    before the document re-enters PROCESSING.
    """

    source_kind: SourceKind
    mime_type: str
    title: str | None = None
    source_locator: str | None = None
    id: str | None = None
    status: DocumentStatus = DocumentStatus.PROCESSING
    error_message: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_ready(self) -> bool:
        return self.status == DocumentStatus.READY
