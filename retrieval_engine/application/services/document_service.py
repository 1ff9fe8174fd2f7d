"""Document service — intake, status, chunk listing, search and deletion."""

import logging
import re
from dataclasses import dataclass

from retrieval_engine.application.interfaces import (
    BlobStorage,
    ChunkRepository,
    DocumentRepository,
)
from retrieval_engine.application.services.job_queue_service import (
    INGEST_DOCUMENT,
    REPROCESS_DOCUMENT,
    JobQueueService,
)
from retrieval_engine.application.services.retrieval_service import RetrievalService
from retrieval_engine.domain.entities import (
    Chunk,
    Document,
    DocumentStatus,
    IngestionJob,
    ScoredChunk,
    SourceKind,
)
from retrieval_engine.domain.exceptions import (
    DocumentNotReadyError,
    EntityNotFoundError,
    UnsupportedLocatorError,
)

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_PAGE_SIZE = 50
_TEXT_MIME_TYPE = "text/plain"
_SAFE_NAME = re.compile(r"[^a-zA-Z0-9_-]+")

# Sources whose blob was written by this service and is deleted with the document
_OWNED_SOURCES = {SourceKind.TEXT, SourceKind.UPLOAD}


@dataclass
class DocumentStatusView:
    """What collaborators see when polling a document."""

    document_id: str
    status: DocumentStatus
    chunk_count: int
    error_message: str | None = None


class DocumentService:
    """Application service exposing the document operations used by the API."""

    def __init__(
        self,
        document_repository: DocumentRepository,
        chunk_repository: ChunkRepository,
        blob_storage: BlobStorage,
        job_queue: JobQueueService,
        retrieval_service: RetrievalService,
    ):
        self._documents = document_repository
        self._chunks = chunk_repository
        self._storage = blob_storage
        self._queue = job_queue
        self._retrieval = retrieval_service

    # ── Intake ───────────────────────────────────────────────────────

    async def create_from_text(
        self, title: str | None, text: str
    ) -> tuple[Document, IngestionJob]:
        """Store inline text as a .txt blob and queue it for ingestion."""
        if not text or not text.strip():
            raise ValueError("Text must not be empty")

        filename = f"{_safe_stem(title)}.txt"
        stored = await self._storage.store(text.encode("utf-8"), filename)
        document = Document(
            source_kind=SourceKind.TEXT,
            mime_type=_TEXT_MIME_TYPE,
            title=title,
            source_locator=stored.locator,
        )
        return await self._create_and_enqueue(document)

    async def create_from_upload(
        self,
        title: str | None,
        filename: str,
        content: bytes,
        mime_type: str | None = None,
    ) -> tuple[Document, IngestionJob]:
        """Store an uploaded file and queue it for ingestion."""
        if not content:
            raise ValueError("Uploaded file is empty")

        stored = await self._storage.store(content, filename)
        document = Document(
            source_kind=SourceKind.UPLOAD,
            mime_type=mime_type or stored.mime_type,
            title=title or filename,
            source_locator=stored.locator,
        )
        return await self._create_and_enqueue(document)

    async def create_from_blob(
        self, title: str | None, locator: str, mime_type: str
    ) -> tuple[Document, IngestionJob]:
        """Register a document for an existing blob and queue it for ingestion."""
        if not locator or not locator.strip():
            raise ValueError("Blob locator must not be empty")
        locator = locator.strip()
        if not self._storage.supports(locator):
            raise UnsupportedLocatorError(locator)

        document = Document(
            source_kind=SourceKind.BLOB,
            mime_type=mime_type,
            title=title,
            source_locator=locator,
        )
        return await self._create_and_enqueue(document)

    async def _create_and_enqueue(self, document: Document) -> tuple[Document, IngestionJob]:
        document = await self._documents.create(document)
        job = await self._queue.enqueue(INGEST_DOCUMENT, {"document_id": document.id})
        logger.info(
            "Created %s document %s (job %s)", document.source_kind.value, document.id, job.id
        )
        return document, job

    # ── Reprocessing ─────────────────────────────────────────────────

    async def request_reprocess(self, document_id: str) -> IngestionJob:
        """Purge a document's chunks, reset it to PROCESSING and queue a reprocess job."""
        document = await self._get_or_raise(document_id)

        deleted = await self._chunks.delete_by_document(document.id)
        await self._documents.update_status(document.id, DocumentStatus.PROCESSING)
        job = await self._queue.enqueue(REPROCESS_DOCUMENT, {"document_id": document.id})

        logger.info("Reprocess requested for %s (purged %d chunks, job %s)", document.id, deleted, job.id)
        return job

    async def reprocess_all(self, batch_size: int = 100) -> list[IngestionJob]:
        """Queue a reprocess for every stored document."""
        jobs: list[IngestionJob] = []
        skip = 0
        while True:
            documents = await self._documents.list_all(skip=skip, limit=batch_size)
            if not documents:
                break

            for document in documents:
                try:
                    jobs.append(await self.request_reprocess(document.id))
                except EntityNotFoundError:
                    logger.warning("Document %s disappeared during reprocess-all", document.id)

            if len(documents) < batch_size:
                break
            skip += batch_size

        logger.info("Reprocess-all queued %d jobs", len(jobs))
        return jobs

    # ── Queries ──────────────────────────────────────────────────────

    async def get_document(self, document_id: str) -> Document:
        return await self._get_or_raise(document_id)

    async def list_documents(self, skip: int = 0, limit: int = 100) -> list[Document]:
        return await self._documents.list_all(skip=skip, limit=limit)

    async def get_document_status(self, document_id: str) -> DocumentStatusView:
        document = await self._get_or_raise(document_id)
        chunk_count = await self._chunks.count_by_document(document.id)
        return DocumentStatusView(
            document_id=document.id,
            status=document.status,
            chunk_count=chunk_count,
            error_message=document.error_message,
        )

    async def list_chunks(
        self,
        document_id: str,
        offset: int = 0,
        limit: int = DEFAULT_CHUNK_PAGE_SIZE,
    ) -> list[Chunk]:
        """A page of a document's chunks in chunk_index order."""
        if offset < 0 or limit < 0:
            raise ValueError("offset and limit must not be negative")
        document = await self._get_or_raise(document_id)
        return await self._chunks.list_by_document(document.id, offset=offset, limit=limit)

    async def search(
        self, document_id: str, query: str, top_k: int | None = None
    ) -> list[ScoredChunk]:
        """Rank a READY document's chunks for a query."""
        if not query or not query.strip():
            raise ValueError("Query must not be empty")

        document = await self._get_or_raise(document_id)
        if not document.is_ready:
            raise DocumentNotReadyError(document.id, document.status.value)

        chunks = await self._chunks.list_by_document(document.id)
        return await self._retrieval.rank(query, chunks, top_k)

    # ── Deletion ─────────────────────────────────────────────────────

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document with its chunks and, when owned, its blob.

        Returns False if the document does not exist.
        """
        document = await self._documents.get_by_id(document_id)
        if document is None:
            return False

        deleted_chunks = await self._chunks.delete_by_document(document.id)
        await self._documents.delete(document.id)

        if document.source_kind in _OWNED_SOURCES and document.source_locator:
            await self._storage.delete(document.source_locator)

        logger.info("Deleted document %s (%d chunks)", document.id, deleted_chunks)
        return True

    async def _get_or_raise(self, document_id: str) -> Document:
        document = await self._documents.get_by_id(document_id)
        if document is None:
            raise EntityNotFoundError("Document", document_id)
        return document


def _safe_stem(title: str | None) -> str:
    stem = _SAFE_NAME.sub("-", (title or "").strip()).strip("-")
    return stem[:80] or "document"
