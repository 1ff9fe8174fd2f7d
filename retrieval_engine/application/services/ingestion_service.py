"""Ingestion service — turns one document's source blob into stored, embedded chunks.

Pipeline: Download → Extract → Chunk → Purge old chunks → (Embed → Store) per batch → READY

Validation failures (no usable text) end the document in FAILED and return
normally so the job is not retried. Every other error marks the document
FAILED and propagates so the job queue's retry policy can act.
"""

import logging
import mimetypes
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from retrieval_engine.application.interfaces import (
    BlobStorage,
    ChunkRepository,
    DocumentRepository,
    TextExtractor,
)
from retrieval_engine.application.services.chunker import TextChunker
from retrieval_engine.application.services.embedding_service import EmbeddingService
from retrieval_engine.domain.entities import Chunk, Document, DocumentStatus
from retrieval_engine.domain.exceptions import (
    DocumentValidationError,
    EntityNotFoundError,
)
from retrieval_engine.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("IngestionService")

ProgressCallback = Callable[[float], Awaitable[None]]

_DEFAULT_BATCH_SIZE = 20
_GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}
NO_CHUNKS_MESSAGE = "No extractable text: the document produced no chunks"


@dataclass
class IngestionResult:
    """Outcome of a successful ingestion."""

    document_id: str
    chunk_count: int
    status: DocumentStatus = DocumentStatus.READY


class IngestionService:
    """Application service that runs the ingestion state machine for one document."""

    def __init__(
        self,
        document_repository: DocumentRepository,
        chunk_repository: ChunkRepository,
        blob_storage: BlobStorage,
        text_extractor: TextExtractor,
        embedder: EmbeddingService,
        chunker: TextChunker | None = None,
        *,
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._documents = document_repository
        self._chunks = chunk_repository
        self._storage = blob_storage
        self._extractor = text_extractor
        self._embedder = embedder
        self._chunker = chunker or TextChunker()
        self._batch_size = batch_size

    async def reprocess(
        self, document_id: str, progress: ProgressCallback | None = None
    ) -> IngestionResult | None:
        """Purge a document's chunks, then run the full ingestion again."""
        deleted = await self._chunks.delete_by_document(document_id)
        plog.detail("Purged chunks before reprocessing", document_id=document_id, deleted=deleted)
        return await self.ingest(document_id, progress)

    async def ingest(
        self, document_id: str, progress: ProgressCallback | None = None
    ) -> IngestionResult | None:
        """Ingest a document.

        Args:
            document_id: The document to process.
            progress: Awaited with the processed fraction after each stored batch.

        Returns:
            IngestionResult on success, ``None`` when the document failed validation.

        Raises:
            EntityNotFoundError: the document does not exist.
            Exception: any transient failure, after the document is marked FAILED.
        """
        document = await self._documents.get_by_id(document_id)
        if document is None:
            raise EntityNotFoundError("Document", document_id)

        plog.separator(f"Ingesting: {document.title or document_id}")
        await self._documents.update_status(document_id, DocumentStatus.PROCESSING)

        try:
            return await self._run_pipeline(document, progress)
        except DocumentValidationError as exc:
            plog.step_error(PipelineStage.ERROR, f"Validation failed for {document_id}", error=exc)
            await self._documents.update_status(
                document_id, DocumentStatus.FAILED, error_message=str(exc)
            )
            return None
        except Exception as exc:
            plog.step_error(PipelineStage.ERROR, f"Ingestion failed for {document_id}", error=exc)
            await self._mark_failed_quietly(document_id, str(exc))
            raise

    async def _run_pipeline(
        self, document: Document, progress: ProgressCallback | None
    ) -> IngestionResult:
        document_id = document.id
        mime_type = _resolve_mime_type(document)

        # ── Download ─────────────────────────────────────────────────
        if not document.source_locator:
            raise DocumentValidationError(f"Document '{document_id}' has no source to ingest")
        with plog.timed_step(PipelineStage.DOWNLOAD, "Downloading source", locator=document.source_locator):
            content = await self._storage.download(document.source_locator)

        # ── Extract ──────────────────────────────────────────────────
        with plog.timed_step(PipelineStage.EXTRACT, "Extracting text", mime_type=mime_type):
            text = await self._extractor.extract(content, mime_type)

        # ── Chunk ────────────────────────────────────────────────────
        drafts = self._chunker.chunk(text)
        if not drafts:
            raise DocumentValidationError(NO_CHUNKS_MESSAGE)
        plog.step_complete(PipelineStage.CHUNK, f"Split into {len(drafts)} chunks", chars=len(text))

        # ── Purge ────────────────────────────────────────────────────
        await self._chunks.delete_by_document(document_id)

        # ── Embed + store, one batch at a time ───────────────────────
        total = len(drafts)
        processed = 0
        for batch_start in range(0, total, self._batch_size):
            batch = drafts[batch_start:batch_start + self._batch_size]
            batch_no = batch_start // self._batch_size + 1

            with plog.timed_step(PipelineStage.EMBED, f"Embedding batch {batch_no}", chunks=len(batch)):
                embeddings = await self._embedder.embed_batch([draft.content for draft in batch])
            chunks = [
                Chunk.from_draft(document_id, draft, embedding)
                for draft, embedding in zip(batch, embeddings)
            ]
            with plog.timed_step(PipelineStage.STORE, f"Storing batch {batch_no}", chunks=len(batch)):
                await self._chunks.store_chunks(chunks)

            processed += len(batch)
            plog.detail("Progress", processed=f"{processed}/{total}")
            if progress is not None:
                await progress(processed / total)

        # ── Ready ────────────────────────────────────────────────────
        await self._documents.update_status(
            document_id, DocumentStatus.READY, error_message=None, mime_type=mime_type
        )
        plog.step_complete(
            PipelineStage.COMPLETE,
            "Document ready",
            document_id=document_id,
            chunks=total,
            embeddings="provider" if self._embedder.is_enabled() else "fallback",
        )
        return IngestionResult(document_id=document_id, chunk_count=total)

    async def _mark_failed_quietly(self, document_id: str, message: str) -> None:
        """Record FAILED without masking the original error."""
        try:
            await self._documents.update_status(
                document_id, DocumentStatus.FAILED, error_message=message
            )
        except Exception:
            logger.exception("Could not mark document %s as FAILED", document_id)


def _resolve_mime_type(document: Document) -> str:
    """The document's MIME type, guessed from its locator when missing or generic."""
    mime_type = (document.mime_type or "").split(";")[0].strip().lower()
    if mime_type in _GENERIC_MIME_TYPES and document.source_locator:
        guessed, _ = mimetypes.guess_type(document.source_locator)
        if guessed:
            return guessed
    return mime_type or "application/octet-stream"
