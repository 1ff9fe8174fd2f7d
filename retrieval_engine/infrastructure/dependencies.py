"""FastAPI dependency injection — wires infrastructure to the application layer."""

import logging
from collections.abc import AsyncGenerator
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from retrieval_engine.application.interfaces import BlobStorage, ChunkRepository, EmbeddingProvider
from retrieval_engine.application.services import (
    DocumentService,
    EmbeddingService,
    IngestionService,
    JobQueueService,
    RetrievalService,
    SSEManager,
    TextChunker,
)
from retrieval_engine.config import Settings, get_settings
from retrieval_engine.domain.entities import Backoff, BackoffType, JobOptions
from retrieval_engine.infrastructure.database.repositories import (
    SQLAlchemyChunkRepository,
    SQLAlchemyDocumentRepository,
    SQLAlchemyJobRepository,
)
from retrieval_engine.infrastructure.database.session import get_db_session
from retrieval_engine.infrastructure.embeddings import (
    OpenRouterEmbeddingProvider,
    VertexEmbeddingProvider,
)
from retrieval_engine.infrastructure.extractors.multi_format_text_extractor import MultiFormatTextExtractor
from retrieval_engine.infrastructure.storage.gcs_blob_storage import GCSBlobStorage
from retrieval_engine.infrastructure.storage.local_file_storage import LocalFileStorage
from retrieval_engine.infrastructure.storage.scheme_routed_storage import SchemeRoutedBlobStorage

logger = logging.getLogger(__name__)


# ── Process-wide singletons ──────────────────────────────────────────

def build_embedding_provider(settings: Settings) -> EmbeddingProvider | None:
    """Build the configured embedding provider, or None if it cannot be built."""
    if not settings.embeddings_enabled:
        return None

    kind = settings.embedding_provider.strip().lower()
    try:
        if kind == "vertex":
            return VertexEmbeddingProvider(
                project_id=settings.gcp_project_id,
                location=settings.vertex_location,
                model=settings.embedding_model,
                access_token=settings.vertex_access_token,
                dimensions=settings.embedding_dimensions,
                timeout=settings.embedding_timeout_seconds,
            )
        if kind == "openrouter":
            return OpenRouterEmbeddingProvider(
                api_key=settings.openrouter_api_key,
                base_url=settings.openrouter_base_url,
                app_name=settings.openrouter_app_name,
                model=settings.embedding_model,
                dimensions=settings.embedding_dimensions,
                timeout=settings.embedding_timeout_seconds,
            )
    except ValueError as exc:
        logger.warning("Embedding provider '%s' is misconfigured: %s", kind, exc)
        return None

    logger.warning("Unknown embedding provider '%s'", settings.embedding_provider)
    return None


@lru_cache
def get_embedder() -> EmbeddingService:
    """The embedder, with its provider and enabled flag fixed at startup."""
    settings = get_settings()
    provider = build_embedding_provider(settings)
    return EmbeddingService(
        provider,
        enabled=settings.embeddings_enabled,
        dimensions=settings.embedding_dimensions,
    )


@lru_cache
def get_sse_manager() -> SSEManager:
    return SSEManager()


@lru_cache
def get_blob_storage() -> BlobStorage:
    """Local storage for new blobs; GCS locators resolve too when enabled."""
    settings = get_settings()
    local = LocalFileStorage(upload_dir=settings.upload_dir)
    if not settings.gcs_enabled:
        return local
    return SchemeRoutedBlobStorage(
        local,
        GCSBlobStorage(project_id=settings.gcp_project_id, bucket_name=settings.gcs_bucket),
    )


def build_job_options(settings: Settings) -> JobOptions:
    return JobOptions(
        attempts=settings.job_attempts,
        backoff=Backoff(type=BackoffType.EXPONENTIAL, delay_ms=settings.job_backoff_delay_ms),
    )


def build_retrieval_service(chunk_repository: ChunkRepository, settings: Settings) -> RetrievalService:
    return RetrievalService.default_chain(
        get_embedder(),
        chunk_repository,
        overfetch=settings.vector_search_overfetch,
        default_top_k=settings.retrieval_top_k,
        max_context_chars=settings.retrieval_max_context_chars,
    )


async def build_ingestion_service(session: AsyncSession) -> IngestionService:
    """Build an IngestionService bound to one session.

    Used as the JobWorker's service_factory so each job runs in its own
    transaction.
    """
    settings = get_settings()
    return IngestionService(
        document_repository=SQLAlchemyDocumentRepository(session),
        chunk_repository=SQLAlchemyChunkRepository(session),
        blob_storage=get_blob_storage(),
        text_extractor=MultiFormatTextExtractor(),
        embedder=get_embedder(),
        chunker=TextChunker(
            chunk_size=settings.chunk_size,
            overlap=settings.chunk_overlap,
            soft_boundary=settings.chunk_soft_boundary,
        ),
        batch_size=settings.ingestion_batch_size,
    )


# ── Request-scoped services ──────────────────────────────────────────

async def get_job_queue_service(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[JobQueueService, None]:
    """Provides a JobQueueService bound to the request session."""
    settings = get_settings()
    yield JobQueueService(
        SQLAlchemyJobRepository(session),
        default_options=build_job_options(settings),
    )


async def get_document_service(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[DocumentService, None]:
    """Provides a DocumentService with repositories, storage, queue and ranker wired up."""
    settings = get_settings()
    chunk_repository = SQLAlchemyChunkRepository(session)
    yield DocumentService(
        document_repository=SQLAlchemyDocumentRepository(session),
        chunk_repository=chunk_repository,
        blob_storage=get_blob_storage(),
        job_queue=JobQueueService(
            SQLAlchemyJobRepository(session),
            default_options=build_job_options(settings),
        ),
        retrieval_service=build_retrieval_service(chunk_repository, settings),
    )
