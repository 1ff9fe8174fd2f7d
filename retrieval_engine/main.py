"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from retrieval_engine.application.services import JobWorker
from retrieval_engine.config import get_settings
from retrieval_engine.infrastructure.database import Base, engine
from retrieval_engine.infrastructure.database.repositories import (
    SQLAlchemyDocumentRepository,
    SQLAlchemyJobRepository,
)
from retrieval_engine.infrastructure.database.session import async_session_factory
from retrieval_engine.infrastructure.dependencies import (
    build_ingestion_service,
    get_embedder,
    get_sse_manager,
)
from retrieval_engine.infrastructure.logging.log_config import setup_logging
from retrieval_engine.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)


async def _create_schema() -> None:
    """Create all tables; on PostgreSQL enable the pgvector extension first."""
    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan — create tables, start the job worker."""
    settings = get_settings()
    setup_logging()

    # 1. Schema
    await _create_schema()

    # 2. Blob storage directory
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)

    # 3. Embedder (provider + enabled flag fixed once here)
    embedder = get_embedder()
    logger.info(
        "Embeddings: %s (dims=%d)",
        "provider" if embedder.is_enabled() else "hash fallback",
        embedder.dimensions,
    )

    # 4. Background job worker
    worker = JobWorker(
        session_factory=async_session_factory,
        job_repository_factory=SQLAlchemyJobRepository,
        document_repository_factory=SQLAlchemyDocumentRepository,
        service_factory=build_ingestion_service,
        sse_manager=get_sse_manager(),
        poll_interval=settings.job_poll_interval,
        poll_batch=settings.job_poll_batch,
    )
    await worker.start()

    yield

    # Shutdown
    await worker.stop()
    await get_sse_manager().shutdown()
    await engine.dispose()


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "retrieval_engine.main:app",
        host="0.0.0.0",
        port=8020,
        reload=True,
    )
