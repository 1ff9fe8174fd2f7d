"""Health check endpoint — no database dependency, always available."""

from fastapi import APIRouter

from retrieval_engine.config import get_settings
from retrieval_engine.infrastructure.dependencies import get_embedder

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    """Application health plus the active embedding mode."""
    settings = get_settings()
    embedder = get_embedder()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.app_env,
        "embeddings": "provider" if embedder.is_enabled() else "fallback",
    }
