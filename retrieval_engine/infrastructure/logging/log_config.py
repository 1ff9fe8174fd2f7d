"""Centralized logging configuration.

Applies per-category log levels from Settings so noisy loggers (SQL
statements, outbound HTTP) can be silenced without touching the pipeline.

Usage:
    from retrieval_engine.infrastructure.logging.log_config import setup_logging
    setup_logging()   # once, in the FastAPI lifespan
"""

import logging
import sys

from retrieval_engine.config import Settings, get_settings

# Settings field -> logger names it controls
_CATEGORY_MAP: dict[str, list[str]] = {
    "log_level_sql": [
        "sqlalchemy.engine",
        "sqlalchemy.pool",
        "aiosqlite",
    ],
    "log_level_http": [
        "httpx",
        "httpcore",
        "urllib3",
        "google.auth",
        "google.cloud.storage",
    ],
    "log_level_uvicorn": [
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
    ],
    "log_level_pipeline": [
        "IngestionService",
        "retrieval_engine.application.services.ingestion_service",
        "retrieval_engine.application.services.job_worker",
    ],
    "log_level_embeddings": [
        "retrieval_engine.infrastructure.embeddings",
        "retrieval_engine.application.services.embedding_service",
    ],
}


def setup_logging(settings: Settings | None = None) -> None:
    """Configure Python logging levels from application settings."""
    settings = settings or get_settings()

    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))

    # uvicorn normally installs a handler; tests and scripts may not
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)-8s %(name)s: %(message)s"))
        root.addHandler(handler)

    for settings_field, logger_names in _CATEGORY_MAP.items():
        level = _parse_level(getattr(settings, settings_field, "INFO"))
        for name in logger_names:
            logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).debug(
        "Logging configured: root=%s, sql=%s, http=%s, uvicorn=%s, pipeline=%s, embeddings=%s",
        settings.log_level,
        settings.log_level_sql,
        settings.log_level_http,
        settings.log_level_uvicorn,
        settings.log_level_pipeline,
        settings.log_level_embeddings,
    )


def _parse_level(raw: str) -> int:
    """Level name to logging constant, defaulting to INFO."""
    numeric = getattr(logging, raw.upper(), None)
    if isinstance(numeric, int):
        return numeric
    return logging.INFO
