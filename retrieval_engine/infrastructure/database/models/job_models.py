"""SQLAlchemy ORM model for queued ingestion jobs."""

import uuid

from sqlalchemy import JSON, Column, DateTime, Float, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB

from retrieval_engine.infrastructure.database.base import Base


def _generate_uuid() -> str:
    return str(uuid.uuid4())


class IngestionJobModel(Base):
    """A single unit of work in the background ingestion queue."""

    __tablename__ = "ingestion_jobs"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    queue_name = Column(String(100), nullable=False, index=True)
    job_type = Column(String(50), nullable=False)
    payload = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
    status = Column(String(20), nullable=False, default="waiting", index=True)
    progress = Column(Float, nullable=False, default=0.0)
    attempts = Column(Integer, nullable=False, default=3)
    attempts_made = Column(Integer, nullable=False, default=0)
    backoff_type = Column(String(20), nullable=False, default="exponential")
    backoff_delay_ms = Column(Integer, nullable=False, default=2000)
    failed_reason = Column(Text, nullable=True)
    run_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_jobs_status_run_at", "status", "run_at"),
    )
