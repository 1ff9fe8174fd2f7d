"""SQLAlchemy implementation of the JobRepository."""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from retrieval_engine.application.interfaces import JobRepository
from retrieval_engine.domain.entities import BackoffType, IngestionJob, JobStatus
from retrieval_engine.domain.exceptions import EntityNotFoundError
from retrieval_engine.infrastructure.database.models.job_models import IngestionJobModel

_DUE_STATUSES = (JobStatus.WAITING.value, JobStatus.DELAYED.value)


class SQLAlchemyJobRepository(JobRepository):
    """Concrete ingestion job repository backed by SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, job_id: str) -> IngestionJob | None:
        result = await self._session.execute(
            select(IngestionJobModel).where(IngestionJobModel.id == job_id)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def get_due(self, now: datetime, limit: int = 10) -> list[IngestionJob]:
        result = await self._session.execute(
            select(IngestionJobModel)
            .where(IngestionJobModel.status.in_(_DUE_STATUSES))
            .where(IngestionJobModel.run_at <= now)
            .order_by(IngestionJobModel.run_at.asc(), IngestionJobModel.created_at.asc())
            .limit(limit)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def get_active(self, limit: int = 100) -> list[IngestionJob]:
        result = await self._session.execute(
            select(IngestionJobModel)
            .where(IngestionJobModel.status == JobStatus.ACTIVE.value)
            .order_by(IngestionJobModel.started_at.asc(), IngestionJobModel.created_at.asc())
            .limit(limit)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def create(self, job: IngestionJob) -> IngestionJob:
        if not job.id:
            job.id = str(uuid.uuid4())

        model = IngestionJobModel(
            id=job.id,
            queue_name=job.queue_name,
            job_type=job.job_type,
            payload=job.payload,
            status=job.status.value,
            progress=job.progress,
            attempts=job.attempts,
            attempts_made=job.attempts_made,
            backoff_type=job.backoff_type.value,
            backoff_delay_ms=job.backoff_delay_ms,
            failed_reason=job.failed_reason,
            run_at=job.run_at,
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )
        self._session.add(model)
        await self._session.flush()
        return job

    async def update(self, job: IngestionJob) -> IngestionJob:
        result = await self._session.execute(
            select(IngestionJobModel).where(IngestionJobModel.id == job.id)
        )
        model = result.scalar_one_or_none()
        if model is None:
            raise EntityNotFoundError("IngestionJob", job.id)

        model.status = job.status.value
        model.progress = job.progress
        model.attempts_made = job.attempts_made
        model.failed_reason = job.failed_reason
        model.run_at = job.run_at
        model.started_at = job.started_at
        model.completed_at = job.completed_at
        await self._session.flush()
        return job

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: IngestionJobModel) -> IngestionJob:
        return IngestionJob(
            id=model.id,
            queue_name=model.queue_name,
            job_type=model.job_type,
            payload=dict(model.payload or {}),
            status=JobStatus(model.status),
            progress=model.progress,
            attempts=model.attempts,
            attempts_made=model.attempts_made,
            backoff_type=BackoffType(model.backoff_type),
            backoff_delay_ms=model.backoff_delay_ms,
            failed_reason=model.failed_reason,
            run_at=model.run_at,
            created_at=model.created_at,
            started_at=model.started_at,
            completed_at=model.completed_at,
        )
