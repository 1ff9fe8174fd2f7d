"""Job worker — asyncio daemon that executes queued ingestion jobs."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from retrieval_engine.application.interfaces import DocumentRepository, JobRepository
from retrieval_engine.application.services.ingestion_service import IngestionService
from retrieval_engine.application.services.job_queue_service import (
    INGEST_DOCUMENT,
    INGESTION_QUEUE,
    REPROCESS_DOCUMENT,
)
from retrieval_engine.application.services.sse_manager import SSEManager
from retrieval_engine.domain.entities import DocumentStatus, IngestionJob, JobStatus
from retrieval_engine.domain.exceptions import DocumentValidationError, EntityNotFoundError

logger = logging.getLogger(__name__)

# Errors that can never succeed on retry
_PERMANENT_ERRORS = (EntityNotFoundError, DocumentValidationError, ValueError)

_DEFAULT_POLL_INTERVAL = 5.0
_DEFAULT_POLL_BATCH = 5
INTERRUPTED_REASON = "Interrupted before completion"


class JobWorker:
    """Asyncio daemon that polls the ingestion_jobs table and runs due jobs.

    Runs as an asyncio.Task inside FastAPI's lifespan. Each job gets its own
    database session: progress is committed after every stored batch, and a
    failure is rolled back before the document is marked FAILED in a fresh
    transaction. Job updates are broadcast through the SSEManager.
    """

    def __init__(
        self,
        session_factory: Callable[[], Any],
        job_repository_factory: Callable[[Any], JobRepository],
        document_repository_factory: Callable[[Any], DocumentRepository],
        service_factory: Callable[[Any], Awaitable[IngestionService]],
        sse_manager: SSEManager | None = None,
        *,
        queue_name: str = INGESTION_QUEUE,
        poll_interval: float = _DEFAULT_POLL_INTERVAL,
        poll_batch: int = _DEFAULT_POLL_BATCH,
    ) -> None:
        self._session_factory = session_factory
        self._job_repo_factory = job_repository_factory
        self._document_repo_factory = document_repository_factory
        self._service_factory = service_factory
        self._sse = sse_manager
        self._queue_name = queue_name
        self._poll_interval = poll_interval
        self._poll_batch = poll_batch
        self._running = False
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        await self.recover_interrupted()
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("JobWorker started (queue=%s, poll=%.1fs)", self._queue_name, self._poll_interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("JobWorker stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("JobWorker polling error")

            await asyncio.sleep(self._poll_interval)

    async def poll_once(self, now: datetime | None = None) -> int:
        """Run every job that is due. Returns the number of jobs processed."""
        now = now or datetime.now(timezone.utc)

        async with self._session_factory() as session:
            repo = self._job_repo_factory(session)
            jobs = await repo.get_due(now, limit=self._poll_batch)
            await session.commit()

        jobs = [job for job in jobs if job.queue_name == self._queue_name]
        for job in jobs:
            if not self._running and self._task is not None:
                break
            await self.process_job(job)
        return len(jobs)

    async def recover_interrupted(self) -> int:
        """Reschedule jobs left ACTIVE by a previous process.

        The interrupted attempt counts as a failed one, so a job that keeps
        crashing the worker still runs out of attempts. Returns the number
        of jobs recovered.
        """
        async with self._session_factory() as session:
            repo = self._job_repo_factory(session)
            jobs = [
                job for job in await repo.get_active()
                if job.queue_name == self._queue_name
            ]
            for job in jobs:
                job.record_failure(INTERRUPTED_REASON)
                await repo.update(job)
            await session.commit()

        for job in jobs:
            logger.warning("Recovered interrupted job %s (now %s)", job.id, job.status.value)
            if job.status == JobStatus.FAILED:
                await self._record_document_failure(job, RuntimeError(INTERRUPTED_REASON))
            await self._broadcast(job)
        return len(jobs)

    async def process_job(self, job: IngestionJob) -> IngestionJob:
        """Run one attempt of a job and persist its outcome."""
        logger.info(
            "Processing job %s (%s) attempt %d/%d",
            job.id, job.job_type, job.attempts_made + 1, job.attempts,
        )

        async with self._session_factory() as session:
            repo = self._job_repo_factory(session)

            try:
                job.mark_active()
                await repo.update(job)
                await session.commit()
                await self._broadcast(job)

                service = await self._service_factory(session)

                async def report_progress(fraction: float) -> None:
                    job.update_progress(fraction)
                    await repo.update(job)
                    await session.commit()
                    await self._broadcast(job)

                await self._dispatch(job, service, report_progress)

                job.mark_completed()
                await repo.update(job)
                await session.commit()
                await self._broadcast(job)

            except Exception as e:
                await session.rollback()
                logger.exception("Job %s failed: %s", job.id, e)

                await self._record_document_failure(job, e)

                job.record_failure(
                    str(e) or type(e).__name__,
                    retryable=not isinstance(e, _PERMANENT_ERRORS),
                )
                await repo.update(job)
                await session.commit()
                await self._broadcast(job)

                if job.status == JobStatus.DELAYED:
                    logger.info("Job %s scheduled for retry at %s", job.id, job.run_at.isoformat())

        return job

    async def _dispatch(
        self,
        job: IngestionJob,
        service: IngestionService,
        progress: Callable[[float], Awaitable[None]],
    ) -> None:
        document_id = job.document_id
        if not document_id:
            raise ValueError(f"Job {job.id} has no document_id in its payload")

        if job.job_type == INGEST_DOCUMENT:
            await service.ingest(document_id, progress)
        elif job.job_type == REPROCESS_DOCUMENT:
            await service.reprocess(document_id, progress)
        else:
            raise ValueError(f"Unknown job type: {job.job_type}")

    async def _record_document_failure(self, job: IngestionJob, error: Exception) -> None:
        """Mark the job's document FAILED in its own transaction."""
        document_id = job.document_id
        if not document_id or isinstance(error, EntityNotFoundError):
            return

        async with self._session_factory() as session:
            documents = self._document_repo_factory(session)
            try:
                await documents.update_status(
                    document_id, DocumentStatus.FAILED, error_message=str(error)
                )
                await session.commit()
            except EntityNotFoundError:
                await session.rollback()
                logger.warning("Document %s vanished before it could be marked FAILED", document_id)

    async def _broadcast(self, job: IngestionJob) -> None:
        if self._sse is None:
            return
        await self._sse.broadcast(
            "job_update",
            {
                "id": job.id,
                "queue_name": job.queue_name,
                "job_type": job.job_type,
                "document_id": job.document_id,
                "status": job.status.value,
                "progress": job.progress,
                "attempts_made": job.attempts_made,
                "failed_reason": job.failed_reason,
            },
        )
