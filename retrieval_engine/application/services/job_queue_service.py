"""Job queue service — database-backed queue for background ingestion work."""

import logging
from dataclasses import dataclass, field
from typing import Any

from retrieval_engine.application.interfaces import JobRepository
from retrieval_engine.domain.entities import IngestionJob, JobOptions, JobStatus

logger = logging.getLogger(__name__)

INGESTION_QUEUE = "document-ingestion"
INGEST_DOCUMENT = "ingest-document"
REPROCESS_DOCUMENT = "reprocess-document"


@dataclass
class JobState:
    """Snapshot of a job as reported to collaborators."""

    id: str
    state: JobStatus
    progress: float
    attempts_made: int
    failed_reason: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


class JobQueueService:
    """Enqueues jobs and reports their state. Execution is done by JobWorker."""

    def __init__(
        self,
        job_repository: JobRepository,
        *,
        queue_name: str = INGESTION_QUEUE,
        default_options: JobOptions | None = None,
    ):
        self._repo = job_repository
        self._queue_name = queue_name
        self._default_options = default_options or JobOptions()

    @property
    def queue_name(self) -> str:
        return self._queue_name

    async def enqueue(
        self,
        job_type: str,
        payload: dict[str, Any],
        options: JobOptions | None = None,
    ) -> IngestionJob:
        """Add a job to the queue; it becomes due immediately."""
        opts = options or self._default_options
        job = IngestionJob(
            queue_name=self._queue_name,
            job_type=job_type,
            payload=dict(payload),
            attempts=opts.attempts,
            backoff_type=opts.backoff.type,
            backoff_delay_ms=opts.backoff.delay_ms,
        )
        job = await self._repo.create(job)
        logger.info("Enqueued %s job %s on %s: %s", job_type, job.id, self._queue_name, payload)
        return job

    async def update_progress(self, job: IngestionJob, fraction: float) -> IngestionJob:
        job.update_progress(fraction)
        return await self._repo.update(job)

    async def get_job_state(self, queue_name: str, job_id: str) -> JobState | None:
        """State of a job, or None if the queue holds no such job."""
        job = await self._repo.get_by_id(job_id)
        if job is None or job.queue_name != queue_name:
            return None
        return JobState(
            id=job.id,
            state=job.status,
            progress=job.progress,
            attempts_made=job.attempts_made,
            failed_reason=job.failed_reason,
            data=dict(job.payload),
        )
