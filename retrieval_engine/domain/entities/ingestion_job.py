"""Domain entity for ingestion jobs — database-backed job queue with retry/backoff."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Lifecycle states of a queued job."""

    WAITING = "waiting"
    ACTIVE = "active"
    DELAYED = "delayed"
    COMPLETED = "completed"
    FAILED = "failed"


class BackoffType(str, Enum):
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class Backoff:
    """Delay policy applied between attempts."""

    type: BackoffType = BackoffType.EXPONENTIAL
    delay_ms: int = 2000

    def delay_for(self, attempts_made: int) -> timedelta:
        """Delay before the next attempt, given how many attempts already ran."""
        if self.type == BackoffType.EXPONENTIAL:
            factor = 2 ** max(attempts_made - 1, 0)
        else:
            factor = 1
        return timedelta(milliseconds=self.delay_ms * factor)


@dataclass(frozen=True)
class JobOptions:
    """Retry policy for a job: bounded attempts with a backoff delay."""

    attempts: int = 3
    backoff: Backoff = field(default_factory=Backoff)


@dataclass
class IngestionJob:
    """A single unit of work in the background queue.

    One job processes one document. Jobs that fail with a transient error are
    re-scheduled (DELAYED) until their attempts are exhausted.
    """

    queue_name: str
    job_type: str
    payload: dict[str, Any] = field(default_factory=dict)
    id: str | None = None
    status: JobStatus = JobStatus.WAITING
    progress: float = 0.0
    attempts: int = 3
    attempts_made: int = 0
    backoff_type: BackoffType = BackoffType.EXPONENTIAL
    backoff_delay_ms: int = 2000
    failed_reason: str | None = None
    run_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def backoff(self) -> Backoff:
        return Backoff(type=self.backoff_type, delay_ms=self.backoff_delay_ms)

    @property
    def document_id(self) -> str | None:
        return self.payload.get("document_id")

    @property
    def has_attempts_left(self) -> bool:
        return self.attempts_made < self.attempts

    def mark_active(self) -> None:
        """Start a new attempt."""
        self.status = JobStatus.ACTIVE
        self.started_at = datetime.now(timezone.utc)
        self.progress = 0.0

    def update_progress(self, fraction: float) -> None:
        self.progress = min(max(fraction, 0.0), 1.0)

    def mark_completed(self) -> None:
        self.attempts_made += 1
        self.status = JobStatus.COMPLETED
        self.progress = 1.0
        self.failed_reason = None
        self.completed_at = datetime.now(timezone.utc)

    def record_failure(self, error: str, *, retryable: bool = True) -> None:
        """Count the failed attempt and either delay a retry or fail for good."""
        self.attempts_made += 1
        self.failed_reason = error
        if retryable and self.has_attempts_left:
            self.status = JobStatus.DELAYED
            self.run_at = datetime.now(timezone.utc) + self.backoff.delay_for(self.attempts_made)
        else:
            self.status = JobStatus.FAILED
            self.completed_at = datetime.now(timezone.utc)
