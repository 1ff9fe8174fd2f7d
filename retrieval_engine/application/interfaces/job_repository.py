"""Abstract repository interface (port) for queued ingestion jobs."""

from abc import ABC, abstractmethod
from datetime import datetime

from retrieval_engine.domain.entities.ingestion_job import IngestionJob


class JobRepository(ABC):
    """Port for job persistence — implemented in the infrastructure layer."""

    @abstractmethod
    async def get_by_id(self, job_id: str) -> IngestionJob | None:
        """Retrieve a single job by ID."""
        ...

    @abstractmethod
    async def get_due(self, now: datetime, limit: int = 10) -> list[IngestionJob]:
        """Retrieve waiting or delayed jobs whose run_at has passed (FIFO)."""
        ...

    @abstractmethod
    async def get_active(self, limit: int = 100) -> list[IngestionJob]:
        """Retrieve jobs left ACTIVE, oldest start first."""
        ...

    @abstractmethod
    async def create(self, job: IngestionJob) -> IngestionJob:
        """Persist a new job and return it with the generated ID."""
        ...

    @abstractmethod
    async def update(self, job: IngestionJob) -> IngestionJob:
        """Update an existing job."""
        ...
