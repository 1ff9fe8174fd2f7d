"""Pydantic schemas for the jobs API."""

from typing import Any

from pydantic import BaseModel


class JobStateResponse(BaseModel):
    """Queue-level view of one job."""

    id: str
    queue_name: str
    state: str
    progress: float
    attempts_made: int
    failed_reason: str | None = None
    data: dict[str, Any] = {}
