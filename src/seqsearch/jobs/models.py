"""Job domain models.

Defines the records the job store persists:
- Job: an admitted, not-yet-resolved unit of work (``jobs`` table)
- Result: the terminal payload of a completed or failed job (``results`` table)
- JobStatus / JobState: stored status vs. the status view returned to clients

Lifecycle::

    RUNNING → COMPLETED | FAILED   (Result written, Job row deleted)
    RUNNING → CANCELLED            (row kept, terminal)
    RUNNING → TIMED_OUT            (row kept, terminal)

Completed and failed are not stored job statuses: a finished job only leaves
its Result behind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Status stored on a job row."""

    RUNNING = "running"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


class JobState(str, Enum):
    """Point-in-time status of a job ID as seen by a polling client."""

    COMPLETED = "completed"
    RUNNING = "running"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    NOT_FOUND = "not_found"

    @classmethod
    def from_status(cls, status: JobStatus) -> JobState:
        return cls(status.value)


@dataclass
class Job:
    """One admitted unit of work."""

    id: str
    submitted_at: datetime
    deadline: datetime
    parameters: dict[str, Any] = field(default_factory=dict)
    status: JobStatus = JobStatus.RUNNING
    worker_handle: str | None = None


@dataclass
class Result:
    """Terminal outcome of a job: a success payload or an error, never both."""

    job_id: str
    completed_at: datetime
    payload: dict[str, Any] | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if (self.payload is None) == (self.error is None):
            raise ValueError("Result needs exactly one of payload or error")

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, job_id: str, payload: dict[str, Any], completed_at: datetime) -> Result:
        return cls(job_id=job_id, completed_at=completed_at, payload=payload)

    @classmethod
    def failure(cls, job_id: str, error: str, completed_at: datetime) -> Result:
        return cls(job_id=job_id, completed_at=completed_at, error=error)

    def to_response(self) -> dict[str, Any]:
        """Body returned to the client that consumes this result."""
        if self.payload is not None:
            return dict(self.payload)
        return {
            "status": "failed",
            "error": True,
            "message": self.error,
            "code": "SEARCH_ERROR",
        }
