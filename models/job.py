"""
Prediction job models.

Jobs live only inside the background task that runs them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field

from models.mapping import FieldMapping


class JobStatus(str, Enum):
    """Job lifecycle states."""
    CREATED = "CREATED"
    DISPATCHED = "DISPATCHED"
    POLLING = "POLLING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# Allowed next states. POLLING may repeat; terminal states have none.
JOB_TRANSITIONS = {
    JobStatus.CREATED: {JobStatus.DISPATCHED, JobStatus.FAILED},
    JobStatus.DISPATCHED: {JobStatus.POLLING, JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.POLLING: {JobStatus.POLLING, JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


def is_valid_job_transition(current: JobStatus, new: JobStatus) -> bool:
    """Check if a job may move from current to new."""
    return new in JOB_TRANSITIONS[current]


class ExternalStatus(str, Enum):
    """Status values reported by the prediction service."""
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "ExternalStatus":
        """Map a status string; anything unrecognized keeps the job polling."""
        if not raw:
            return cls.UNKNOWN
        key = str(raw).strip().upper()
        return EXTERNAL_STATUS_ALIASES.get(key, cls.UNKNOWN)

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_EXTERNAL_STATUSES


EXTERNAL_STATUS_ALIASES = {
    "RUNNING": ExternalStatus.RUNNING,
    "IN_PROGRESS": ExternalStatus.RUNNING,
    "IN_QUEUE": ExternalStatus.RUNNING,
    "QUEUED": ExternalStatus.RUNNING,
    "COMPLETED": ExternalStatus.COMPLETED,
    "FAILED": ExternalStatus.FAILED,
    "TIMED_OUT": ExternalStatus.TIMED_OUT,
    "CANCELLED": ExternalStatus.CANCELLED,
}

TERMINAL_EXTERNAL_STATUSES = {
    ExternalStatus.COMPLETED,
    ExternalStatus.FAILED,
    ExternalStatus.TIMED_OUT,
    ExternalStatus.CANCELLED,
}


@dataclass
class StatusReport:
    """One status poll result."""
    status: ExternalStatus
    output: Any = None
    error: Optional[str] = None


@dataclass
class InferenceResult:
    """Result spreadsheet returned by the prediction service."""
    content: bytes
    filename: str
    mime_type: str = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    row_count: Optional[int] = None


@dataclass
class Job:
    """Prediction job. Never persisted."""
    id: str
    email: str
    mapping: FieldMapping
    model_ids: list[str]
    filename: str
    mime_type: str
    status: JobStatus = JobStatus.CREATED
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    handle: Optional[str] = None
    error: Optional[str] = None
    notified: bool = False
    poll_count: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)


# ===================
# API SCHEMAS
# ===================

class JobAcceptedResponse(BaseModel):
    """Returned as soon as a job is created."""
    job_id: str = Field(serialization_alias="jobId")
    status: str = "queued"
