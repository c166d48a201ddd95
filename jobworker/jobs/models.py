"""Job system data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from jobworker.jobs.types import JobStatus


@dataclass
class Job:
    """A job in the queue."""

    id: UUID
    job_type: str
    status: JobStatus
    payload: dict[str, Any]

    # Retry handling
    attempts: int = 0
    max_attempts: int = 5
    next_run_at: Optional[datetime] = None
    last_error: Optional[str] = None

    # Lock info
    locked_at: Optional[datetime] = None
    locked_by: Optional[str] = None

    priority: int = 100
    idempotency_key: Optional[str] = None

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None


@dataclass
class JobRun:
    """Audit record of one Worker Run Loop invocation."""

    id: UUID
    worker_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    processed_count: int = 0
    success_count: int = 0
    failed_count: int = 0


@dataclass
class RunSummary:
    """Aggregate outcome of one run, returned to the invoker."""

    run_id: Optional[UUID]
    processed: int = 0
    succeeded: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API response."""
        return {
            "run_id": str(self.run_id) if self.run_id else None,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
        }


@dataclass
class JobOutcome:
    """Per-job result of an attempt, as persisted by record_outcome."""

    job_id: UUID
    status: JobStatus
    attempts: int
    next_run_at: Optional[datetime] = None
    last_error: Optional[str] = None
    escalated: bool = False
