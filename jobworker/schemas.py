"""Pydantic request/response schemas for the HTTP surface."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RunRequest(BaseModel):
    """Optional body for a worker run."""

    batch_size: Optional[int] = Field(
        None, ge=1, le=500, description="Jobs to claim (defaults to WORKER_BATCH_SIZE)"
    )


class RunResponse(BaseModel):
    """Aggregate counts of one worker run."""

    run_id: Optional[str] = Field(None, description="job_runs id for this run")
    processed: int = Field(..., description="Jobs claimed and attempted")
    succeeded: int = Field(..., description="Jobs that succeeded")
    failed: int = Field(..., description="Jobs that failed or went dead")


class RunRecord(BaseModel):
    """One recorded worker run."""

    id: str
    worker_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    processed: int = 0
    succeeded: int = 0
    failed: int = 0


class OpenOpsItem(BaseModel):
    """An open ops inbox item."""

    id: str
    item_type: str
    entity_type: str
    entity_id: str
    severity: str
    summary: str
    occurrence_count: int = 1
    updated_at: Optional[datetime] = None


class JobSummaryResponse(BaseModel):
    """Queue counts by status, recent runs and open ops items."""

    counts: dict[str, int] = Field(..., description="Job count per status, plus locked")
    recent_runs: list[RunRecord] = Field(default_factory=list, description="Latest runs first")
    open_ops_items: list[OpenOpsItem] = Field(
        default_factory=list, description="Open ops inbox items, most recently updated first"
    )


class ScheduleResponse(BaseModel):
    """Jobs backing the current schedule buckets."""

    enqueued: dict[str, str] = Field(..., description="job_type -> job id")


class DependencyHealth(BaseModel):
    """Health status for a dependency."""

    status: str = Field(..., description="Dependency status (ok/error)")
    latency_ms: Optional[float] = Field(None, description="Response latency in ms")
    error: Optional[str] = Field(None, description="Error message if unhealthy")


class HealthResponse(BaseModel):
    """Response for health endpoint."""

    status: str = Field(..., description="Overall service status")
    database: DependencyHealth = Field(..., description="Postgres health")
    version: str = Field(..., description="Service version")
