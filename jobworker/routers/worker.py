"""Worker invocation endpoints.

A scheduler (cron, platform scheduler, another service) calls
``POST /worker/run`` to process one batch. Every endpoint here requires
the shared worker secret.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from jobworker.config import Settings, get_settings
from jobworker.deps.security import require_worker_secret
from jobworker.jobs.errors import ClaimError, RunBookkeepingError
from jobworker.jobs.scheduler import Scheduler
from jobworker.jobs.worker import WorkerRunner, generate_run_worker_id
from jobworker.repositories.job_runs import JobRunsRepository
from jobworker.repositories.jobs import JobRepository
from jobworker.repositories.ops_inbox import OpsInboxRepository
from jobworker.schemas import (
    JobSummaryResponse,
    OpenOpsItem,
    RunRecord,
    RunRequest,
    RunResponse,
    ScheduleResponse,
)

router = APIRouter(prefix="/worker", tags=["worker"])
logger = structlog.get_logger(__name__)

_db_pool = None


def set_db_pool(pool):
    """Set the database pool for this router."""
    global _db_pool
    _db_pool = pool


def _get_pool():
    if _db_pool is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection not available",
        )
    return _db_pool


@router.post("/run", response_model=RunResponse)
async def run_worker(
    body: Optional[RunRequest] = Body(None),
    batch_size: Optional[int] = Query(None, ge=1, le=500),
    settings: Settings = Depends(get_settings),
    _: bool = Depends(require_worker_secret),
) -> RunResponse:
    """
    Claim and process one batch of due jobs.

    batch_size may come from the JSON body or the query string; the body
    wins when both are given. Handler failures are recorded per job and
    never fail the request. Claim or run bookkeeping failures return 500.
    """
    pool = _get_pool()
    size = (body.batch_size if body and body.batch_size else None) or batch_size

    runner = WorkerRunner(pool, settings=settings, worker_id=generate_run_worker_id())
    try:
        summary = await runner.run_once(size)
    except (ClaimError, RunBookkeepingError) as e:
        logger.error("worker_run_aborted", worker_id=runner.worker_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        ) from e

    return RunResponse(**summary.to_dict())


@router.get("/summary", response_model=JobSummaryResponse)
async def job_summary(
    runs_limit: int = Query(10, ge=0, le=100),
    ops_limit: int = Query(50, ge=0, le=500),
    _: bool = Depends(require_worker_secret),
) -> JobSummaryResponse:
    """Job counts by status, the latest runs and open ops inbox items."""
    pool = _get_pool()
    counts = await JobRepository(pool).status_counts()
    runs = await JobRunsRepository(pool).list_runs(limit=runs_limit) if runs_limit else []
    items = await OpsInboxRepository(pool).list_open(limit=ops_limit) if ops_limit else []

    return JobSummaryResponse(
        counts=counts,
        recent_runs=[
            RunRecord(
                id=str(run.id),
                worker_id=run.worker_id,
                started_at=run.started_at,
                finished_at=run.finished_at,
                processed=run.processed_count,
                succeeded=run.success_count,
                failed=run.failed_count,
            )
            for run in runs
        ],
        open_ops_items=[
            OpenOpsItem(
                id=str(item.id),
                item_type=item.item_type,
                entity_type=item.entity_type,
                entity_id=item.entity_id,
                severity=item.severity,
                summary=item.summary,
                occurrence_count=item.occurrence_count,
                updated_at=item.updated_at,
            )
            for item in items
        ],
    )


@router.post("/schedule", response_model=ScheduleResponse)
async def enqueue_schedule(_: bool = Depends(require_worker_secret)) -> ScheduleResponse:
    """Enqueue the periodic maintenance jobs for the current time buckets."""
    enqueued = await Scheduler(JobRepository(_get_pool())).tick()
    return ScheduleResponse(enqueued=enqueued)
