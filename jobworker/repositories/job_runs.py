"""Repository for job run tracking."""

from uuid import UUID

import structlog

from jobworker.jobs.errors import RunBookkeepingError
from jobworker.jobs.models import JobRun

logger = structlog.get_logger(__name__)


class JobRunsRepository:
    """Repository for job_runs rows (one per Worker Run Loop invocation)."""

    def __init__(self, pool):
        """Initialize with database pool."""
        self._pool = pool

    async def create_run(self, worker_id: str) -> UUID:
        """Insert a run row and return its id. Raises RunBookkeepingError."""
        query = """
            INSERT INTO job_runs (worker_id, started_at)
            VALUES ($1, now())
            RETURNING id
        """
        try:
            async with self._pool.acquire() as conn:
                run_id = await conn.fetchval(query, worker_id)
        except Exception as e:
            logger.error("job_run_create_failed", worker_id=worker_id, error=str(e))
            raise RunBookkeepingError(str(e)) from e
        return run_id

    async def finish_run(
        self, run_id: UUID, processed: int, succeeded: int, failed: int
    ) -> None:
        """Write final counters and finished_at."""
        query = """
            UPDATE job_runs SET
                processed_count = $2,
                success_count = $3,
                failed_count = $4,
                finished_at = now()
            WHERE id = $1
        """
        async with self._pool.acquire() as conn:
            await conn.execute(query, run_id, processed, succeeded, failed)

    async def list_runs(self, limit: int = 20, offset: int = 0) -> list[JobRun]:
        """List runs, most recent first."""
        query = """
            SELECT * FROM job_runs
            ORDER BY started_at DESC, id DESC
            LIMIT $1 OFFSET $2
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, limit, offset)
        return [self._row_to_run(row) for row in rows]

    def _row_to_run(self, row) -> JobRun:
        return JobRun(
            id=row["id"],
            worker_id=row["worker_id"],
            started_at=row["started_at"],
            finished_at=row["finished_at"],
            processed_count=row["processed_count"],
            success_count=row["success_count"],
            failed_count=row["failed_count"],
        )
