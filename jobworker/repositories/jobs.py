"""Repository for job queue operations."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog

from jobworker.jobs.errors import ClaimError
from jobworker.jobs.models import Job
from jobworker.jobs.registry import JobTypeKey, job_type_key
from jobworker.jobs.types import JobStatus
from jobworker.repositories.utils import ensure_json, to_jsonb

logger = structlog.get_logger(__name__)


class JobRepository:
    """Repository for job queue operations.

    The claim is the only concurrency primitive in the engine: rows are
    selected with FOR UPDATE SKIP LOCKED inside the same statement that
    stamps the claim, so two workers can never receive the same job.
    """

    def __init__(self, pool):
        self._pool = pool

    async def enqueue(
        self,
        job_type: JobTypeKey,
        payload: Optional[dict[str, Any]] = None,
        run_at: Optional[datetime] = None,
        idempotency_key: Optional[str] = None,
        priority: int = 100,
        max_attempts: int = 5,
    ) -> Job:
        """Insert a job. An existing idempotency_key returns the existing job."""
        query = """
            INSERT INTO job_queue (job_type, payload, next_run_at,
                                   idempotency_key, priority, max_attempts)
            VALUES ($1, $2::jsonb, $3, $4, $5, $6)
            ON CONFLICT (idempotency_key) WHERE idempotency_key IS NOT NULL
            DO UPDATE SET id = job_queue.id  -- no-op, just return existing
            RETURNING *
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                query,
                job_type_key(job_type),
                to_jsonb(payload),
                run_at,
                idempotency_key,
                priority,
                max_attempts,
            )
        job = self._row_to_job(row)
        logger.info(
            "job_enqueued",
            job_id=str(job.id),
            job_type=job.job_type,
            idempotency_key=idempotency_key,
        )
        return job

    async def claim_batch(self, worker_id: str, limit: int) -> list[Job]:
        """Claim up to ``limit`` due jobs for ``worker_id``.

        Eligible: status pending or failed, and next_run_at due (NULL counts
        as due). Oldest-eligible first. Raises ClaimError on store failure.
        """
        query = """
            WITH cte AS (
                SELECT id FROM job_queue
                WHERE status IN ('pending', 'failed')
                  AND COALESCE(next_run_at, now()) <= now()
                  AND locked_by IS NULL
                ORDER BY COALESCE(next_run_at, created_at), priority, created_at
                LIMIT $2
                FOR UPDATE SKIP LOCKED
            )
            UPDATE job_queue j SET
                locked_by = $1,
                locked_at = now(),
                updated_at = now()
            FROM cte
            WHERE j.id = cte.id
            RETURNING j.*
        """
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, worker_id, limit)
        except Exception as e:
            logger.error("job_claim_failed", worker_id=worker_id, error=str(e))
            raise ClaimError(str(e)) from e

        jobs = sorted(
            (self._row_to_job(row) for row in rows),
            key=lambda j: (j.next_run_at or j.created_at, j.priority, j.created_at),
        )
        if jobs:
            logger.info(
                "jobs_claimed",
                worker_id=worker_id,
                job_count=len(jobs),
                job_ids=[str(j.id) for j in jobs],
            )
        return jobs

    async def record_outcome(
        self,
        job_id: UUID,
        status: JobStatus,
        attempts: int,
        next_run_at: Optional[datetime],
        last_error: Optional[str],
    ) -> None:
        """Persist the result of an attempt and release the claim."""
        query = """
            UPDATE job_queue SET
                status = $2,
                attempts = $3,
                next_run_at = $4,
                last_error = $5,
                locked_by = NULL,
                locked_at = NULL,
                updated_at = now()
            WHERE id = $1
        """
        async with self._pool.acquire() as conn:
            await conn.execute(
                query, job_id, JobStatus(status).value, attempts, next_run_at, last_error
            )

    async def get(self, job_id: UUID) -> Optional[Job]:
        """Get a job by ID."""
        query = "SELECT * FROM job_queue WHERE id = $1"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, job_id)
        return self._row_to_job(row) if row else None

    async def status_counts(self) -> dict[str, int]:
        """Count jobs by status. Every status is present in the result."""
        query = "SELECT status, COUNT(*) AS total FROM job_queue GROUP BY status"
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query)
        counts = {s.value: 0 for s in JobStatus}
        for row in rows:
            counts[row["status"]] = row["total"]
        counts["locked"] = await self._count_locked()
        return counts

    async def _count_locked(self) -> int:
        query = "SELECT COUNT(*) FROM job_queue WHERE locked_by IS NOT NULL"
        async with self._pool.acquire() as conn:
            count = await conn.fetchval(query)
        return count or 0

    async def reap_stale(self, stale_minutes: int = 30) -> int:
        """Release claims held longer than ``stale_minutes`` (crashed workers)."""
        query = """
            UPDATE job_queue SET
                locked_by = NULL,
                locked_at = NULL,
                updated_at = now()
            WHERE locked_by IS NOT NULL
              AND status IN ('pending', 'failed')
              AND locked_at < now() - make_interval(mins => $1)
            RETURNING id
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, stale_minutes)
        count = len(rows)
        if count > 0:
            logger.warning("stale_claims_reaped", count=count)
        return count

    def _row_to_job(self, row) -> Job:
        """Convert a database row to a Job model."""
        return Job(
            id=row["id"],
            job_type=row["job_type"],
            status=JobStatus(row["status"]),
            payload=ensure_json(row["payload"]) or {},
            attempts=row["attempts"],
            max_attempts=row["max_attempts"],
            next_run_at=row["next_run_at"],
            last_error=row["last_error"],
            locked_at=row["locked_at"],
            locked_by=row["locked_by"],
            priority=row["priority"],
            idempotency_key=row["idempotency_key"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
