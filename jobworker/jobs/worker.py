"""Job worker - claims a batch of jobs and records each outcome."""
import asyncio
import os
import socket
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from jobworker import __version__
from jobworker.config import Settings, get_settings
from jobworker.core.sentry import capture_job_failure
from jobworker.jobs.backoff import compute_retry
from jobworker.jobs.errors import HandlerTimeoutError
from jobworker.jobs.escalation import EscalationReporter
from jobworker.jobs.models import Job, JobOutcome, RunSummary
from jobworker.jobs.registry import JobRegistry, default_registry
from jobworker.jobs.types import JobStatus
from jobworker.repositories.audit import AuditRepository
from jobworker.repositories.job_runs import JobRunsRepository
from jobworker.repositories.jobs import JobRepository
from jobworker.repositories.ops_inbox import OpsInboxRepository

logger = structlog.get_logger(__name__)


def generate_worker_id() -> str:
    """Generate a unique worker ID: hostname:pid."""
    return f"{socket.gethostname()}:{os.getpid()}"


def generate_run_worker_id() -> str:
    """Worker ID for a one-shot, externally triggered run."""
    return f"worker:{uuid.uuid4()}"


class WorkerRunner:
    """Job worker that claims batches and executes them through the registry.

    All collaborators are injectable so the run loop can be exercised
    against in-memory stores; by default they are built on the pool.
    """

    def __init__(
        self,
        pool,
        settings: Optional[Settings] = None,
        worker_id: Optional[str] = None,
        registry: Optional[JobRegistry] = None,
        job_repo=None,
        runs_repo=None,
        audit=None,
        ops_inbox=None,
    ):
        self._pool = pool
        self._settings = settings or get_settings()
        self._worker_id = worker_id or generate_worker_id()
        self._registry = registry or default_registry
        self._job_repo = job_repo or JobRepository(pool)
        self._runs_repo = runs_repo or JobRunsRepository(pool)
        self._audit = audit or AuditRepository(pool)
        self._ops_inbox = ops_inbox or OpsInboxRepository(pool)
        self._escalation = EscalationReporter(
            self._audit,
            self._ops_inbox,
            threshold=self._settings.job_escalation_threshold,
        )
        self._running = False

    @property
    def worker_id(self) -> str:
        return self._worker_id

    def _context(self) -> dict[str, Any]:
        """Execution context handed to every handler."""
        return {
            "worker_id": self._worker_id,
            "pool": self._pool,
            "settings": self._settings,
            "job_repo": self._job_repo,
            "audit": self._audit,
            "ops_inbox": self._ops_inbox,
        }

    async def run_once(self, batch_size: Optional[int] = None) -> RunSummary:
        """Process one claimed batch.

        Raises RunBookkeepingError if the run row cannot be created and
        ClaimError if the claim fails; in both cases no job is touched.
        """
        limit = batch_size or self._settings.worker_batch_size
        run_id = await self._runs_repo.create_run(self._worker_id)
        summary = RunSummary(run_id=run_id)
        log = logger.bind(worker_id=self._worker_id, run_id=str(run_id))

        try:
            jobs = await self._job_repo.claim_batch(self._worker_id, limit)
            if not jobs:
                log.debug("worker_run_empty")
                return summary

            ctx = self._context()
            for job in jobs:
                summary.processed += 1
                outcome = await self._execute_job(job, ctx)
                if outcome is not None and outcome.status == JobStatus.SUCCEEDED:
                    summary.succeeded += 1
                else:
                    summary.failed += 1
        finally:
            try:
                await self._runs_repo.finish_run(
                    run_id, summary.processed, summary.succeeded, summary.failed
                )
            except Exception as e:
                log.error("job_run_finish_failed", error=str(e))

        log.info(
            "worker_run_finished",
            processed=summary.processed,
            succeeded=summary.succeeded,
            failed=summary.failed,
        )
        return summary

    async def _execute_job(self, job: Job, ctx: dict[str, Any]) -> Optional[JobOutcome]:
        """Execute a single job and persist its outcome.

        Returns None only when the outcome itself could not be written.
        """
        log = logger.bind(job_id=str(job.id), job_type=job.job_type)
        log.info("job_executing", attempts=job.attempts)

        try:
            await self._invoke(job, ctx)
        except Exception as e:
            return await self._record_failure(job, e, log)

        outcome = JobOutcome(
            job_id=job.id,
            status=JobStatus.SUCCEEDED,
            attempts=job.attempts,
        )
        if not await self._persist(outcome, log):
            return None
        log.info("job_succeeded")
        return outcome

    async def _invoke(self, job: Job, ctx: dict[str, Any]) -> None:
        timeout_s = self._settings.job_handler_timeout_s
        try:
            await asyncio.wait_for(self._registry.dispatch(job, ctx), timeout=timeout_s)
        except asyncio.TimeoutError as e:
            raise HandlerTimeoutError(timeout_s) from e

    async def _record_failure(self, job: Job, error: Exception, log) -> Optional[JobOutcome]:
        attempts = job.attempts + 1
        max_attempts = job.max_attempts or self._settings.job_max_attempts_default
        decision = compute_retry(attempts, max_attempts, now=datetime.now(timezone.utc))
        message = str(error) or type(error).__name__

        log.error(
            "job_handler_failed",
            error=message,
            error_type=type(error).__name__,
            attempts=attempts,
            traceback=traceback.format_exc(),
        )
        capture_job_failure(job.job_type, str(job.id), error)

        outcome = JobOutcome(
            job_id=job.id,
            status=decision.status,
            attempts=attempts,
            next_run_at=decision.next_run_at,
            last_error=message,
        )
        # Unpersisted attempts are not counted; the reaped job fails the same
        # attempt again and escalates then
        if not await self._persist(outcome, log):
            return None

        if decision.is_dead:
            log.warning("job_dead_lettered", attempts=attempts)
        else:
            log.info(
                "job_retry_scheduled",
                attempts=attempts,
                next_run_at=decision.next_run_at.isoformat(),
            )

        outcome.escalated = await self._escalation.report(
            job,
            attempts=attempts,
            error=message,
            dead=decision.is_dead,
            entity=self._registry.entity_for(job.job_type),
        )
        return outcome

    async def _persist(self, outcome: JobOutcome, log) -> bool:
        try:
            await self._job_repo.record_outcome(
                outcome.job_id,
                outcome.status,
                outcome.attempts,
                outcome.next_run_at,
                outcome.last_error,
            )
        except Exception as e:
            # Claim stays in place; the stale-claim reaper releases it later
            log.error("job_outcome_write_failed", status=outcome.status.value, error=str(e))
            return False
        return True

    async def start(self):
        """Run batches in a loop until stop() is called."""
        self._running = True
        poll_interval = self._settings.worker_poll_interval_s
        reap_interval = 60  # seconds
        last_reap = 0.0

        logger.info(
            "worker_started",
            worker_id=self._worker_id,
            version=__version__,
            batch_size=self._settings.worker_batch_size,
            job_types=self._registry.job_types(),
        )

        loop = asyncio.get_running_loop()
        while self._running:
            try:
                now = loop.time()
                if now - last_reap >= reap_interval:
                    await self._job_repo.reap_stale(self._settings.job_stale_lock_minutes)
                    last_reap = now

                summary = await self.run_once()
                if summary.processed == 0:
                    await asyncio.sleep(poll_interval)

            except asyncio.CancelledError:
                logger.info("worker_cancelled", worker_id=self._worker_id)
                break
            except Exception as e:
                logger.error(
                    "worker_loop_error", error=str(e), traceback=traceback.format_exc()
                )
                await asyncio.sleep(poll_interval)

        logger.info("worker_stopped", worker_id=self._worker_id)

    async def stop(self):
        """Stop the worker loop gracefully."""
        self._running = False
