"""Periodic enqueue of maintenance jobs.

Every tick enqueues the full schedule. Idempotency keys are built from a
time bucket (``<prefix>:<bucket>``), so ticks that land in the same bucket
collapse onto the job enqueued first.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import structlog

from jobworker.core.resilience import best_effort
from jobworker.jobs.types import JobType

logger = structlog.get_logger(__name__)

PayloadFactory = Callable[[datetime], dict[str, Any]]


def bucket_key(now: datetime, bucket_minutes: int) -> str:
    """UTC start of the bucket containing ``now``, minute precision."""
    now = now.astimezone(timezone.utc)
    bucket_seconds = bucket_minutes * 60
    epoch = int(now.timestamp())
    start = datetime.fromtimestamp(epoch - epoch % bucket_seconds, tz=timezone.utc)
    return start.strftime("%Y-%m-%dT%H:%M")


@dataclass(frozen=True)
class ScheduledJob:
    """A recurring job and how often it may be enqueued."""

    job_type: JobType
    key_prefix: str
    bucket_minutes: int
    payload: PayloadFactory = field(default=lambda now: {})

    def idempotency_key(self, now: datetime) -> str:
        return f"{self.key_prefix}:{bucket_key(now, self.bucket_minutes)}"


def _previous_day(now: datetime) -> dict[str, Any]:
    return {"day": (now.astimezone(timezone.utc).date() - timedelta(days=1)).isoformat()}


DEFAULT_SCHEDULE: list[ScheduledJob] = [
    ScheduledJob(
        JobType.PAYMENTS_RECONCILE_RECENT,
        "reconcile",
        15,
        lambda now: {"threshold_minutes": 60, "batch_size": 200},
    ),
    ScheduledJob(JobType.PAYMENTS_CLEANUP_STALE, "payments_cleanup", 60, lambda now: {"threshold_minutes": 60}),
    ScheduledJob(JobType.WEBHOOK_RETRY_FAILED, "webhookretry", 5, lambda now: {"limit": 200}),
    ScheduledJob(JobType.PAYOUTS_REMINDER_QUEUE, "payoutsreminder", 60, lambda now: {"threshold_hours": 48}),
    ScheduledJob(JobType.OPS_INBOX_SCAN, "ops_scan", 15),
    ScheduledJob(JobType.RISK_EVALUATE_RECENT, "risk_eval", 60, lambda now: {"lookback_hours": 24}),
    ScheduledJob(JobType.RISK_DECAY, "risk_decay", 24 * 60, lambda now: {"days_without_incident": 7}),
    ScheduledJob(JobType.DISPUTE_SLA_WATCH, "dispute_sla", 60, lambda now: {"max_hours_open": 48}),
    ScheduledJob(JobType.SYSTEM_METRICS_ROLLUP, "sysmetrics_rollup", 60),
    ScheduledJob(JobType.ALERTS_CHECK, "alerts_check", 15),
    ScheduledJob(JobType.ANALYTICS_ROLLUP_DAILY, "analytics_daily", 24 * 60, _previous_day),
]


class Scheduler:
    """Enqueues the schedule through the job repository."""

    def __init__(self, job_repo, schedule: Optional[list[ScheduledJob]] = None):
        self._job_repo = job_repo
        self._schedule = schedule if schedule is not None else DEFAULT_SCHEDULE

    async def tick(self, now: Optional[datetime] = None) -> dict[str, str]:
        """Enqueue every scheduled job for the current buckets.

        Returns a map of job_type to the id of the job backing this bucket.
        A failing enqueue is logged and skipped.
        """
        now = now or datetime.now(timezone.utc)
        enqueued: dict[str, str] = {}

        for entry in self._schedule:
            key = entry.idempotency_key(now)
            job = await best_effort(
                self._job_repo.enqueue(
                    entry.job_type,
                    payload=entry.payload(now),
                    idempotency_key=key,
                ),
                "scheduled_enqueue_failed",
                job_type=entry.job_type.value,
                idempotency_key=key,
            )
            if job is not None:
                enqueued[entry.job_type.value] = str(job.id)

        logger.info("schedule_ticked", enqueued=len(enqueued), total=len(self._schedule))
        return enqueued
