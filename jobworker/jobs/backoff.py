"""Retry backoff and dead-letter classification.

The delay table is discrete on purpose: 1 -> 1m, 2 -> 5m, 3 -> 15m,
4 -> 1h. From the fifth attempt on no delay is computed because the
job is being dead-lettered, not retried.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jobworker.jobs.types import JobStatus

DEFAULT_MAX_ATTEMPTS = 5

_DELAYS_SECONDS = {
    1: 60,
    2: 5 * 60,
    3: 15 * 60,
    4: 60 * 60,
}


@dataclass(frozen=True)
class RetryDecision:
    """Next state of a job after a failed attempt."""

    status: JobStatus
    next_run_at: Optional[datetime]

    @property
    def is_dead(self) -> bool:
        return self.status == JobStatus.DEAD


def next_delay_seconds(attempts: int) -> int:
    """Delay before the next retry, given the attempts made so far."""
    return _DELAYS_SECONDS.get(attempts, 0)


def is_dead(attempts: int, max_attempts: Optional[int] = None) -> bool:
    """True once a job has used its attempt budget."""
    return attempts >= (max_attempts or DEFAULT_MAX_ATTEMPTS)


def compute_retry(
    attempts: int,
    max_attempts: Optional[int] = None,
    now: Optional[datetime] = None,
) -> RetryDecision:
    """Decide status and eligibility time for a job that just failed.

    Args:
        attempts: Attempt count including the attempt that just failed
        max_attempts: Job's attempt ceiling (defaults to 5 when falsy)
        now: Reference time (defaults to current UTC time)
    """
    if is_dead(attempts, max_attempts):
        return RetryDecision(status=JobStatus.DEAD, next_run_at=None)

    now = now or datetime.now(timezone.utc)
    return RetryDecision(
        status=JobStatus.FAILED,
        next_run_at=now + timedelta(seconds=next_delay_seconds(attempts)),
    )
