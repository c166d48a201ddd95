"""Tests for retry backoff and dead-letter classification."""

from datetime import datetime, timedelta, timezone

import pytest

from jobworker.jobs.backoff import compute_retry, is_dead, next_delay_seconds
from jobworker.jobs.types import JobStatus


class TestNextDelaySeconds:
    @pytest.mark.parametrize(
        "attempts,expected",
        [(1, 60), (2, 300), (3, 900), (4, 3600), (5, 0), (9, 0), (0, 0), (-1, 0)],
    )
    def test_discrete_table(self, attempts, expected):
        assert next_delay_seconds(attempts) == expected


class TestIsDead:
    def test_dead_at_max_attempts(self):
        assert is_dead(5, 5) is True
        assert is_dead(4, 5) is False

    def test_falsy_max_defaults_to_five(self):
        assert is_dead(5, None) is True
        assert is_dead(5, 0) is True
        assert is_dead(4, None) is False

    def test_custom_max(self):
        assert is_dead(2, 2) is True
        assert is_dead(6, 10) is False


class TestComputeRetry:
    def test_failed_with_delay(self):
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        decision = compute_retry(2, 5, now=now)

        assert decision.status == JobStatus.FAILED
        assert decision.next_run_at == now + timedelta(seconds=300)
        assert decision.is_dead is False

    def test_dead_has_no_next_run(self):
        decision = compute_retry(5, 5)

        assert decision.status == JobStatus.DEAD
        assert decision.next_run_at is None
        assert decision.is_dead is True

    def test_beyond_table_is_immediately_eligible(self):
        # max_attempts above 5: attempts past the table retry with no delay
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        decision = compute_retry(6, 8, now=now)

        assert decision.status == JobStatus.FAILED
        assert decision.next_run_at == now
