"""Tests for job repository."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from jobworker.jobs.errors import ClaimError
from jobworker.jobs.types import JobStatus, JobType
from jobworker.repositories.jobs import JobRepository


def make_row(**overrides):
    now = datetime.now(timezone.utc)
    row = {
        "id": uuid4(),
        "job_type": JobType.NOTIFY_DELIVER.value,
        "status": JobStatus.PENDING.value,
        "payload": '{"notification_id": "n-1"}',
        "attempts": 0,
        "max_attempts": 5,
        "next_run_at": None,
        "last_error": None,
        "locked_at": None,
        "locked_by": None,
        "priority": 100,
        "idempotency_key": None,
        "created_at": now,
        "updated_at": now,
    }
    row.update(overrides)
    return row


def make_repo():
    mock_pool = MagicMock()
    mock_conn = AsyncMock()
    mock_pool.acquire.return_value.__aenter__.return_value = mock_conn
    return JobRepository(mock_pool), mock_conn


class TestJobRepository:
    def test_repository_creation(self):
        mock_pool = MagicMock()
        repo = JobRepository(mock_pool)
        assert repo._pool == mock_pool


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_enqueue_with_idempotency_key(self):
        repo, conn = make_repo()
        conn.fetchrow.return_value = make_row(idempotency_key="alerts_check:2026-03-04T10:00")

        job = await repo.enqueue(
            JobType.ALERTS_CHECK, {"a": 1}, idempotency_key="alerts_check:2026-03-04T10:00"
        )

        args = conn.fetchrow.call_args.args
        assert "ON CONFLICT (idempotency_key)" in args[0]
        assert args[1] == "alerts_check_v1"
        assert args[2] == '{"a": 1}'
        assert args[4] == "alerts_check:2026-03-04T10:00"
        assert job.payload == {"notification_id": "n-1"}


class TestClaimBatch:
    @pytest.mark.asyncio
    async def test_claim_query_shape(self):
        repo, conn = make_repo()
        conn.fetch.return_value = []

        jobs = await repo.claim_batch("worker-1", 10)

        query, worker_id, limit = conn.fetch.call_args.args
        assert "FOR UPDATE SKIP LOCKED" in query
        assert "status IN ('pending', 'failed')" in query
        assert "locked_by IS NULL" in query
        assert query.index("LIMIT $2") < query.index("FOR UPDATE SKIP LOCKED")
        assert (worker_id, limit) == ("worker-1", 10)
        assert jobs == []

    @pytest.mark.asyncio
    async def test_claim_orders_oldest_first(self):
        repo, conn = make_repo()
        now = datetime.now(timezone.utc)
        newer = make_row(next_run_at=now - timedelta(minutes=1))
        older = make_row(next_run_at=now - timedelta(minutes=5))
        conn.fetch.return_value = [newer, older]

        jobs = await repo.claim_batch("worker-1", 10)

        assert [j.id for j in jobs] == [older["id"], newer["id"]]

    @pytest.mark.asyncio
    async def test_claim_failure_raises_claim_error(self):
        repo, conn = make_repo()
        conn.fetch.side_effect = ConnectionError("connection reset")

        with pytest.raises(ClaimError, match="connection reset"):
            await repo.claim_batch("worker-1", 10)


class TestRecordOutcome:
    @pytest.mark.asyncio
    async def test_releases_claim(self):
        repo, conn = make_repo()
        job_id = uuid4()

        await repo.record_outcome(job_id, JobStatus.DEAD, 5, None, "missing notification_id")

        query, *params = conn.execute.call_args.args
        assert "locked_by = NULL" in query
        assert params == [job_id, "dead", 5, None, "missing notification_id"]


class TestStatusCounts:
    @pytest.mark.asyncio
    async def test_every_status_present(self):
        repo, conn = make_repo()
        conn.fetch.return_value = [{"status": "pending", "total": 3}, {"status": "dead", "total": 1}]
        conn.fetchval.return_value = 2

        counts = await repo.status_counts()

        assert counts == {"pending": 3, "succeeded": 0, "failed": 0, "dead": 1, "locked": 2}


class TestReapStale:
    @pytest.mark.asyncio
    async def test_returns_released_count(self):
        repo, conn = make_repo()
        conn.fetch.return_value = [{"id": uuid4()}, {"id": uuid4()}]

        assert await repo.reap_stale(30) == 2
        assert conn.fetch.call_args.args[1] == 30
