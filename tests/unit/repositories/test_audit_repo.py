"""Tests for the audit sink."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from jobworker.repositories.audit import AuditRepository


def make_repo():
    mock_pool = MagicMock()
    mock_conn = AsyncMock()
    mock_pool.acquire.return_value.__aenter__.return_value = mock_conn
    return AuditRepository(mock_pool), mock_conn


class TestAuditRepository:
    @pytest.mark.asyncio
    async def test_security_event_insert(self):
        repo, conn = make_repo()

        await repo.log_security_event("JOB_HANDLER_FAILURE", "medium", "job-1", {"attempts": 3})

        query, *params = conn.execute.call_args.args
        assert "INSERT INTO security_events" in query
        assert params == ["JOB_HANDLER_FAILURE", "medium", "job-1", '{"attempts": 3}']

    @pytest.mark.asyncio
    async def test_write_failure_is_swallowed(self):
        repo, conn = make_repo()
        conn.execute.side_effect = RuntimeError("db down")

        await repo.log_security_event("X", "high")
        await repo.log_workflow_event("order", "o-1", "ORDER_CREATED")

        assert conn.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_list_workflow_events(self):
        repo, conn = make_repo()
        now = datetime.now(timezone.utc)
        conn.fetch.return_value = [
            {"event_type": "ORDER_CANCELLED", "created_at": now, "metadata": '{"by": "buyer"}'}
        ]

        events = await repo.list_workflow_events("order", "o-1", limit=10)

        assert events == [
            {"event_type": "ORDER_CANCELLED", "created_at": now, "metadata": {"by": "buyer"}}
        ]
        assert conn.fetch.call_args.args[1:] == ("order", "o-1", 10)
