"""Tests for the webhook events repository."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from jobworker.jobs.types import WebhookStatus
from jobworker.repositories.webhook_events import WebhookEventsRepository


def make_row(received_at=None, **overrides):
    row = {
        "id": uuid4(),
        "provider": "razorpay",
        "event_id": f"evt_{uuid4().hex[:6]}",
        "event_type": "payment.captured",
        "processing_status": "failed",
        "payload": '{"event": "payment.captured"}',
        "attempts": 1,
        "next_retry_at": None,
        "last_error": "boom",
        "received_at": received_at,
        "processed_at": None,
    }
    row.update(overrides)
    return row


def make_repo():
    mock_pool = MagicMock()
    mock_conn = AsyncMock()
    mock_pool.acquire.return_value.__aenter__.return_value = mock_conn
    return WebhookEventsRepository(mock_pool), mock_conn


class TestClaimDueFailed:
    @pytest.mark.asyncio
    async def test_leases_due_rows_oldest_first(self):
        repo, conn = make_repo()
        late = make_row(received_at=datetime(2026, 3, 4, 12, tzinfo=timezone.utc))
        early = make_row(received_at=datetime(2026, 3, 4, 9, tzinfo=timezone.utc))
        conn.fetch.return_value = [late, early]

        events = await repo.claim_due_failed(limit=20)

        query, limit, lease = conn.fetch.call_args.args
        assert "FOR UPDATE SKIP LOCKED" in query
        assert "next_retry_at IS NOT NULL" in query
        assert (limit, lease) == (20, 5)
        assert [e.id for e in events] == [early["id"], late["id"]]
        assert events[0].processing_status == WebhookStatus.FAILED
        assert events[0].payload == {"event": "payment.captured"}


class TestMarkFailed:
    @pytest.mark.asyncio
    async def test_exhausted_clears_next_retry(self):
        repo, conn = make_repo()
        event_pk = uuid4()

        await repo.mark_failed(event_pk, 5, "still broken", None)

        assert conn.execute.call_args.args[1:] == (event_pk, 5, "still broken", None)

    @pytest.mark.asyncio
    async def test_mark_processed(self):
        repo, conn = make_repo()
        event_pk = uuid4()

        await repo.mark_processed(event_pk, 2)

        query = conn.execute.call_args.args[0]
        assert "processing_status = 'processed'" in query
        assert conn.execute.call_args.args[1:] == (event_pk, 2)
