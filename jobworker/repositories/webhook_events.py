"""Repository for inbound provider webhook events."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog

from jobworker.jobs.types import WebhookStatus
from jobworker.repositories.utils import ensure_json

logger = structlog.get_logger(__name__)


@dataclass
class WebhookEvent:
    """A provider notification awaiting durable application."""

    id: UUID
    provider: str
    event_id: str
    event_type: str
    processing_status: WebhookStatus
    payload: dict = field(default_factory=dict)
    attempts: int = 0
    next_retry_at: Optional[datetime] = None
    last_error: Optional[str] = None
    received_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "WebhookEvent":
        """Create from database row."""
        return cls(
            id=row["id"],
            provider=row["provider"],
            event_id=row["event_id"],
            event_type=row["event_type"],
            processing_status=WebhookStatus(row["processing_status"]),
            payload=ensure_json(row.get("payload")) or {},
            attempts=row.get("attempts") or 0,
            next_retry_at=row.get("next_retry_at"),
            last_error=row.get("last_error"),
            received_at=row.get("received_at"),
            processed_at=row.get("processed_at"),
        )


class WebhookEventsRepository:
    """Reads due failed events and records reconciliation attempts."""

    def __init__(self, pool):
        self._pool = pool

    async def claim_due_failed(
        self, limit: int = 50, lease_minutes: int = 5
    ) -> list[WebhookEvent]:
        """Lease failed events whose next_retry_at has passed, oldest received first.

        next_retry_at is pushed forward by the lease so a concurrent sweep
        skips the rows; mark_processed / mark_failed overwrite it. Exhausted
        events have no next_retry_at and are never returned.
        """
        query = """
            WITH due AS (
                SELECT id FROM webhook_events
                WHERE processing_status = 'failed'
                  AND next_retry_at IS NOT NULL
                  AND next_retry_at <= now()
                ORDER BY received_at
                LIMIT $1
                FOR UPDATE SKIP LOCKED
            )
            UPDATE webhook_events w SET
                next_retry_at = now() + make_interval(mins => $2)
            FROM due
            WHERE w.id = due.id
            RETURNING w.*
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, limit, lease_minutes)
        events = [WebhookEvent.from_row(dict(r)) for r in rows]
        # UPDATE ... RETURNING does not preserve the CTE order
        events.sort(key=lambda e: (e.received_at is None, e.received_at or 0))
        return events

    async def mark_processed(self, event_pk: UUID, attempts: int) -> None:
        query = """
            UPDATE webhook_events SET
                processing_status = 'processed',
                attempts = $2,
                last_error = NULL,
                next_retry_at = NULL,
                processed_at = now()
            WHERE id = $1
        """
        async with self._pool.acquire() as conn:
            await conn.execute(query, event_pk, attempts)

    async def mark_failed(
        self,
        event_pk: UUID,
        attempts: int,
        last_error: str,
        next_retry_at: Optional[datetime],
    ) -> None:
        """Record a failed re-apply. next_retry_at=None leaves the event exhausted."""
        query = """
            UPDATE webhook_events SET
                processing_status = 'failed',
                attempts = $2,
                last_error = $3,
                next_retry_at = $4
            WHERE id = $1
        """
        async with self._pool.acquire() as conn:
            await conn.execute(query, event_pk, attempts, last_error, next_retry_at)

    async def get(self, event_pk: UUID) -> Optional[WebhookEvent]:
        query = "SELECT * FROM webhook_events WHERE id = $1"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, event_pk)
        return WebhookEvent.from_row(dict(row)) if row else None

    async def list_exhausted(self, min_attempts: int = 5, limit: int = 100) -> list[WebhookEvent]:
        """Failed events that will not be retried again (forensic records)."""
        query = """
            SELECT * FROM webhook_events
            WHERE processing_status = 'failed'
              AND next_retry_at IS NULL
              AND attempts >= $1
            ORDER BY received_at
            LIMIT $2
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, min_attempts, limit)
        return [WebhookEvent.from_row(dict(r)) for r in rows]
