"""Repository for market orders and payment state.

``apply_gateway_state`` is the single write path for provider truth. It is
keyed by (provider, event_id) through the payment_applied_events table, so
re-delivering the same provider event has no further effect.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog

from jobworker.repositories.utils import ensure_json, to_jsonb

logger = structlog.get_logger(__name__)

# Provider payment status -> market_orders.payment_status
_PAYMENT_STATUS_MAP = {
    "created": "initiated",
    "authorized": "authorized",
    "captured": "captured",
    "paid": "captured",
    "refunded": "refunded",
    "failed": "failed",
    "failed_to_capture": "failed",
    "error": "failed",
}


@dataclass
class GatewayState:
    """Provider-reported payment state for one event."""

    provider: str
    event_id: str
    event_type: str
    payment_order_id: Optional[str] = None
    payment_id: Optional[str] = None
    order_id: Optional[UUID] = None
    status: Optional[str] = None
    amount: Optional[Decimal] = None
    payload: dict = field(default_factory=dict)

    @property
    def payment_status(self) -> Optional[str]:
        if not self.status:
            return None
        return _PAYMENT_STATUS_MAP.get(self.status.lower())


@dataclass
class StaleOrder:
    id: UUID
    payment_status: str
    payment_order_id: Optional[str]
    updated_at: datetime


@dataclass
class PaymentEvent:
    id: UUID
    order_id: UUID
    provider: str
    event_type: str
    status: Optional[str]
    provider_payment_id: Optional[str]
    amount: Optional[Decimal]
    metadata: dict
    created_at: datetime


class OrdersRepository:
    """Repository for market_orders, payment_events and payment_applied_events."""

    def __init__(self, pool):
        self._pool = pool

    async def fail_stale_initiated(self, threshold_minutes: int) -> int:
        """Mark initiated payments older than the threshold as failed.

        Only rows still matching the stale predicate are touched, so a
        re-run affects nothing new.
        """
        query = """
            UPDATE market_orders SET
                payment_status = 'failed',
                updated_at = now()
            WHERE payment_status = 'initiated'
              AND updated_at < now() - make_interval(mins => $1)
            RETURNING id
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, threshold_minutes)
        return len(rows)

    async def list_stale_payments(
        self,
        threshold_minutes: int,
        statuses: tuple[str, ...] = ("initiated", "authorized"),
        limit: int = 200,
    ) -> list[StaleOrder]:
        query = """
            SELECT id, payment_status, payment_order_id, updated_at
            FROM market_orders
            WHERE payment_status = ANY($1::text[])
              AND updated_at < now() - make_interval(mins => $2)
            ORDER BY updated_at
            LIMIT $3
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, list(statuses), threshold_minutes, limit)
        return [
            StaleOrder(
                id=r["id"],
                payment_status=r["payment_status"],
                payment_order_id=r["payment_order_id"],
                updated_at=r["updated_at"],
            )
            for r in rows
        ]

    async def list_stuck_orders(
        self, status: str, older_than_hours: int, limit: int = 100
    ) -> list[dict[str, Any]]:
        """Orders sitting in ``status`` with no update for the given hours."""
        query = """
            SELECT id, farmer_id, buyer_id, updated_at
            FROM market_orders
            WHERE status = $1
              AND updated_at < now() - make_interval(hours => $2)
            ORDER BY updated_at
            LIMIT $3
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, status, older_than_hours, limit)
        return [dict(r) for r in rows]

    async def latest_payment_event(self, order_id: UUID) -> Optional[PaymentEvent]:
        query = """
            SELECT * FROM payment_events
            WHERE order_id = $1
            ORDER BY created_at DESC
            LIMIT 1
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, order_id)
        if not row:
            return None
        return PaymentEvent(
            id=row["id"],
            order_id=row["order_id"],
            provider=row["provider"],
            event_type=row["event_type"],
            status=row["status"],
            provider_payment_id=row["provider_payment_id"],
            amount=row["amount"],
            metadata=ensure_json(row["metadata"]) or {},
            created_at=row["created_at"],
        )

    async def apply_gateway_state(self, state: GatewayState) -> bool:
        """Apply provider payment state exactly once per (provider, event_id).

        Returns True when the state was applied, False when the event had
        already been applied earlier.

        Raises:
            LookupError: no order matches the internal id or payment_order_id
        """
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                claimed = await conn.fetchval(
                    """
                    INSERT INTO payment_applied_events (provider, event_id, event_type)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (provider, event_id) DO NOTHING
                    RETURNING event_id
                    """,
                    state.provider,
                    state.event_id,
                    state.event_type,
                )
                if claimed is None:
                    logger.info(
                        "gateway_state_already_applied",
                        provider=state.provider,
                        event_id=state.event_id,
                    )
                    return False

                order_id = await conn.fetchval(
                    """
                    SELECT id FROM market_orders
                    WHERE ($1::uuid IS NOT NULL AND id = $1)
                       OR ($2::text IS NOT NULL AND payment_order_id = $2)
                    LIMIT 1
                    FOR UPDATE
                    """,
                    state.order_id,
                    state.payment_order_id,
                )
                if order_id is None:
                    # Rolls back the dedupe row so a later retry can apply it
                    raise LookupError(
                        f"no order for provider event {state.provider}/{state.event_id}"
                    )

                payment_status = state.payment_status
                if payment_status:
                    await conn.execute(
                        """
                        UPDATE market_orders SET
                            payment_status = $2,
                            payment_id = COALESCE($3, payment_id),
                            updated_at = now()
                        WHERE id = $1
                        """,
                        order_id,
                        payment_status,
                        state.payment_id,
                    )

                await conn.execute(
                    """
                    INSERT INTO payment_events (
                        order_id, provider, event_type, status,
                        provider_payment_id, amount, metadata
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb)
                    """,
                    order_id,
                    state.provider,
                    state.event_type,
                    state.status,
                    state.payment_id,
                    state.amount,
                    to_jsonb({"source_event_id": state.event_id, **state.payload}),
                )

        logger.info(
            "gateway_state_applied",
            provider=state.provider,
            event_id=state.event_id,
            order_id=str(order_id),
            payment_status=payment_status,
        )
        return True
