"""Repository for refund requests."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class RefundRequest:
    id: UUID
    order_id: UUID
    status: str
    amount: Optional[Decimal]
    payment_id: Optional[str]
    provider_refund_id: Optional[str]


class RefundsRepository:
    def __init__(self, pool):
        self._pool = pool

    async def get(self, refund_id: UUID) -> Optional[RefundRequest]:
        query = """
            SELECT r.id, r.order_id, r.status, r.amount, r.provider_refund_id,
                   o.payment_id
            FROM refund_requests r
            LEFT JOIN market_orders o ON o.id = r.order_id
            WHERE r.id = $1
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, refund_id)
        if not row:
            return None
        return RefundRequest(
            id=row["id"],
            order_id=row["order_id"],
            status=row["status"],
            amount=row["amount"],
            payment_id=row["payment_id"],
            provider_refund_id=row["provider_refund_id"],
        )

    async def mark_initiated(self, refund_id: UUID, provider_refund_id: str) -> None:
        query = """
            UPDATE refund_requests SET
                status = 'initiated',
                provider_refund_id = $2,
                updated_at = now()
            WHERE id = $1 AND status = 'approved'
        """
        async with self._pool.acquire() as conn:
            await conn.execute(query, refund_id, provider_refund_id)

    async def mark_failed(self, refund_id: UUID) -> None:
        query = """
            UPDATE refund_requests SET
                status = 'failed',
                updated_at = now()
            WHERE id = $1
        """
        async with self._pool.acquire() as conn:
            await conn.execute(query, refund_id)
