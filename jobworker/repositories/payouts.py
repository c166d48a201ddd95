"""Repository for payout jobs (seller settlements)."""

from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class PayoutsRepository:
    def __init__(self, pool):
        self._pool = pool

    async def list_queued_older_than(
        self, hours: int, limit: int = 200
    ) -> list[dict[str, Any]]:
        """Payouts still queued after ``hours``, oldest first."""
        query = """
            SELECT id, order_id, created_at
            FROM payout_jobs
            WHERE status = 'queued'
              AND created_at < now() - make_interval(hours => $1)
            ORDER BY created_at
            LIMIT $2
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, hours, limit)
        return [dict(r) for r in rows]
