"""Repository for user notifications."""

from uuid import UUID

import structlog

logger = structlog.get_logger(__name__)


class NotificationsRepository:
    def __init__(self, pool):
        self._pool = pool

    async def mark_delivered(self, notification_id: UUID) -> bool:
        """Stamp delivered_at once; later calls keep the first timestamp.

        Returns False when no notification has this id.
        """
        query = """
            UPDATE notifications
            SET delivered_at = COALESCE(delivered_at, now())
            WHERE id = $1
            RETURNING id
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, notification_id)
        return row is not None
