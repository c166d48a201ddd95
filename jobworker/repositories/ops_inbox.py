"""Repository for ops inbox items (deduplicated operational alerts)."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog

from jobworker.repositories.utils import ensure_json, to_jsonb

logger = structlog.get_logger(__name__)


@dataclass
class UpsertResult:
    """Result from upserting an ops inbox item."""

    id: UUID
    is_new: bool
    reopened: bool = False


@dataclass
class OpsInboxItem:
    """Operational alert keyed by (item_type, entity_type, entity_id)."""

    id: UUID
    item_type: str
    entity_type: str
    entity_id: str
    severity: str
    summary: str
    status: str
    metadata: dict = field(default_factory=dict)
    occurrence_count: int = 1
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "OpsInboxItem":
        """Create from database row."""
        return cls(
            id=row["id"],
            item_type=row["item_type"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            severity=row["severity"],
            summary=row["summary"],
            status=row["status"],
            metadata=ensure_json(row.get("metadata")) or {},
            occurrence_count=row.get("occurrence_count", 1),
            resolved_at=row.get("resolved_at"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


class OpsInboxRepository:
    """Repository for ops_inbox_items with natural-key deduplication."""

    def __init__(self, pool):
        """Initialize with database pool."""
        self._pool = pool

    async def upsert(
        self,
        item_type: str,
        entity_type: str,
        entity_id: Any,
        severity: str,
        summary: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> UpsertResult:
        """
        Insert or refresh the item for a natural key.

        A second detection overwrites severity, summary and metadata and
        bumps occurrence_count. A resolved item is re-opened, so the table
        never holds two rows for the same key.
        """
        query = """
            INSERT INTO ops_inbox_items (
                item_type, entity_type, entity_id, severity, summary, metadata, status
            )
            VALUES ($1, $2, $3, $4, $5, $6::jsonb, 'open')
            ON CONFLICT (item_type, entity_type, entity_id) DO UPDATE SET
                severity = EXCLUDED.severity,
                summary = EXCLUDED.summary,
                metadata = EXCLUDED.metadata,
                status = 'open',
                resolved_at = NULL,
                occurrence_count = ops_inbox_items.occurrence_count + 1,
                updated_at = now()
            RETURNING id, (xmax = 0) AS is_new
        """

        # Read the current status first so a re-open can be reported
        existing_query = """
            SELECT status FROM ops_inbox_items
            WHERE item_type = $1 AND entity_type = $2 AND entity_id = $3
        """

        entity_key = str(entity_id)
        async with self._pool.acquire() as conn:
            existing_row = await conn.fetchrow(
                existing_query, item_type, entity_type, entity_key
            )
            previous_status = existing_row["status"] if existing_row else None

            row = await conn.fetchrow(
                query,
                item_type,
                entity_type,
                entity_key,
                severity,
                summary,
                to_jsonb(metadata),
            )

        is_new = row["is_new"]
        reopened = not is_new and previous_status == "resolved"

        logger.info(
            "ops_item_upserted",
            item_id=str(row["id"]),
            item_type=item_type,
            entity_type=entity_type,
            entity_id=entity_key,
            severity=severity,
            is_new=is_new,
            reopened=reopened,
        )
        return UpsertResult(id=row["id"], is_new=is_new, reopened=reopened)

    async def resolve(self, item_id: UUID) -> Optional[OpsInboxItem]:
        """
        Resolve an open item by ID.

        Idempotent: returns the item even if it was already resolved.
        """
        query = """
            UPDATE ops_inbox_items
            SET status = 'resolved', resolved_at = now(), updated_at = now()
            WHERE id = $1 AND status = 'open'
            RETURNING *
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, item_id)

        if row:
            logger.info("ops_item_resolved", item_id=str(item_id))
            return OpsInboxItem.from_row(dict(row))

        return await self.get(item_id)

    async def get(self, item_id: UUID) -> Optional[OpsInboxItem]:
        """Get item by ID."""
        query = "SELECT * FROM ops_inbox_items WHERE id = $1"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, item_id)
        return OpsInboxItem.from_row(dict(row)) if row else None

    async def get_by_key(
        self, item_type: str, entity_type: str, entity_id: Any
    ) -> Optional[OpsInboxItem]:
        query = """
            SELECT * FROM ops_inbox_items
            WHERE item_type = $1 AND entity_type = $2 AND entity_id = $3
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, item_type, entity_type, str(entity_id))
        return OpsInboxItem.from_row(dict(row)) if row else None

    async def list_open(
        self, item_type: Optional[str] = None, limit: int = 100
    ) -> list[OpsInboxItem]:
        """Open items, most recently updated first."""
        if item_type:
            query = """
                SELECT * FROM ops_inbox_items
                WHERE status = 'open' AND item_type = $1
                ORDER BY updated_at DESC
                LIMIT $2
            """
            params: list[Any] = [item_type, limit]
        else:
            query = """
                SELECT * FROM ops_inbox_items
                WHERE status = 'open'
                ORDER BY updated_at DESC
                LIMIT $1
            """
            params = [limit]

        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [OpsInboxItem.from_row(dict(r)) for r in rows]
