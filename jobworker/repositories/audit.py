"""Audit sink: security and workflow events.

Both writers are best-effort. A failing audit insert is logged and
swallowed so that it can never change a job outcome.
"""

from typing import Any, Optional

import structlog

from jobworker.core.resilience import best_effort
from jobworker.repositories.utils import ensure_json, to_jsonb

logger = structlog.get_logger(__name__)


class AuditRepository:
    """Writes to security_events and workflow_events."""

    def __init__(self, pool):
        self._pool = pool

    async def log_security_event(
        self,
        event_type: str,
        severity: str,
        subject_key: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """Record a security event. Never raises."""
        query = """
            INSERT INTO security_events (event_type, severity, subject_key, metadata)
            VALUES ($1, $2, $3, $4::jsonb)
        """
        await best_effort(
            self._execute(query, event_type, severity, subject_key, to_jsonb(metadata)),
            "security_event_log_failed",
            event_type=event_type,
            subject_key=subject_key,
        )

    async def log_workflow_event(
        self,
        entity_type: str,
        entity_id: Optional[str],
        event_type: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """Record a workflow event. Never raises."""
        query = """
            INSERT INTO workflow_events (entity_type, entity_id, event_type, metadata)
            VALUES ($1, $2, $3, $4::jsonb)
        """
        await best_effort(
            self._execute(query, entity_type, entity_id, event_type, to_jsonb(metadata)),
            "workflow_event_log_failed",
            entity_type=entity_type,
            event_type=event_type,
        )

    async def list_workflow_events(
        self, entity_type: str, entity_id: str, limit: int = 50
    ) -> list[dict[str, Any]]:
        """Most recent workflow events for one entity, newest first."""
        query = """
            SELECT event_type, created_at, metadata
            FROM workflow_events
            WHERE entity_type = $1 AND entity_id = $2
            ORDER BY created_at DESC
            LIMIT $3
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, entity_type, entity_id, limit)
        return [
            {
                "event_type": r["event_type"],
                "created_at": r["created_at"],
                "metadata": ensure_json(r["metadata"]) or {},
            }
            for r in rows
        ]

    async def _execute(self, query: str, *args: Any) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(query, *args)
