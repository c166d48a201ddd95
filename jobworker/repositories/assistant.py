"""Repository for assistant inputs and suggestion outputs.

Support tickets and agent voice notes are read; ai_outputs and voice note
summaries are written. Writes are keyed so a re-run of the same job does
not duplicate suggestions.
"""

from typing import Any, Optional
from uuid import UUID

import structlog

from jobworker.repositories.utils import to_jsonb

logger = structlog.get_logger(__name__)


class AssistantRepository:
    def __init__(self, pool):
        self._pool = pool

    async def get_ticket(self, ticket_id: UUID) -> Optional[dict[str, Any]]:
        query = "SELECT id, message FROM support_tickets WHERE id = $1"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, ticket_id)
        return dict(row) if row else None

    async def get_voice_note(self, voice_note_id: UUID) -> Optional[dict[str, Any]]:
        query = "SELECT id, agent_id, note_text FROM agent_voice_notes WHERE id = $1"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, voice_note_id)
        return dict(row) if row else None

    async def save_suggestion(
        self,
        target_type: str,
        target_id: str,
        input_hash: str,
        output: dict[str, Any],
        confidence: float,
        provider: str = "fallback",
    ) -> bool:
        """Store a suggestion. Returns False if the same input was already processed."""
        query = """
            INSERT INTO ai_outputs (
                target_type, target_id, provider, input_hash, output, confidence, status
            )
            VALUES ($1, $2, $3, $4, $5::jsonb, $6, 'suggested')
            ON CONFLICT (target_type, target_id, input_hash) DO NOTHING
            RETURNING id
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                query,
                target_type,
                str(target_id),
                provider,
                input_hash,
                to_jsonb(output),
                confidence,
            )
        return row is not None

    async def upsert_voice_note_summary(
        self,
        voice_note_id: UUID,
        agent_id: UUID,
        summary: str,
        extracted: Optional[dict[str, Any]] = None,
    ) -> None:
        query = """
            INSERT INTO agent_voice_note_summaries (voice_note_id, agent_id, summary, extracted)
            VALUES ($1, $2, $3, $4::jsonb)
            ON CONFLICT (voice_note_id) DO UPDATE SET
                summary = EXCLUDED.summary,
                extracted = EXCLUDED.extracted,
                updated_at = now()
        """
        async with self._pool.acquire() as conn:
            await conn.execute(query, voice_note_id, agent_id, summary, to_jsonb(extracted))
