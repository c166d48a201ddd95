"""Assistant suggestion handlers (heuristic fallback provider).

Suggestions are keyed by (target_type, target_id, input_hash); running a
job again on unchanged input writes nothing new.
"""

from typing import Any

import structlog

from jobworker.jobs.errors import EntityNotFoundError
from jobworker.jobs.handlers.payload import require, require_uuid
from jobworker.jobs.models import Job
from jobworker.jobs.registry import EntityRef, default_registry
from jobworker.jobs.types import JobType
from jobworker.repositories.assistant import AssistantRepository
from jobworker.services.triage import (
    TIMELINE_CONFIDENCE,
    TRIAGE_CONFIDENCE,
    summarize_timeline,
    summarize_voice_note,
    ticket_input_hash,
    timeline_input_hash,
    triage_ticket,
)

logger = structlog.get_logger(__name__)

TIMELINE_EVENT_LIMIT = 50


@default_registry.handler(JobType.AI_TICKET_TRIAGE, entity=EntityRef("ticket", "ticket_id"))
async def handle_ai_ticket_triage(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Suggest category, priority and extracted entities for a support ticket.

    Job Payload:
        ticket_id: UUID (required)
    """
    ticket_id = require_uuid(job.payload, "ticket_id")
    repo = AssistantRepository(ctx["pool"])

    ticket = await repo.get_ticket(ticket_id)
    if ticket is None:
        raise EntityNotFoundError(f"ticket not found: {ticket_id}")

    message = ticket.get("message") or ""
    triage = triage_ticket(message)
    created = await repo.save_suggestion(
        target_type="ticket",
        target_id=str(ticket_id),
        input_hash=ticket_input_hash(message),
        output=triage.to_output(),
        confidence=TRIAGE_CONFIDENCE,
    )

    logger.info(
        "ticket_triaged",
        ticket_id=str(ticket_id),
        category=triage.category,
        priority=triage.priority,
        created=created,
    )
    return {"category": triage.category, "priority": triage.priority, "created": created}


@default_registry.handler(JobType.AI_TIMELINE_SUMMARY)
async def handle_ai_timeline_summary(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Summarize the recent workflow timeline of an entity.

    Job Payload:
        entity_type: str (required)
        entity_id: str (required)
    """
    entity_type = str(require(job.payload, "entity_type"))
    entity_id = str(require(job.payload, "entity_id"))

    events = await ctx["audit"].list_workflow_events(
        entity_type, entity_id, limit=TIMELINE_EVENT_LIMIT
    )
    output = summarize_timeline(entity_type, entity_id, events)

    created = await AssistantRepository(ctx["pool"]).save_suggestion(
        target_type="timeline",
        target_id=entity_id,
        input_hash=timeline_input_hash(entity_type, entity_id, len(events)),
        output=output,
        confidence=TIMELINE_CONFIDENCE,
    )
    return {"event_count": output["event_count"], "anomalies": output["anomalies"], "created": created}


@default_registry.handler(
    JobType.AI_VOICE_NOTE_SUMMARY, entity=EntityRef("voice_note", "voice_note_id")
)
async def handle_ai_voice_note_summary(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """Payload: voice_note_id (required). Upserts the summary for the note."""
    voice_note_id = require_uuid(job.payload, "voice_note_id")
    repo = AssistantRepository(ctx["pool"])

    note = await repo.get_voice_note(voice_note_id)
    if note is None:
        raise EntityNotFoundError(f"voice note not found: {voice_note_id}")

    summary = summarize_voice_note(note.get("note_text") or "")
    await repo.upsert_voice_note_summary(note["id"], note["agent_id"], summary, extracted={})
    return {"voice_note_id": str(voice_note_id), "summary_chars": len(summary)}
