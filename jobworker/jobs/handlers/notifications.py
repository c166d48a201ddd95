"""Notification delivery handler."""

from typing import Any

import structlog

from jobworker.jobs.errors import EntityNotFoundError
from jobworker.jobs.handlers.payload import require_uuid
from jobworker.jobs.models import Job
from jobworker.jobs.registry import EntityRef, default_registry
from jobworker.jobs.types import JobType
from jobworker.repositories.notifications import NotificationsRepository

logger = structlog.get_logger(__name__)


@default_registry.handler(
    JobType.NOTIFY_DELIVER, entity=EntityRef("notification", "notification_id")
)
async def handle_notify_deliver(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Mark a notification delivered.

    Idempotent: delivered_at keeps its first value on re-runs.

    Job Payload:
        notification_id: UUID (required)
    """
    notification_id = require_uuid(job.payload, "notification_id")

    repo = NotificationsRepository(ctx["pool"])
    if not await repo.mark_delivered(notification_id):
        raise EntityNotFoundError(f"notification not found: {notification_id}")

    await ctx["audit"].log_workflow_event(
        "notification",
        str(notification_id),
        "NOTIFICATION_DELIVERED",
        metadata={"job_id": str(job.id)},
    )

    logger.info("notification_delivered", notification_id=str(notification_id))
    return {"notification_id": str(notification_id), "delivered": True}
