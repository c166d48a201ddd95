"""Handlers that run the reconciliation loops as jobs."""

from typing import Any

from jobworker.config import get_settings
from jobworker.jobs.handlers.payload import int_param
from jobworker.jobs.models import Job
from jobworker.jobs.registry import default_registry
from jobworker.jobs.types import JobType
from jobworker.repositories.orders import OrdersRepository
from jobworker.repositories.payouts import PayoutsRepository
from jobworker.repositories.webhook_events import WebhookEventsRepository
from jobworker.services.ops_inbox import OpsInboxScanner
from jobworker.services.webhooks import WebhookReconciler


def build_reconciler(pool, audit, ops_inbox, settings=None) -> WebhookReconciler:
    settings = settings or get_settings()
    return WebhookReconciler(
        WebhookEventsRepository(pool),
        OrdersRepository(pool),
        audit,
        ops_inbox,
        max_attempts=settings.webhook_max_attempts,
    )


def build_scanner(pool, ops_inbox, settings=None) -> OpsInboxScanner:
    return OpsInboxScanner(
        OrdersRepository(pool),
        PayoutsRepository(pool),
        WebhookEventsRepository(pool),
        ops_inbox,
        settings or get_settings(),
    )


@default_registry.handler(JobType.WEBHOOK_RETRY_FAILED)
async def handle_webhook_retry_failed(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Sweep failed webhook events that are due for another attempt.

    Job Payload:
        limit: int (default settings.webhook_retry_limit)
    """
    settings = ctx.get("settings") or get_settings()
    limit = int_param(job.payload, "limit", settings.webhook_retry_limit)
    reconciler = build_reconciler(ctx["pool"], ctx["audit"], ctx["ops_inbox"], settings)
    result = await reconciler.sweep(limit)
    return result.to_dict()


@default_registry.handler(JobType.OPS_INBOX_SCAN)
async def handle_ops_inbox_scan(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """Run every ops inbox rule once."""
    scanner = build_scanner(ctx["pool"], ctx["ops_inbox"], ctx.get("settings"))
    result = await scanner.scan()
    return result.to_dict()
