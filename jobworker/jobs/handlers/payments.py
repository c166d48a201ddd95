"""Payment, refund and payout handlers."""

from typing import Any

import structlog

from jobworker.config import get_settings
from jobworker.core.resilience import best_effort
from jobworker.jobs.errors import EntityNotFoundError, JobValidationError
from jobworker.jobs.handlers.payload import int_param, require_uuid
from jobworker.jobs.models import Job
from jobworker.jobs.registry import EntityRef, default_registry
from jobworker.jobs.types import JobType, Severity
from jobworker.repositories.orders import GatewayState, OrdersRepository
from jobworker.repositories.payouts import PayoutsRepository
from jobworker.repositories.refunds import RefundsRepository
from jobworker.services.payment_gateway import RefundGateway

logger = structlog.get_logger(__name__)


@default_registry.handler(JobType.PAYMENTS_CLEANUP_STALE)
async def handle_payments_cleanup_stale(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Fail orders whose payment has sat in 'initiated' past the threshold.

    Idempotent: a re-run only touches rows still matching the predicate.

    Job Payload:
        threshold_minutes: int (default 60)
    """
    threshold_minutes = int_param(job.payload, "threshold_minutes", 60)
    affected = await OrdersRepository(ctx["pool"]).fail_stale_initiated(threshold_minutes)

    await ctx["audit"].log_workflow_event(
        "payments",
        None,
        "PAYMENT_STALE_FAILED",
        metadata={
            "threshold_minutes": threshold_minutes,
            "affected": affected,
            "job_id": str(job.id),
        },
    )
    logger.info("stale_payments_failed", affected=affected, threshold_minutes=threshold_minutes)
    return {"affected": affected}


@default_registry.handler(JobType.PAYMENTS_RECONCILE_RECENT)
async def handle_payments_reconcile_recent(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Reconcile stale payments against the latest recorded provider event.

    A captured event is applied through apply_gateway_state, which dedupes
    by (provider, event_id). Anything else raises a stale_payment ops item.
    Errors on one order are logged and do not fail the job.

    Job Payload:
        threshold_minutes: int (default 60)
        batch_size: int (default 200)
    """
    threshold_minutes = int_param(job.payload, "threshold_minutes", 60)
    batch_size = int_param(job.payload, "batch_size", 200)

    orders = OrdersRepository(ctx["pool"])
    ops_inbox = ctx["ops_inbox"]
    stale = await orders.list_stale_payments(threshold_minutes, limit=batch_size)

    applied = 0
    flagged = 0
    errors = 0
    for order in stale:
        try:
            event = await orders.latest_payment_event(order.id)
            if event and event.status and event.status.lower() == "captured":
                state = GatewayState(
                    provider=event.provider,
                    event_id=str(event.id),
                    event_type=event.event_type,
                    payment_order_id=order.payment_order_id,
                    payment_id=event.provider_payment_id,
                    order_id=order.id,
                    status=event.status,
                    amount=event.amount,
                    payload=event.metadata,
                )
                if await orders.apply_gateway_state(state):
                    applied += 1
            else:
                await ops_inbox.upsert(
                    item_type="stale_payment",
                    entity_type="order",
                    entity_id=order.id,
                    severity=Severity.MEDIUM.value,
                    summary=f"Stale payment for order {order.id}",
                    metadata={
                        "payment_status": order.payment_status,
                        "updated_at": order.updated_at,
                    },
                )
                flagged += 1
        except Exception as e:
            errors += 1
            logger.error("payment_reconcile_order_failed", order_id=str(order.id), error=str(e))

    logger.info(
        "payments_reconciled",
        selected=len(stale),
        applied=applied,
        flagged=flagged,
        errors=errors,
    )
    return {"selected": len(stale), "applied": applied, "flagged": flagged, "errors": errors}


@default_registry.handler(JobType.REFUND_INITIATE, entity=EntityRef("refund", "refund_id"))
async def handle_refund_initiate(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Initiate an approved refund at the provider.

    Re-running on a refund that is already initiated is a no-op. The provider
    call is keyed by refund id, so a re-run after a crash never refunds
    twice. A provider failure marks the refund failed, opens a
    refund_pending_review item and re-raises so the job is retried.

    Job Payload:
        refund_id: UUID (required)
    """
    refund_id = require_uuid(job.payload, "refund_id")
    refunds = RefundsRepository(ctx["pool"])

    refund = await refunds.get(refund_id)
    if refund is None:
        raise EntityNotFoundError(f"refund not found: {refund_id}")
    if refund.status == "initiated":
        logger.info("refund_already_initiated", refund_id=str(refund_id))
        return {"refund_id": str(refund_id), "provider_refund_id": refund.provider_refund_id}
    if refund.status != "approved":
        raise JobValidationError(f"refund not approved: {refund_id} ({refund.status})")

    settings = ctx.get("settings") or get_settings()
    gateway = ctx.get("refund_gateway") or RefundGateway.from_settings(settings)
    try:
        provider_refund_id = await gateway.create_refund(
            str(refund_id), refund.payment_id, refund.amount
        )
    except Exception as e:
        await refunds.mark_failed(refund_id)
        await best_effort(
            ctx["ops_inbox"].upsert(
                item_type="refund_pending_review",
                entity_type="refund",
                entity_id=refund_id,
                severity=Severity.HIGH.value,
                summary=f"Refund initiate failed for {refund_id}",
                metadata={"error": str(e)},
            ),
            "refund_ops_item_failed",
            refund_id=str(refund_id),
        )
        raise

    # A failure here leaves the refund approved; the retry repeats the keyed
    # provider call and gets the same refund back.
    await refunds.mark_initiated(refund_id, provider_refund_id)

    logger.info(
        "refund_initiated", refund_id=str(refund_id), provider_refund_id=provider_refund_id
    )
    return {"refund_id": str(refund_id), "provider_refund_id": provider_refund_id}


@default_registry.handler(JobType.PAYOUTS_REMINDER_QUEUE)
async def handle_payouts_reminder_queue(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Raise payout_pending items for payouts queued past the threshold.

    Job Payload:
        threshold_hours: int (default 48)
    """
    hours = int_param(job.payload, "threshold_hours", 48)
    payouts = await PayoutsRepository(ctx["pool"]).list_queued_older_than(hours)

    for payout in payouts:
        await best_effort(
            ctx["ops_inbox"].upsert(
                item_type="payout_pending",
                entity_type="order",
                entity_id=payout["order_id"],
                severity=Severity.MEDIUM.value,
                summary=f"Payout queued for {payout['order_id']} for {hours}h",
                metadata={
                    "payout_job_id": str(payout["id"]),
                    "created_at": payout["created_at"],
                },
            ),
            "payout_ops_item_failed",
            payout_job_id=str(payout["id"]),
        )

    return {"reminded": len(payouts)}
