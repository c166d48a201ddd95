"""Webhook reconciliation - re-applies failed provider events with backoff."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog

from jobworker.core.resilience import best_effort
from jobworker.jobs.backoff import next_delay_seconds
from jobworker.jobs.types import Severity
from jobworker.repositories.orders import GatewayState
from jobworker.repositories.webhook_events import WebhookEvent

logger = structlog.get_logger(__name__)

WEBHOOK_FAILED_ITEM = "webhook_failed"
WEBHOOK_RETRY_FAILED = "WEBHOOK_RETRY_FAILED"


@dataclass
class SweepResult:
    """Counts from one reconciliation sweep."""

    selected: int = 0
    processed: int = 0
    failed: int = 0
    exhausted: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "selected": self.selected,
            "processed": self.processed,
            "failed": self.failed,
            "exhausted": self.exhausted,
        }


def _dig(data: Any, *path: str) -> Optional[Any]:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def gateway_state_from_event(event: WebhookEvent) -> GatewayState:
    """Extract order ref, payment id and status from a Razorpay-style envelope.

    The stored body looks like ``{"event": ..., "payload": {"payment":
    {"entity": {...}}, "order": {"entity": {...}}}}``. Missing parts are
    left as None; apply_gateway_state decides whether they suffice.
    """
    body = event.payload or {}
    payment = _dig(body, "payload", "payment", "entity") or {}
    order = _dig(body, "payload", "order", "entity") or {}

    payment_order_id = order.get("id") or payment.get("order_id")
    return GatewayState(
        provider=event.provider,
        event_id=event.event_id,
        event_type=event.event_type,
        payment_order_id=payment_order_id,
        payment_id=payment.get("id"),
        status=payment.get("status"),
        payload=body,
    )


class WebhookReconciler:
    """Sweeps failed webhook events and re-applies them.

    Each attempt increments the event's attempt counter. Failures are
    rescheduled with the job backoff table; once the table yields no delay
    or max_attempts is reached the event is left failed with no
    next_retry_at and surfaced in the ops inbox. Rows are never deleted.
    """

    def __init__(self, events_repo, orders_repo, audit, ops_inbox, max_attempts: int = 5):
        self._events = events_repo
        self._orders = orders_repo
        self._audit = audit
        self._ops_inbox = ops_inbox
        self._max_attempts = max_attempts

    async def sweep(self, limit: int = 50) -> SweepResult:
        result = SweepResult()
        events = await self._events.claim_due_failed(limit)
        result.selected = len(events)

        for event in events:
            attempts = event.attempts + 1
            log = logger.bind(
                webhook_event_id=str(event.id),
                provider=event.provider,
                event_id=event.event_id,
                attempts=attempts,
            )
            try:
                applied = await self._orders.apply_gateway_state(gateway_state_from_event(event))
            except Exception as e:
                result.failed += 1
                result.errors.append(f"{event.event_id}: {e}")
                try:
                    if await self._record_failure(event, attempts, e, log):
                        result.exhausted += 1
                except Exception as bookkeeping_error:
                    # Lease still holds; the event comes back once it expires
                    log.error("webhook_event_mark_failed_error", error=str(bookkeeping_error))
                    result.errors.append(f"{event.event_id}: {bookkeeping_error}")
                continue

            try:
                await self._events.mark_processed(event.id, attempts)
            except Exception as e:
                # Re-applying later is a no-op, apply_gateway_state dedupes by event
                log.error("webhook_event_mark_processed_error", applied=applied, error=str(e))
                result.errors.append(f"{event.event_id}: {e}")
                continue

            result.processed += 1
            log.info("webhook_event_reconciled", applied=applied)

        logger.info("webhook_sweep_completed", **result.to_dict())
        return result

    async def _record_failure(self, event: WebhookEvent, attempts: int, error: Exception, log) -> bool:
        message = str(error) or type(error).__name__
        delay = next_delay_seconds(attempts)
        exhausted = attempts >= self._max_attempts or delay == 0
        next_retry_at = (
            None
            if exhausted
            else datetime.now(timezone.utc) + timedelta(seconds=delay)
        )

        await self._events.mark_failed(event.id, attempts, message, next_retry_at)

        if not exhausted:
            log.warning("webhook_event_retry_scheduled", error=message, delay_s=delay)
            return False

        log.error("webhook_event_exhausted", error=message)
        await best_effort(
            self._ops_inbox.upsert(
                item_type=WEBHOOK_FAILED_ITEM,
                entity_type="webhook_event",
                entity_id=event.id,
                severity=Severity.HIGH.value,
                summary=(
                    f"Webhook {event.provider}/{event.event_type} failed "
                    f"after {attempts} attempts"
                ),
                metadata={"event_id": event.event_id, "last_error": message},
            ),
            "webhook_ops_item_failed",
            webhook_event_id=str(event.id),
        )
        await self._audit.log_security_event(
            WEBHOOK_RETRY_FAILED,
            Severity.HIGH.value,
            subject_key=str(event.id),
            metadata={
                "event_id": event.event_id,
                "provider": event.provider,
                "attempts": attempts,
            },
        )
        return True
