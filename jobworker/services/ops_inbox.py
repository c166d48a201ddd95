"""Ops inbox scanner - turns stuck business entities into open ops items.

The scanner is stateless. Every run re-evaluates each rule and upserts by
natural key, so repeated scans refresh the same items instead of piling up
duplicates.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

from jobworker.config import Settings
from jobworker.jobs.types import Severity

logger = structlog.get_logger(__name__)


@dataclass
class OpsMatch:
    """One entity a rule flagged."""

    entity_type: str
    entity_id: Any
    summary: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ScanRule:
    item_type: str
    severity: Severity
    find: Callable[[], Awaitable[list[OpsMatch]]]


@dataclass
class ScanResult:
    """Result of a scan across all rules."""

    upserted: int = 0
    by_rule: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "upserted": self.upserted,
            "by_rule": dict(self.by_rule),
            "errors": list(self.errors),
        }


class OpsInboxScanner:
    """Evaluates the fixed rule set and upserts matches into the ops inbox."""

    def __init__(self, orders_repo, payouts_repo, events_repo, ops_inbox, settings: Settings):
        self._orders = orders_repo
        self._payouts = payouts_repo
        self._events = events_repo
        self._ops_inbox = ops_inbox
        self._settings = settings

    def rules(self) -> list[ScanRule]:
        return [
            ScanRule("stuck_order", Severity.HIGH, self._stuck_orders),
            ScanRule("stale_payment", Severity.MEDIUM, self._stale_payments),
            ScanRule("payout_overdue", Severity.MEDIUM, self._overdue_payouts),
            ScanRule("webhook_failed", Severity.HIGH, self._exhausted_webhooks),
        ]

    async def scan(self) -> ScanResult:
        result = ScanResult()

        for rule in self.rules():
            try:
                matches = await rule.find()
                for match in matches:
                    await self._ops_inbox.upsert(
                        item_type=rule.item_type,
                        entity_type=match.entity_type,
                        entity_id=match.entity_id,
                        severity=rule.severity.value,
                        summary=match.summary,
                        metadata=match.metadata,
                    )
                    result.upserted += 1
                    result.by_rule[rule.item_type] = result.by_rule.get(rule.item_type, 0) + 1
                result.by_rule.setdefault(rule.item_type, 0)
            except Exception as e:
                logger.error("ops_scan_rule_error", item_type=rule.item_type, error=str(e))
                result.errors.append(f"{rule.item_type}: {e}")

        logger.info(
            "ops_scan_completed",
            upserted=result.upserted,
            by_rule=result.by_rule,
            errors=len(result.errors),
        )
        return result

    async def _stuck_orders(self) -> list[OpsMatch]:
        hours = self._settings.ops_stuck_order_hours
        rows = await self._orders.list_stuck_orders("ready_for_pickup", hours)
        return [
            OpsMatch(
                entity_type="order",
                entity_id=row["id"],
                summary=(
                    f"Order ready_for_pickup for {hours}h+, "
                    f"last update: {row['updated_at']}"
                ),
                metadata={"farmer_id": row.get("farmer_id"), "buyer_id": row.get("buyer_id")},
            )
            for row in rows
        ]

    async def _stale_payments(self) -> list[OpsMatch]:
        minutes = self._settings.ops_stale_payment_minutes
        orders = await self._orders.list_stale_payments(minutes, statuses=("initiated",))
        return [
            OpsMatch(
                entity_type="order",
                entity_id=order.id,
                summary=f"Payment initiated for {minutes}m+ on order {order.id}",
                metadata={
                    "payment_status": order.payment_status,
                    "payment_order_id": order.payment_order_id,
                    "updated_at": order.updated_at,
                },
            )
            for order in orders
        ]

    async def _overdue_payouts(self) -> list[OpsMatch]:
        hours = self._settings.ops_payout_overdue_hours
        rows = await self._payouts.list_queued_older_than(hours)
        return [
            OpsMatch(
                entity_type="payout",
                entity_id=row["id"],
                summary=f"Payout for order {row['order_id']} queued for {hours}h+",
                metadata={"order_id": row["order_id"], "created_at": row["created_at"]},
            )
            for row in rows
        ]

    async def _exhausted_webhooks(self) -> list[OpsMatch]:
        events = await self._events.list_exhausted(self._settings.webhook_max_attempts)
        return [
            OpsMatch(
                entity_type="webhook_event",
                entity_id=event.id,
                summary=(
                    f"Webhook {event.provider}/{event.event_type} failed "
                    f"after {event.attempts} attempts"
                ),
                metadata={"event_id": event.event_id, "last_error": event.last_error},
            )
            for event in events
        ]
