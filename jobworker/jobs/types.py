"""Job system type definitions."""

from enum import Enum


class JobType(str, Enum):
    """Built-in job types.

    The registry is keyed by plain strings, so extension authors can
    register types that are not listed here.
    """

    NOTIFY_DELIVER = "notify_deliver_v1"
    ANALYTICS_ROLLUP_DAILY = "analytics_rollup_daily_v1"
    SYSTEM_METRICS_ROLLUP = "system_metrics_rollup_v1"
    ALERTS_CHECK = "alerts_check_v1"
    PAYMENTS_CLEANUP_STALE = "payments_cleanup_stale_v1"
    PAYMENTS_RECONCILE_RECENT = "payments_reconcile_recent_v1"
    WEBHOOK_RETRY_FAILED = "webhook_retry_failed_v1"
    REFUND_INITIATE = "refund_initiate_v1"
    PAYOUTS_REMINDER_QUEUE = "payouts_reminder_queue_v1"
    AI_TICKET_TRIAGE = "ai_ticket_triage_v1"
    AI_TIMELINE_SUMMARY = "ai_timeline_summary_v1"
    AI_VOICE_NOTE_SUMMARY = "ai_voice_note_summary_v1"
    OPS_INBOX_SCAN = "ops_inbox_scan_v1"
    RISK_EVALUATE_RECENT = "risk_evaluate_recent_v1"
    RISK_DECAY = "risk_decay_v1"
    DISPUTE_SLA_WATCH = "dispute_sla_watch_v1"


class JobStatus(str, Enum):
    """Job lifecycle statuses."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DEAD = "dead"

    @property
    def is_terminal(self) -> bool:
        """Check if this status is terminal (job won't be claimed again)."""
        return self in (JobStatus.SUCCEEDED, JobStatus.DEAD)

    @property
    def is_claimable(self) -> bool:
        return self in (JobStatus.PENDING, JobStatus.FAILED)


class WebhookStatus(str, Enum):
    """Processing status of an inbound provider notification."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
