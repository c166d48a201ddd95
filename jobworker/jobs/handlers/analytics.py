"""Analytics rollups and SQL-backed maintenance watches.

Each handler calls one maintenance function, which recomputes or upserts
its own rows, then records a workflow event. Re-running is harmless.
"""

from typing import Any

import structlog

from jobworker.core.resilience import best_effort
from jobworker.jobs.handlers.payload import int_param, require_date
from jobworker.jobs.models import Job
from jobworker.jobs.registry import default_registry
from jobworker.jobs.types import JobType
from jobworker.repositories.maintenance import MaintenanceRepository

logger = structlog.get_logger(__name__)


@default_registry.handler(JobType.ANALYTICS_ROLLUP_DAILY)
async def handle_analytics_rollup_daily(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Roll up one day of analytics. The finance rollup is best-effort.

    Job Payload:
        day: ISO date (required)
    """
    day = require_date(job.payload, "day")
    repo = MaintenanceRepository(ctx["pool"])

    await repo.rollup_daily(day)
    await best_effort(
        repo.rollup_finance_daily(day),
        "finance_rollup_failed",
        day=day.isoformat(),
    )

    await ctx["audit"].log_workflow_event(
        "analytics",
        None,
        "ANALYTICS_ROLLUP_DONE",
        metadata={"day": day.isoformat(), "job_id": str(job.id)},
    )
    logger.info("analytics_rollup_done", day=day.isoformat())
    return {"day": day.isoformat()}


@default_registry.handler(JobType.SYSTEM_METRICS_ROLLUP)
async def handle_system_metrics_rollup(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    await MaintenanceRepository(ctx["pool"]).system_metrics_rollup()
    await ctx["audit"].log_workflow_event(
        "system", None, "SYSTEM_METRICS_ROLLED_UP", metadata={"job_id": str(job.id)}
    )
    return {}


@default_registry.handler(JobType.ALERTS_CHECK)
async def handle_alerts_check(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    await MaintenanceRepository(ctx["pool"]).alerts_check()
    await ctx["audit"].log_workflow_event(
        "system", None, "ALERTS_CHECKED", metadata={"job_id": str(job.id)}
    )
    return {}


@default_registry.handler(JobType.RISK_EVALUATE_RECENT)
async def handle_risk_evaluate_recent(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """Payload: lookback_hours (default 24)."""
    lookback_hours = int_param(job.payload, "lookback_hours", 24)
    await MaintenanceRepository(ctx["pool"]).risk_evaluate_recent(lookback_hours)
    await ctx["audit"].log_workflow_event(
        "system",
        None,
        "RISK_EVALUATION_HANDLED",
        metadata={"lookback_hours": lookback_hours, "job_id": str(job.id)},
    )
    return {"lookback_hours": lookback_hours}


@default_registry.handler(JobType.RISK_DECAY)
async def handle_risk_decay(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """Payload: days_without_incident (default 7)."""
    days = int_param(job.payload, "days_without_incident", 7)
    await MaintenanceRepository(ctx["pool"]).risk_decay(days)
    await ctx["audit"].log_workflow_event(
        "system",
        None,
        "RISK_DECAY_HANDLED",
        metadata={"days_without_incident": days, "job_id": str(job.id)},
    )
    return {"days_without_incident": days}


@default_registry.handler(JobType.DISPUTE_SLA_WATCH)
async def handle_dispute_sla_watch(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """Payload: max_hours_open (default 48)."""
    max_hours_open = int_param(job.payload, "max_hours_open", 48)
    await MaintenanceRepository(ctx["pool"]).dispute_sla_watch(max_hours_open)
    await ctx["audit"].log_workflow_event(
        "system",
        None,
        "DISPUTE_SLA_WATCH_HANDLED",
        metadata={"max_hours_open": max_hours_open, "job_id": str(job.id)},
    )
    return {"max_hours_open": max_hours_open}
