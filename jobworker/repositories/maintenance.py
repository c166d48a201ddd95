"""Calls into the SQL maintenance functions (rollups, risk, SLA watches).

The functions own their business logic; each one recomputes or upserts its
target rows, so calling it twice for the same input is harmless.
"""

from datetime import date
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class MaintenanceRepository:
    def __init__(self, pool):
        self._pool = pool

    async def rollup_daily(self, day: date) -> None:
        await self._call("SELECT analytics_rollup_daily_v1($1)", day)

    async def rollup_finance_daily(self, day: date) -> None:
        await self._call("SELECT analytics_rollup_finance_daily_v1($1)", day)

    async def system_metrics_rollup(self) -> None:
        await self._call("SELECT admin_system_metrics_rollup_v1()")

    async def alerts_check(self) -> None:
        await self._call("SELECT admin_alerts_check_v1()")

    async def risk_evaluate_recent(self, lookback_hours: int) -> None:
        await self._call("SELECT admin_risk_evaluate_recent_v1($1)", lookback_hours)

    async def risk_decay(self, days_without_incident: int) -> None:
        await self._call("SELECT admin_risk_decay_v1($1)", days_without_incident)

    async def dispute_sla_watch(self, max_hours_open: int) -> None:
        await self._call("SELECT admin_dispute_sla_watch_v1($1)", max_hours_open)

    async def _call(self, query: str, *args: Any) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(query, *args)
        logger.debug("maintenance_function_called", query=query)
