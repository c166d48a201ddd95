"""Tests for SQL maintenance function calls."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from jobworker.repositories.maintenance import MaintenanceRepository


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method,args,expected_sql",
    [
        ("rollup_daily", (date(2026, 3, 3),), "SELECT analytics_rollup_daily_v1($1)"),
        ("rollup_finance_daily", (date(2026, 3, 3),), "SELECT analytics_rollup_finance_daily_v1($1)"),
        ("system_metrics_rollup", (), "SELECT admin_system_metrics_rollup_v1()"),
        ("alerts_check", (), "SELECT admin_alerts_check_v1()"),
        ("risk_evaluate_recent", (24,), "SELECT admin_risk_evaluate_recent_v1($1)"),
        ("risk_decay", (7,), "SELECT admin_risk_decay_v1($1)"),
        ("dispute_sla_watch", (48,), "SELECT admin_dispute_sla_watch_v1($1)"),
    ],
)
async def test_calls_function(method, args, expected_sql):
    mock_pool = MagicMock()
    mock_conn = AsyncMock()
    mock_pool.acquire.return_value.__aenter__.return_value = mock_conn

    await getattr(MaintenanceRepository(mock_pool), method)(*args)

    assert mock_conn.execute.call_args.args == (expected_sql, *args)
