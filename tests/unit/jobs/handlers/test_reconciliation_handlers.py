"""Tests for the webhook sweep and ops scan job handlers."""
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from jobworker.jobs.handlers import reconciliation
from jobworker.jobs.models import Job
from jobworker.jobs.types import JobStatus
from jobworker.services.ops_inbox import ScanResult
from jobworker.services.webhooks import SweepResult
from tests.fakes import FakeAudit, FakeOpsInbox


def make_job(job_type, payload=None):
    return Job(id=uuid4(), job_type=job_type, status=JobStatus.PENDING, payload=payload or {})


def make_ctx(settings):
    return {"pool": None, "settings": settings, "audit": FakeAudit(), "ops_inbox": FakeOpsInbox()}


class TestWebhookRetryFailed:
    @pytest.mark.asyncio
    async def test_default_limit_from_settings(self, settings):
        with patch.object(reconciliation, "WebhookReconciler") as MockReconciler:
            MockReconciler.return_value.sweep = AsyncMock(return_value=SweepResult(selected=2, processed=2))
            result = await reconciliation.handle_webhook_retry_failed(
                make_job("webhook_retry_failed_v1"), make_ctx(settings)
            )

        MockReconciler.return_value.sweep.assert_awaited_once_with(settings.webhook_retry_limit)
        assert MockReconciler.call_args.kwargs["max_attempts"] == settings.webhook_max_attempts
        assert result["processed"] == 2

    @pytest.mark.asyncio
    async def test_payload_limit(self, settings):
        with patch.object(reconciliation, "WebhookReconciler") as MockReconciler:
            MockReconciler.return_value.sweep = AsyncMock(return_value=SweepResult())
            await reconciliation.handle_webhook_retry_failed(
                make_job("webhook_retry_failed_v1", {"limit": 200}), make_ctx(settings)
            )

        MockReconciler.return_value.sweep.assert_awaited_once_with(200)


class TestOpsInboxScan:
    @pytest.mark.asyncio
    async def test_runs_scanner(self, settings):
        ctx = make_ctx(settings)
        with patch.object(reconciliation, "OpsInboxScanner") as MockScanner:
            MockScanner.return_value.scan = AsyncMock(
                return_value=ScanResult(upserted=3, by_rule={"stuck_order": 3})
            )
            result = await reconciliation.handle_ops_inbox_scan(
                make_job("ops_inbox_scan_v1"), ctx
            )

        assert MockScanner.call_args.args[3] is ctx["ops_inbox"]
        assert result == {"upserted": 3, "by_rule": {"stuck_order": 3}, "errors": []}
