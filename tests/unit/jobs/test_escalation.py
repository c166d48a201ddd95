"""Tests for failing-job escalation."""
from uuid import uuid4

import pytest

from jobworker.jobs.escalation import (
    JOB_FAILING_ITEM,
    JOB_HANDLER_FAILURE,
    EscalationReporter,
    should_escalate,
)
from jobworker.jobs.models import Job
from jobworker.jobs.registry import EntityRef
from jobworker.jobs.types import JobStatus
from tests.fakes import FakeAudit, FakeOpsInbox


def make_job(payload=None) -> Job:
    return Job(
        id=uuid4(), job_type="refund_initiate_v1", status=JobStatus.PENDING, payload=payload or {}
    )


class TestShouldEscalate:
    def test_only_at_threshold(self):
        assert [should_escalate(a, 3, dead=False) for a in range(1, 6)] == [
            False, False, True, False, False
        ]

    def test_dead_before_threshold(self):
        assert should_escalate(2, 3, dead=True) is True
        assert should_escalate(1, 3, dead=False) is False

    def test_dead_after_threshold_already_escalated(self):
        assert should_escalate(5, 3, dead=True) is False


class TestEscalationReporter:
    @pytest.mark.asyncio
    async def test_below_threshold_emits_nothing(self):
        audit, ops = FakeAudit(), FakeOpsInbox()
        reporter = EscalationReporter(audit, ops, threshold=3)

        assert await reporter.report(make_job(), attempts=2, error="x", dead=False) is False
        assert audit.security_events == []
        assert ops.items == {}

    @pytest.mark.asyncio
    async def test_security_event_for_any_job(self):
        audit, ops = FakeAudit(), FakeOpsInbox()
        reporter = EscalationReporter(audit, ops, threshold=3)
        job = make_job()

        assert await reporter.report(job, attempts=3, error="timeout", dead=False) is True

        (event,) = audit.security_events
        assert event["event_type"] == JOB_HANDLER_FAILURE
        assert event["severity"] == "medium"
        assert event["subject_key"] == str(job.id)
        assert event["metadata"]["error"] == "timeout"
        # No entity: no ops item
        assert ops.items == {}

    @pytest.mark.asyncio
    async def test_entity_job_gets_ops_item(self):
        audit, ops = FakeAudit(), FakeOpsInbox()
        reporter = EscalationReporter(audit, ops, threshold=3)
        job = make_job({"refund_id": "r-1"})

        await reporter.report(
            job, attempts=3, error="declined", dead=False, entity=EntityRef("refund", "refund_id")
        )

        item = ops.get(JOB_FAILING_ITEM, "refund", "r-1")
        assert item["severity"] == "medium"
        assert item["metadata"]["last_error"] == "declined"

    @pytest.mark.asyncio
    async def test_entity_missing_from_payload(self):
        audit, ops = FakeAudit(), FakeOpsInbox()
        reporter = EscalationReporter(audit, ops, threshold=3)

        await reporter.report(
            make_job({}), attempts=3, error="x", dead=False, entity=EntityRef("refund", "refund_id")
        )

        assert len(audit.security_events) == 1
        assert ops.items == {}

    @pytest.mark.asyncio
    async def test_sink_failures_are_swallowed(self):
        class BrokenOps(FakeOpsInbox):
            async def upsert(self, *args, **kwargs):
                raise RuntimeError("db down")

        audit = FakeAudit()
        reporter = EscalationReporter(audit, BrokenOps(), threshold=1)

        result = await reporter.report(
            make_job({"refund_id": "r-1"}),
            attempts=1,
            error="x",
            dead=False,
            entity=EntityRef("refund", "refund_id"),
        )

        assert result is True
        assert len(audit.security_events) == 1
