"""Tests for job system types."""

from jobworker.jobs.types import JobStatus, JobType


class TestJobType:
    def test_job_types_are_versioned(self):
        assert JobType.NOTIFY_DELIVER == "notify_deliver_v1"
        assert JobType.WEBHOOK_RETRY_FAILED == "webhook_retry_failed_v1"
        assert all(jt.value.endswith("_v1") for jt in JobType)

    def test_job_type_has_required_members(self):
        """Required job types exist - won't break when new types added."""
        required = {"NOTIFY_DELIVER", "REFUND_INITIATE", "OPS_INBOX_SCAN", "ALERTS_CHECK"}
        actual = {jt.name for jt in JobType}
        missing = required - actual
        assert not missing, f"Missing JobType members: {missing}"


class TestJobStatus:
    def test_job_statuses_exist(self):
        assert JobStatus.PENDING == "pending"
        assert JobStatus.SUCCEEDED == "succeeded"
        assert JobStatus.FAILED == "failed"
        assert JobStatus.DEAD == "dead"

    def test_terminal_statuses(self):
        assert JobStatus.SUCCEEDED.is_terminal
        assert JobStatus.DEAD.is_terminal
        assert not JobStatus.PENDING.is_terminal
        assert not JobStatus.FAILED.is_terminal

    def test_claimable_statuses(self):
        assert JobStatus.PENDING.is_claimable
        assert JobStatus.FAILED.is_claimable
        assert not JobStatus.DEAD.is_claimable
        assert not JobStatus.SUCCEEDED.is_claimable
