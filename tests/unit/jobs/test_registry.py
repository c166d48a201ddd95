"""Tests for job handler registry."""

from uuid import uuid4

import pytest

from jobworker.jobs.errors import UnknownJobTypeError
from jobworker.jobs.models import Job
from jobworker.jobs.registry import EntityRef, JobRegistry, default_registry
from jobworker.jobs.types import JobStatus, JobType


def make_job(job_type: str, payload=None) -> Job:
    return Job(id=uuid4(), job_type=job_type, status=JobStatus.PENDING, payload=payload or {})


class TestJobRegistry:
    def test_register_handler(self):
        registry = JobRegistry()

        async def handler(job, ctx):
            return {}

        registry.register(JobType.NOTIFY_DELIVER, handler)
        assert registry.get_handler(JobType.NOTIFY_DELIVER) is handler

    def test_enum_and_string_keys_match(self):
        registry = JobRegistry()

        async def handler(job, ctx):
            return {}

        registry.register(JobType.NOTIFY_DELIVER, handler)
        assert registry.get_handler("notify_deliver_v1") is handler
        assert "notify_deliver_v1" in registry
        assert JobType.NOTIFY_DELIVER in registry

    def test_unknown_type_raises_key_error(self):
        registry = JobRegistry()

        with pytest.raises(KeyError):
            registry.get_handler("nope_v1")

        with pytest.raises(UnknownJobTypeError) as exc:
            registry.get_handler("nope_v1")
        assert str(exc.value) == "unknown job_type: nope_v1"

    def test_duplicate_registration_raises(self):
        registry = JobRegistry()

        async def first(job, ctx):
            return {}

        async def second(job, ctx):
            return {}

        registry.register("custom_v1", first)
        with pytest.raises(ValueError):
            registry.register("custom_v1", second)
        assert registry.get_handler("custom_v1") is first

    def test_decorator_registration(self):
        registry = JobRegistry()

        @registry.handler("custom_v1", entity=EntityRef("order", "order_id"))
        async def handle(job, ctx):
            return {"ok": True}

        assert registry.get_handler("custom_v1") is handle
        assert registry.entity_for("custom_v1") == EntityRef("order", "order_id")
        assert registry.entity_for("other_v1") is None

    def test_job_types_sorted(self):
        registry = JobRegistry()

        async def handler(job, ctx):
            return {}

        registry.register("b_v1", handler)
        registry.register("a_v1", handler)
        assert registry.job_types() == ["a_v1", "b_v1"]

    def test_unregister(self):
        registry = JobRegistry()

        async def handler(job, ctx):
            return {}

        registry.register("custom_v1", handler)
        registry.unregister("custom_v1")
        assert "custom_v1" not in registry

    @pytest.mark.asyncio
    async def test_dispatch_calls_handler(self):
        registry = JobRegistry()
        seen = []

        async def handler(job, ctx):
            seen.append((job.payload, ctx["worker_id"]))
            return {"done": True}

        registry.register("custom_v1", handler)
        result = await registry.dispatch(make_job("custom_v1", {"x": 1}), {"worker_id": "w1"})

        assert result == {"done": True}
        assert seen == [({"x": 1}, "w1")]

    @pytest.mark.asyncio
    async def test_dispatch_unknown_type(self):
        with pytest.raises(UnknownJobTypeError):
            await JobRegistry().dispatch(make_job("ghost_v1"), {})


class TestEntityRef:
    def test_resolve(self):
        ref = EntityRef("refund", "refund_id")
        assert ref.resolve({"refund_id": "abc"}) == "abc"
        assert ref.resolve({}) is None
        assert ref.resolve({"refund_id": ""}) is None


class TestBuiltinHandlers:
    def test_every_builtin_type_registered_once(self):
        import jobworker.jobs.handlers  # noqa: F401

        for job_type in JobType:
            assert job_type in default_registry, job_type.value

    def test_business_entity_jobs(self):
        import jobworker.jobs.handlers  # noqa: F401

        assert default_registry.entity_for(JobType.REFUND_INITIATE) == EntityRef(
            "refund", "refund_id"
        )
        assert default_registry.entity_for(JobType.NOTIFY_DELIVER).entity_type == "notification"
        assert default_registry.entity_for(JobType.ALERTS_CHECK) is None
