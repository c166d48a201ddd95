"""Job handler registry."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Coroutine, Optional, Union

from jobworker.jobs.errors import UnknownJobTypeError
from jobworker.jobs.models import Job

# Handler signature: async def handler(job: Job, ctx: dict) -> dict | None
JobHandler = Callable[[Job, dict[str, Any]], Coroutine[Any, Any, Optional[dict[str, Any]]]]

JobTypeKey = Union[str, Enum]


@dataclass(frozen=True)
class EntityRef:
    """Business entity a job acts on, used to escalate into the ops inbox.

    Attributes:
        entity_type: Ops inbox entity_type (e.g. "refund")
        payload_key: Payload field holding the entity id (e.g. "refund_id")
    """

    entity_type: str
    payload_key: str

    def resolve(self, payload: dict[str, Any]) -> Optional[str]:
        value = payload.get(self.payload_key)
        return str(value) if value else None


@dataclass(frozen=True)
class Registration:
    job_type: str
    handler: JobHandler
    entity: Optional[EntityRef] = None


def job_type_key(job_type: JobTypeKey) -> str:
    # str-Enum members hash by name, so normalise to the value
    return job_type.value if isinstance(job_type, Enum) else str(job_type)


class JobRegistry:
    """Registry mapping job types to their handlers.

    Open extension point: the worker only ever looks handlers up here, so
    adding a job type never touches the run loop.
    """

    def __init__(self):
        self._registrations: dict[str, Registration] = {}

    def register(
        self,
        job_type: JobTypeKey,
        handler: JobHandler,
        entity: Optional[EntityRef] = None,
    ) -> None:
        """Register a handler for a job type. Each type may be registered once."""
        key = job_type_key(job_type)
        if key in self._registrations:
            raise ValueError(f"Handler already registered for job type: {key}")
        self._registrations[key] = Registration(key, handler, entity)

    def unregister(self, job_type: JobTypeKey) -> None:
        self._registrations.pop(job_type_key(job_type), None)

    def get_registration(self, job_type: JobTypeKey) -> Registration:
        """Get the registration for a job type. Raises UnknownJobTypeError."""
        key = job_type_key(job_type)
        if key not in self._registrations:
            raise UnknownJobTypeError(key)
        return self._registrations[key]

    def get_handler(self, job_type: JobTypeKey) -> JobHandler:
        """Get the handler for a job type. Raises UnknownJobTypeError (a KeyError)."""
        return self.get_registration(job_type).handler

    def entity_for(self, job_type: JobTypeKey) -> Optional[EntityRef]:
        registration = self._registrations.get(job_type_key(job_type))
        return registration.entity if registration else None

    async def dispatch(self, job: Job, ctx: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Run the handler registered for job.job_type."""
        handler = self.get_handler(job.job_type)
        return await handler(job, ctx)

    def job_types(self) -> list[str]:
        return sorted(self._registrations)

    def __contains__(self, job_type: object) -> bool:
        if not isinstance(job_type, (str, Enum)):
            return False
        return job_type_key(job_type) in self._registrations

    def handler(
        self, job_type: JobTypeKey, entity: Optional[EntityRef] = None
    ) -> Callable[[JobHandler], JobHandler]:
        """Decorator to register a handler."""

        def decorator(fn: JobHandler) -> JobHandler:
            self.register(job_type, fn, entity=entity)
            return fn

        return decorator


# Global registry instance
default_registry = JobRegistry()
