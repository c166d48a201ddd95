"""Job system package."""

from jobworker.jobs.types import JobType, JobStatus
from jobworker.jobs.models import Job, JobRun, RunSummary
from jobworker.jobs.registry import EntityRef, JobRegistry, default_registry

__all__ = [
    "JobType",
    "JobStatus",
    "Job",
    "JobRun",
    "RunSummary",
    "EntityRef",
    "JobRegistry",
    "default_registry",
]
