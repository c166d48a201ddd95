"""Job handlers package.

Importing this package registers every built-in handler with
default_registry.

Handler contract:
    async def handle_<job_type>(job: Job, ctx: dict) -> dict:
        - job: The Job model with payload and metadata
        - ctx: Context dict with pool, settings, worker_id, job_repo,
          audit and ops_inbox
        - Raise to request a retry; the return value is logged only
"""

# Import handlers to trigger registration
from jobworker.jobs.handlers import analytics  # noqa: F401
from jobworker.jobs.handlers import assistant  # noqa: F401
from jobworker.jobs.handlers import notifications  # noqa: F401
from jobworker.jobs.handlers import payments  # noqa: F401
from jobworker.jobs.handlers import reconciliation  # noqa: F401

__all__ = ["analytics", "assistant", "notifications", "payments", "reconciliation"]
