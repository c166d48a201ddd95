"""Error taxonomy for the job engine.

Handler failures of any kind are caught by the worker and turned into a
persisted outcome. Only claim-phase and run bookkeeping errors abort a run.
"""


class JobEngineError(Exception):
    """Base class for engine errors."""


class JobValidationError(JobEngineError):
    """A job payload is missing a required field or carries a bad value.

    Retried exactly like any other failure; there is no permanent-failure
    class, so a payload that can never succeed spends its attempts.
    """


class UnknownJobTypeError(JobEngineError, KeyError):
    """No handler is registered for a job type."""

    def __init__(self, job_type: str):
        self.job_type = job_type
        super().__init__(job_type)

    def __str__(self) -> str:
        return f"unknown job_type: {self.job_type}"


class HandlerTimeoutError(JobEngineError):
    """A handler exceeded the configured execution bound."""

    def __init__(self, timeout_s: float):
        self.timeout_s = timeout_s
        super().__init__(f"handler timed out after {timeout_s:g}s")


class ClaimError(JobEngineError):
    """The job store failed to claim a batch. Aborts the run."""


class RunBookkeepingError(JobEngineError):
    """The job_runs record could not be created. Aborts the run."""


class EntityNotFoundError(JobEngineError):
    """A business row referenced by a payload does not exist."""
