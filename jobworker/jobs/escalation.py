"""Escalation of repeatedly failing jobs.

Escalation is additive observability. It never replaces the retry or
dead-letter transition and never raises into the worker.
"""

from typing import Optional

import structlog

from jobworker.core.resilience import best_effort
from jobworker.jobs.models import Job
from jobworker.jobs.registry import EntityRef
from jobworker.jobs.types import Severity

logger = structlog.get_logger(__name__)

JOB_HANDLER_FAILURE = "JOB_HANDLER_FAILURE"
JOB_FAILING_ITEM = "job_failing"


def should_escalate(attempts: int, threshold: int, dead: bool) -> bool:
    """Escalate once per job: on the attempt that reaches the threshold.

    A job whose max_attempts is below the threshold dies first; it is
    escalated on that dead-letter attempt instead.
    """
    if attempts == threshold:
        return True
    return dead and attempts < threshold


class EscalationReporter:
    """Emits the security event and, for entity jobs, an ops inbox item."""

    def __init__(self, audit, ops_inbox, threshold: int = 3):
        self._audit = audit
        self._ops_inbox = ops_inbox
        self.threshold = threshold

    async def report(
        self,
        job: Job,
        attempts: int,
        error: str,
        dead: bool,
        entity: Optional[EntityRef] = None,
    ) -> bool:
        """Escalate if this failed attempt crosses the threshold.

        Returns True when an escalation was emitted.
        """
        if not should_escalate(attempts, self.threshold, dead):
            return False

        log = logger.bind(job_id=str(job.id), job_type=job.job_type, attempts=attempts)
        log.warning("job_escalated", dead=dead, error=error)

        await best_effort(
            self._audit.log_security_event(
                JOB_HANDLER_FAILURE,
                Severity.MEDIUM.value,
                subject_key=str(job.id),
                metadata={
                    "job_id": str(job.id),
                    "job_type": job.job_type,
                    "attempts": attempts,
                    "dead": dead,
                    "error": error,
                },
            ),
            "escalation_security_event_failed",
            job_id=str(job.id),
        )

        entity_id = entity.resolve(job.payload) if entity else None
        if entity and entity_id:
            severity = Severity.HIGH if dead else Severity.MEDIUM
            await best_effort(
                self._ops_inbox.upsert(
                    item_type=JOB_FAILING_ITEM,
                    entity_type=entity.entity_type,
                    entity_id=entity_id,
                    severity=severity.value,
                    summary=(
                        f"{job.job_type} failed {attempts} time(s) "
                        f"for {entity.entity_type} {entity_id}"
                    ),
                    metadata={
                        "job_id": str(job.id),
                        "job_type": job.job_type,
                        "attempts": attempts,
                        "dead": dead,
                        "last_error": error,
                    },
                ),
                "escalation_ops_item_failed",
                job_id=str(job.id),
            )

        return True
