"""Helpers for non-critical side effects.

Audit writes, ops inbox updates made on the side of a failure, and similar
fire-and-forget calls must never turn a job outcome into a different one.

Usage:
    from jobworker.core.resilience import best_effort

    await best_effort(
        audit.log_workflow_event("notification", nid, "NOTIFICATION_DELIVERED"),
        "workflow_event_failed",
        notification_id=str(nid),
    )
"""

from typing import Any, Awaitable, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def best_effort(
    awaitable: Awaitable[T],
    event: str = "best_effort_call_failed",
    **context: Any,
) -> Optional[T]:
    """Await a side-effect call, logging and discarding any exception.

    Returns the awaited result, or None when the call failed.
    """
    try:
        return await awaitable
    except Exception as e:
        logger.warning(event, error=str(e), error_type=type(e).__name__, **context)
        return None
