"""Payload parsing shared by handlers.

Bad payloads raise JobValidationError, which the worker retries like any
other failure.
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID

from jobworker.jobs.errors import JobValidationError


def require(payload: dict[str, Any], key: str) -> Any:
    value = payload.get(key)
    if value is None or value == "":
        raise JobValidationError(f"missing {key}")
    return value


def require_uuid(payload: dict[str, Any], key: str) -> UUID:
    value = require(payload, key)
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as e:
        raise JobValidationError(f"invalid {key}: {value!r}") from e


def require_date(payload: dict[str, Any], key: str) -> date:
    value = require(payload, key)
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise JobValidationError(f"invalid {key}: {value!r}") from e


def int_param(payload: dict[str, Any], key: str, default: int) -> int:
    """Integer option; missing, null or 0 falls back to the default."""
    value: Optional[Any] = payload.get(key)
    if not value:
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError) as e:
        raise JobValidationError(f"invalid {key}: {value!r}") from e
    if parsed < 0:
        raise JobValidationError(f"invalid {key}: {value!r}")
    return parsed
