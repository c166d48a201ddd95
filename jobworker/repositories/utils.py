"""Utility functions for repository operations."""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID


def ensure_json(value: Optional[Union[str, dict, list]]) -> Optional[Union[dict, list]]:
    """
    Normalize JSONB values from database to Python dict/list.

    asyncpg can return JSONB as:
    - dict/list (when codec is configured)
    - str (default behavior)
    - None (NULL)

    Raises:
        TypeError: If value is an unexpected type
        json.JSONDecodeError: If string is not valid JSON
    """
    if value is None:
        return None

    if isinstance(value, (dict, list)):
        return value

    if isinstance(value, str):
        return json.loads(value)

    raise TypeError(
        f"Expected str, dict, list, or None for JSONB value, got {type(value).__name__}"
    )


def _default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_jsonb(value: Optional[Union[dict, list]]) -> str:
    """Serialize a payload for a ``$n::jsonb`` parameter."""
    return json.dumps(value if value is not None else {}, default=_default)
