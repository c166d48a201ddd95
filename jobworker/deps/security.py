"""Security dependencies for FastAPI routes.

Worker endpoints are invoked by a scheduler or another service, not by end
users, and are guarded by a single shared secret.
"""

import hmac

import structlog
from fastapi import Depends, HTTPException, Request, status

from jobworker.config import Settings, get_settings

logger = structlog.get_logger(__name__)

WORKER_SECRET_HEADER = "X-Worker-Secret"


def require_worker_secret(
    request: Request, settings: Settings = Depends(get_settings)
) -> bool:
    """
    Require the shared worker secret.

    Security guarantees:
    - Uses hmac.compare_digest() for constant-time comparison
    - Missing server-side secret rejects every call (no open default)
    - Missing or wrong header returns 403 with no further detail

    Usage:
        @router.post("/worker/run")
        async def run(..., _: bool = Depends(require_worker_secret)):
            ...
    """
    expected = settings.worker_secret
    provided = request.headers.get(WORKER_SECRET_HEADER)

    if not expected or not provided:
        logger.warning(
            "worker_secret_missing",
            path=request.url.path,
            configured=bool(expected),
            client=request.client.host if request.client else "unknown",
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")

    # Constant-time comparison to prevent timing attacks
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning(
            "worker_secret_invalid",
            path=request.url.path,
            client=request.client.host if request.client else "unknown",
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")

    return True
