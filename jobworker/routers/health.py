"""Health check endpoint."""

import time

import structlog
from fastapi import APIRouter

from jobworker import __version__
from jobworker.schemas import DependencyHealth, HealthResponse

router = APIRouter()
logger = structlog.get_logger(__name__)

_db_pool = None


def set_db_pool(pool):
    """Set the database pool for this router."""
    global _db_pool
    _db_pool = pool


async def check_database_health(pool) -> DependencyHealth:
    """Check Postgres connectivity with a trivial query."""
    if pool is None:
        return DependencyHealth(status="error", error="Database pool not initialized")

    start = time.perf_counter()
    try:
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        latency = (time.perf_counter() - start) * 1000
        return DependencyHealth(status="ok", latency_ms=latency)
    except Exception as e:
        latency = (time.perf_counter() - start) * 1000
        return DependencyHealth(status="error", latency_ms=latency, error=str(e))


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness plus database reachability."""
    database = await check_database_health(_db_pool)
    overall_status = "ok" if database.status == "ok" else "degraded"

    logger.info("health_check_completed", status=overall_status, database=database.status)
    return HealthResponse(status=overall_status, database=database, version=__version__)
