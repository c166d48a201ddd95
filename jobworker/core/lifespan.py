"""Application lifespan management - startup and shutdown logic."""

import asyncio
import traceback
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import asyncpg
import structlog
from fastapi import FastAPI

from jobworker import __version__
from jobworker.config import Settings, get_settings
from jobworker.jobs.worker import WorkerRunner
from jobworker.routers import health, worker

logger = structlog.get_logger(__name__)

# Global clients - accessed by other modules
_db_pool: Optional[asyncpg.Pool] = None
_worker: Optional[WorkerRunner] = None
_worker_task: Optional[asyncio.Task] = None


def get_db_pool() -> Optional[asyncpg.Pool]:
    """Get the database connection pool."""
    return _db_pool


async def create_db_pool(settings: Settings) -> asyncpg.Pool:
    """Create the asyncpg pool. Raises on connection failure."""
    return await asyncpg.create_pool(
        settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        timeout=10,  # Short connection timeout to avoid blocking startup
        command_timeout=30,
        statement_cache_size=0,  # Disable for pgbouncer transaction mode
    )


async def _init_database(settings: Settings) -> Optional[asyncpg.Pool]:
    """Initialize the pool; the service starts degraded when the DB is down."""
    try:
        pool = await create_db_pool(settings)
    except Exception as e:
        logger.error(
            "Failed to initialize database pool - worker endpoints will be unavailable",
            error=str(e),
            traceback=traceback.format_exc(),
        )
        return None

    logger.info(
        "Database pool initialized",
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )

    # Wire up database pool to routers
    health.set_db_pool(pool)
    worker.set_db_pool(pool)
    return pool


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    global _db_pool, _worker, _worker_task

    settings = get_settings()
    logger.info(
        "Starting jobworker service",
        version=__version__,
        host=settings.service_host,
        port=settings.service_port,
        worker_embedded=settings.worker_embedded,
    )

    _db_pool = await _init_database(settings)

    # Start the polling loop in-process (if enabled and DB available)
    if _db_pool and settings.worker_embedded:
        _worker = WorkerRunner(_db_pool, settings=settings)
        _worker_task = asyncio.create_task(_worker.start())

    yield

    logger.info("Shutting down jobworker service")

    # Stop the worker before the pool closes
    if _worker and _worker_task:
        await _worker.stop()
        _worker_task.cancel()
        try:
            await _worker_task
        except asyncio.CancelledError:
            pass
        logger.info("Embedded worker stopped")
        _worker = None
        _worker_task = None

    if _db_pool:
        health.set_db_pool(None)
        worker.set_db_pool(None)
        await _db_pool.close()
        _db_pool = None
        logger.info("Database pool closed")
