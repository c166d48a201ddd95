"""jobworker - FastAPI application."""

import structlog
from fastapi import FastAPI

from jobworker import __version__
from jobworker.config import get_settings
from jobworker.core.lifespan import lifespan
from jobworker.core.logging import configure_logging
from jobworker.core.sentry import init_sentry
from jobworker.routers import health, worker

import jobworker.jobs.handlers  # noqa: F401  registers built-in handlers

settings = get_settings()
configure_logging(settings.log_level)
init_sentry(settings)

logger = structlog.get_logger(__name__)

app = FastAPI(
    title="jobworker",
    description="Durable background job processing engine",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(worker.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "jobworker.main:app",
        host=settings.service_host,
        port=settings.service_port,
        log_level=settings.log_level.lower(),
    )
