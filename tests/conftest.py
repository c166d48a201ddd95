"""Root conftest for test suite.

Auto-skips tests marked requires_db unless DATABASE_URL is set.
Run them with: DATABASE_URL=postgresql://... pytest -m requires_db
"""

import os

import pytest

from jobworker.config import Settings


def pytest_collection_modifyitems(config, items):
    """Skip database tests when no database is configured."""
    if os.getenv("DATABASE_URL"):
        return

    skip_db = pytest.mark.skip(reason="requires_db tests need DATABASE_URL")
    for item in items:
        if "requires_db" in item.keywords:
            item.add_marker(skip_db)


@pytest.fixture
def settings():
    """Settings isolated from the developer's .env."""
    return Settings(
        _env_file=None,
        worker_secret="test-worker-secret",
        worker_batch_size=25,
        job_handler_timeout_s=2.0,
        job_escalation_threshold=3,
    )
