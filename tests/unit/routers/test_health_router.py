"""Tests for the health endpoint."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from jobworker import __version__
from jobworker.routers import health


@pytest.fixture
def client():
    app = FastAPI()
    app.include_router(health.router)
    yield TestClient(app)
    health.set_db_pool(None)


def make_pool(fetchval):
    pool = MagicMock()
    conn = AsyncMock()
    conn.fetchval = fetchval
    pool.acquire.return_value.__aenter__.return_value = conn
    return pool


class TestHealth:
    def test_ok(self, client):
        health.set_db_pool(make_pool(AsyncMock(return_value=1)))

        body = client.get("/health").json()

        assert body["status"] == "ok"
        assert body["database"]["status"] == "ok"
        assert body["version"] == __version__

    def test_database_error_is_degraded(self, client):
        health.set_db_pool(make_pool(AsyncMock(side_effect=OSError("refused"))))

        body = client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["database"]["error"] == "refused"

    def test_no_pool(self, client):
        body = client.get("/health").json()
        assert body["database"]["error"] == "Database pool not initialized"
