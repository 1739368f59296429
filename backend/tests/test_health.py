from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.endpoints.health import router as health_router
from app.core.database import get_db


class DummyDB:
    def __init__(self, fail: bool = False):
        self.fail = fail

    async def execute(self, stmt):
        if self.fail:
            raise RuntimeError("connection refused")
        return None


def _client(db):
    app = FastAPI()
    app.include_router(health_router)

    async def _yield_db():
        yield db

    app.dependency_overrides[get_db] = _yield_db
    return TestClient(app)


def test_health_basic():
    r = _client(DummyDB()).get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


def test_health_detailed_reports_degraded_database():
    r = _client(DummyDB(fail=True)).get("/health/detailed")
    body = r.json()
    assert body["status"] == "degraded"
    assert body["services"]["database"].startswith("unhealthy")
    assert body["services"]["redis"] == "disabled"
