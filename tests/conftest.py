# tests/conftest.py
from __future__ import annotations

import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

# must be set before sellerops.db is imported (engine is built at import time)
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DELHIVERY_API_KEY"] = ""

from fastapi.testclient import TestClient  # noqa: E402

from sellerops.db import Base, SessionLocal  # noqa: E402
from sellerops.main import app  # noqa: E402


@pytest.fixture()
def engine():
    """Fresh in-memory SQLite per test, shared across threads (TestClient runs sync routes in a pool)."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    SessionLocal.configure(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture()
def db(engine):
    sess = SessionLocal()
    try:
        yield sess
    finally:
        sess.close()


@pytest.fixture()
def client(engine):
    return TestClient(app)


@pytest.fixture()
def ws_id(db):
    from sellerops.db import ensure_workspace

    return ensure_workspace(db, "default")


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self._payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        if self.text is not None:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; records calls, replays queued responses."""

    def __init__(self, responses=None, exc=None):
        self.responses = list(responses or [])
        self.exc = exc
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.responses.pop(0)


@pytest.fixture()
def fake_session_cls():
    return FakeSession


@pytest.fixture()
def fake_response_cls():
    return FakeResponse
