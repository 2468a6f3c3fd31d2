"""Pytest fixtures."""

import fnmatch
import os
import uuid

# The websocket gateway and the sweep open their own sessions, so the test
# database has to be configured before the app is imported.
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ENVIRONMENT"] = "development"
os.environ["NOTIFICATION_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["FIREBASE_CREDENTIALS_PATH"] = ""
os.environ["SMTP_HOST"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from nest import models  # noqa: E402,F401 - register for create_all
from nest.db.base import Base  # noqa: E402
from nest.db.session import SessionLocal, engine  # noqa: E402
from nest.main import app  # noqa: E402
from nest.models.user import User  # noqa: E402
from nest.services import kv_store  # noqa: E402


class FakeRedis:
    """In-memory stand-in for the redis.asyncio calls the app makes."""

    def __init__(self):
        self.values = {}
        self.hashes = {}
        self.ttls = {}

    async def set(self, key, value, ex=None):
        self.values[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def get(self, key):
        return self.values.get(key)

    async def hset(self, key, mapping=None, **kwargs):
        self.hashes.setdefault(key, {}).update(mapping or {})
        return len(mapping or {})

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def scan_iter(self, match=None):
        for key in list(self.hashes):
            if match is None or fnmatch.fnmatch(key, match):
                yield key


@pytest.fixture(scope="session")
def setup_db():
    """Create tables once for test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(setup_db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(setup_db):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(kv_store, "get_redis", lambda: fake)
    return fake


def unique():
    return uuid.uuid4().hex[:6]


@pytest.fixture
def make_user(client):
    """Register and log in a user. Returns {"id", "email", "headers"}.

    Registration always yields a resident; staff roles are granted in the database.
    """

    def _make(role="resident", name=None):
        email = f"{role}_{unique()}@test.com"
        created = client.post(
            "/auth/register",
            json={"email": email, "password": "pass123", "name": name or role.title()},
        )
        assert created.status_code == 201, created.json()
        user_id = created.json()["data"]["id"]
        if role != "resident":
            session = SessionLocal()
            try:
                session.get(User, user_id).role = role
                session.commit()
            finally:
                session.close()
        login = client.post("/auth/login", json={"email": email, "password": "pass123"})
        token = login.json()["data"]["access_token"]
        return {
            "id": user_id,
            "email": email,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    return _make


def report_body(**overrides):
    body = {
        "title": "Leak",
        "description": "Water leaking from the main line",
        "category": "water",
        "subcategory": "leak",
        "severity": "high",
        "location": {"coordinates": [-122.4, 37.8], "address": "1 Main St"},
    }
    body.update(overrides)
    return body


@pytest.fixture
def create_report(client):
    def _create(headers, **overrides):
        r = client.post("/reports", headers=headers, json=report_body(**overrides))
        assert r.status_code == 201, r.json()
        return r.json()["data"]

    return _create
