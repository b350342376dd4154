"""
tests/conftest.py -- Shared test fixtures for AuthGate tests.

This module provides:
  - make_settings(): Settings tuned for tests (cheap bcrypt, no rate limits)
  - db / stores / auth_service: isolated in-memory database per test
  - app_client: one TestClient per test module running the real lifespan
  - client: the module's TestClient with an empty cookie jar
  - signed_up: helper that registers a user through the API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the TestClient because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Unit-level fixtures use plain sqlite:///:memory:, which SQLAlchemy pins to a
single connection per thread.
"""

from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import create_app
from auth.db import Database
from auth.service import AuthService
from auth.store import RoleStore, SessionStore, UserStore
from auth.tokens import TokenSigner
from core.config import Settings

TEST_SECRET = "test-secret-key-0123456789abcdef0123456789"
PASSWORD = "Passw0rd!"


def make_settings(**overrides) -> Settings:
    """Settings for tests. bcrypt at its minimum cost keeps the suite fast."""
    values = {
        "environment": "development",
        "secret_key": TEST_SECRET,
        "database_url": "sqlite:///:memory:",
        "bcrypt_rounds": 4,
        "rate_limit_enabled": False,
        "session_sweep_interval_seconds": 0,
    }
    values.update(overrides)
    return Settings(**values)


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


# ---------------------------------------------------------------------------
# Unit-level fixtures -- fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def db(settings) -> Generator[Database, None, None]:
    database = Database(settings.database_url)
    yield database
    database.close()


@pytest.fixture
def user_store(db) -> UserStore:
    return UserStore(db.engine)


@pytest.fixture
def session_store(db, settings) -> SessionStore:
    return SessionStore(db.engine, settings.secret_key)


@pytest.fixture
def role_store(db) -> RoleStore:
    store = RoleStore(db.engine)
    store.ensure_default_roles()
    return store


@pytest.fixture
def signer(settings) -> TokenSigner:
    return TokenSigner(settings.secret_key, settings.jwt_algorithm)


@pytest.fixture
def auth_service(user_store, session_store, role_store, signer, settings) -> AuthService:
    return AuthService(
        users=user_store,
        sessions=session_store,
        signer=signer,
        settings=settings,
        roles=role_store,
    )


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def app_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient over a fully wired app.

    The real lifespan runs, so tests hit real route handlers, real services
    and a real (in-memory) database. Each test module gets its own database,
    named after the module.
    """
    name = request.module.__name__.rsplit(".", 1)[-1]
    settings = make_settings(database_url=f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true")
    app = create_app(settings)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client
    limiter.enabled = False


@pytest.fixture
def client(app_client) -> TestClient:
    """The module's client with no cookies carried over from earlier tests."""
    app_client.cookies.clear()
    return app_client


@pytest.fixture
def signed_up(client):
    """Register a fresh user through the API and return (email, user_id)."""

    def _signup(full_name: str = "Test User") -> tuple[str, str]:
        email = unique_email()
        resp = client.post(
            "/auth/signup",
            json={"email": email, "password": PASSWORD, "fullName": full_name},
        )
        assert resp.status_code == 201, resp.text
        return email, resp.json()["userId"]

    return _signup
