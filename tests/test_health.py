"""
tests/test_health.py -- Integration tests for GET /health and the app shell.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok' against a live database
  - No authentication required
  - Security headers on every response; HSTS only outside development
  - /docs served in development only
  - the background sweep task is cancelled and awaited on shutdown
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from api.main import __version__, create_app
from core.config import Settings


def test_health_returns_200_with_components(client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == __version__
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_no_auth_required(client):
    """Health endpoint is accessible without any authentication headers."""
    resp = client.get("/health", headers={})
    assert resp.status_code == 200


def test_security_headers_present(client):
    resp = client.get("/health")
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-frame-options"] == "DENY"
    assert resp.headers["referrer-policy"] == "no-referrer"
    assert "strict-transport-security" not in resp.headers


def test_docs_enabled_in_development(client):
    assert client.get("/docs").status_code == 200


def test_production_app_hides_docs_and_sets_hsts():
    settings = Settings(
        environment="production",
        secret_key="prod-secret-key-0123456789abcdef0123456789",
        database_url="sqlite:///file:health_prod?mode=memory&cache=shared&uri=true",
        rate_limit_enabled=False,
        bcrypt_rounds=4,
    )
    with TestClient(create_app(settings)) as prod_client:
        assert prod_client.get("/docs").status_code == 404
        resp = prod_client.get("/health")
        assert resp.status_code == 200
        assert "strict-transport-security" in resp.headers


def test_sweep_task_finished_before_shutdown_completes():
    settings = Settings(
        environment="development",
        secret_key="sweep-secret-key-0123456789abcdef01234567",
        database_url="sqlite:///file:health_sweep?mode=memory&cache=shared&uri=true",
        rate_limit_enabled=False,
        bcrypt_rounds=4,
        session_sweep_interval_seconds=3600,
    )
    app = create_app(settings)
    with TestClient(app):
        task = app.state.sweep_task
        assert not task.done()
    assert task.cancelled()
