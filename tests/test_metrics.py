"""
tests/test_metrics.py -- Integration tests for GET /metrics and the request counter.

Covers:
  - /metrics serves the Prometheus text format without authentication
  - every request increments http_requests_total under its route template
  - requests that match no route are counted as "unmatched"
  - metrics can be switched off
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from api.main import create_app
from api.metrics import REGISTRY
from core.config import Settings


def _count(method: str, route: str, status_code: str) -> float:
    value = REGISTRY.get_sample_value(
        "http_requests_total",
        {"method": method, "route": route, "status_code": status_code},
    )
    return value or 0.0


def test_metrics_endpoint_serves_prometheus_text(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert "# TYPE http_requests_total counter" in resp.text


def test_request_counter_uses_route_template(client):
    before = _count("GET", "/health", "200")
    client.get("/health")
    client.get("/health")
    assert _count("GET", "/health", "200") == before + 2


def test_error_responses_are_counted(client):
    before = _count("GET", "/user/profile", "401")
    assert client.get("/user/profile").status_code == 401
    assert _count("GET", "/user/profile", "401") == before + 1


def test_unknown_path_counted_as_unmatched(client):
    before = _count("GET", "unmatched", "404")
    assert client.get("/no/such/path").status_code == 404
    assert _count("GET", "unmatched", "404") == before + 1


def test_counter_appears_in_scrape(client):
    client.get("/health")
    body = client.get("/metrics").text
    assert 'http_requests_total{method="GET",route="/health",status_code="200"}' in body


def test_metrics_can_be_disabled():
    settings = Settings(
        environment="development",
        secret_key="metrics-secret-key-0123456789abcdef012345",
        database_url="sqlite:///file:metrics_off?mode=memory&cache=shared&uri=true",
        rate_limit_enabled=False,
        bcrypt_rounds=4,
        metrics_enabled=False,
    )
    with TestClient(create_app(settings)) as off_client:
        before = _count("GET", "/health", "200")
        assert off_client.get("/metrics").status_code == 404
        off_client.get("/health")
        assert _count("GET", "/health", "200") == before
