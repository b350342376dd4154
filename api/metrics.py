"""
api/metrics.py -- Prometheus metrics for the HTTP API.

One private CollectorRegistry per process, exposed at GET /metrics in the
Prometheus text format. The route label is the matched route template
(e.g. "/user/profile"), never the raw URL, so label cardinality stays bounded;
requests that match no route are counted under "unmatched".
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    ProcessCollector,
    generate_latest,
)

REGISTRY = CollectorRegistry()

ProcessCollector(namespace="authgate", registry=REGISTRY)

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    labelnames=("method", "route", "status_code"),
    registry=REGISTRY,
)


def route_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def record_request(request: Request, status_code: int) -> None:
    http_requests_total.labels(
        method=request.method,
        route=route_label(request),
        status_code=str(status_code),
    ).inc()


def metrics_response() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
