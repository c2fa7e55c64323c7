"""Prometheus metrics for HTTP traffic and CRM domain events.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- record_lead_conversion() / record_import_rows(): domain counters
- get_metrics_response(): handler body for /metrics
"""

from __future__ import annotations

import time

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── CRM Metrics ──────────────────────────────────────────────────────────────

lead_conversions_total = Counter(
    "crm_lead_conversions_total",
    "Lead to client conversions",
    ["entry_point", "outcome"],
)

import_rows_total = Counter(
    "crm_import_rows_total",
    "Spreadsheet rows processed by bulk import",
    ["entity", "outcome"],
)


def record_lead_conversion(entry_point: str, created: bool) -> None:
    """Count a conversion; ``created`` is False when an existing client was reused."""
    lead_conversions_total.labels(
        entry_point=entry_point,
        outcome="created" if created else "reused",
    ).inc()


def record_import_rows(entity: str, imported: int, skipped: int) -> None:
    """Count imported and skipped rows for a bulk import."""
    if imported:
        import_rows_total.labels(entity=entity, outcome="imported").inc(imported)
    if skipped:
        import_rows_total.labels(entity=entity, outcome="skipped").inc(skipped)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Uses the matched route pattern as the endpoint label so that ids in the
    path do not explode label cardinality. Skips the /metrics endpoint itself.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or request.url.path

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


# ── Metrics Endpoint ─────────────────────────────────────────────────────────


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
