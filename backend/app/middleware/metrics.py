"""
Prometheus metrics middleware.

Collects HTTP request metrics (counter + histogram) and exposes application
level counters/histograms for the natural-language query engine.
"""

import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# ── HTTP metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ── Query engine metrics ─────────────────────────────────────────────────────

nl_queries_total = Counter(
    "nl_queries_total",
    "Completed natural-language queries",
    ["binding", "outcome"],
)

nl_query_duration_seconds = Histogram(
    "nl_query_duration_seconds",
    "End-to-end natural-language query duration in seconds",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

nl_resolver_duration_seconds = Histogram(
    "nl_resolver_duration_seconds",
    "Intent resolver call duration in seconds",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

nl_authorization_denials_total = Counter(
    "nl_authorization_denials_total",
    "Resolved intents rejected by the authorization gate",
    ["reason"],
)

nl_superseded_queries_total = Counter(
    "nl_superseded_queries_total",
    "Query completions dropped because a newer submission had started",
)


def _normalize_path(path: str) -> str:
    """Collapse path parameters to reduce cardinality.

    e.g. /api/query/sessions/42 → /api/query/sessions/{id}
    """
    parts = path.strip("/").split("/")
    normalized = []
    for i, part in enumerate(parts):
        if i > 1 and (part.isdigit() or len(part) > 20):
            normalized.append("{id}")
        else:
            normalized.append(part)
    return "/" + "/".join(normalized)


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # Skip metrics endpoint itself to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = _normalize_path(request.url.path)

        start = time.time()
        response = await call_next(request)
        duration = time.time() - start

        http_requests_total.labels(method=method, path=path, status_code=response.status_code).inc()
        http_request_duration_seconds.labels(method=method, path=path).observe(duration)

        return response
