from __future__ import annotations

"""Prometheus metrics for the SiteChat FastAPI backend.

Adds an HTTP middleware that records request latency per method/path/status,
plus counters and histograms for chat turns and completion calls.
"""

import time
from typing import Callable, Awaitable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

# Histogram buckets chosen for web latencies (seconds)
REQUEST_LATENCY = Histogram(
    "sitechat_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 120.0),
)

# Reasoning models routinely take tens of seconds
COMPLETION_LATENCY = Histogram(
    "sitechat_completion_latency_seconds",
    "Completion API call latency in seconds",
    labelnames=("model",),
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
)

TURNS = Counter(
    "sitechat_turns_total",
    "Chat turns by final outcome",
    labelnames=("outcome",),
)

SNAPSHOTS = Counter(
    "sitechat_snapshots_total",
    "Artifact snapshot commits by result",
    labelnames=("result",),
)


def sanitize_path(path: str) -> str:
    """Reduce high-cardinality paths (e.g., /artifacts/{name}.html) to a coarse label."""
    if not path:
        return "/"
    segs = path.split("?")[0].split("/")
    if len(segs) > 1:
        return "/" + segs[1]
    return path


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        # Avoid observing the metrics endpoint itself
        if request.url.path.startswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        REQUEST_LATENCY.labels(
            method=request.method,
            path=sanitize_path(request.url.path),
            status=str(response.status_code),
        ).observe(elapsed)
        return response

    return middleware
