"""Prometheus metrics for the media worker."""

from __future__ import annotations

import time
from typing import Callable

from fastapi import APIRouter, Depends, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from .deps.auth import get_api_key

# media requests include a download plus an ffmpeg pass, so buckets reach minutes
REQUEST_BUCKETS = (0.05, 0.25, 1.0, 5.0, 15.0, 60.0, 180.0, 600.0, 1800.0)

REQUEST_COUNTER = Counter(
    "clipsense_http_requests_total",
    "HTTP requests by route template and status",
    labelnames=("path", "method", "status"),
)

REQUEST_LATENCY = Histogram(
    "clipsense_http_request_seconds",
    "HTTP request latency including media download and processing",
    labelnames=("path", "method"),
    buckets=REQUEST_BUCKETS,
)

REQUESTS_IN_FLIGHT = Gauge(
    "clipsense_http_requests_in_flight",
    "HTTP requests currently being served",
)

ANALYSIS_COUNTER = Counter(
    "astats_analyses_total",
    "Completed activity analyses by measurement method",
    labelnames=("method",),
)

ANALYSIS_FAILURES = Counter(
    "astats_analysis_failures_total",
    "Analyses where neither measurement strategy could run",
)

ANALYSIS_DURATION = Histogram(
    "astats_analysis_seconds",
    "Time spent analysing one input (excluding download)",
)

ARTIFACT_UPLOADS = Counter(
    "artifact_uploads_total",
    "Artifacts published to the object store",
    labelnames=("backend", "status"),
)

router = APIRouter()


@router.get("/metrics")
async def metrics_endpoint(_: str = Depends(get_api_key)) -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def instrument_app(app):
    @app.middleware("http")
    async def prometheus_middleware(request, call_next: Callable):  # type: ignore
        start = time.perf_counter()
        REQUESTS_IN_FLIGHT.inc()
        try:
            response = await call_next(request)
        finally:
            REQUESTS_IN_FLIGHT.dec()
        route = request.scope.get("route")
        # unmatched paths are collapsed to keep label cardinality bounded
        path = getattr(route, "path", "unmatched")
        REQUEST_COUNTER.labels(path=path, method=request.method, status=response.status_code).inc()
        REQUEST_LATENCY.labels(path=path, method=request.method).observe(time.perf_counter() - start)
        return response

    return app
