"""
Prometheus Metrics Middleware

Provides request/response and search pipeline metrics:
- HTTP request latency and count by endpoint and status
- Active request gauge
- Per-source scraper duration and error codes
- Search outcomes by HTTP status
- Scoring throughput and latency
- Search cache hit/miss

Usage:
    from app.middleware.metrics import setup_metrics

    app = FastAPI()
    setup_metrics(app)

Metrics Endpoint:
    GET /metrics - Prometheus-format metrics
"""

import time
import logging
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CONTENT_TYPE_LATEST,
    generate_latest,
    REGISTRY,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

logger = logging.getLogger(__name__)

# ==================== HTTP Metrics ====================

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint", "status"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0]
)

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of active HTTP requests",
    ["method", "endpoint"]
)

# ==================== Search Metrics ====================

SCRAPER_DURATION = Histogram(
    "scraper_duration_seconds",
    "Time spent scraping one source",
    ["source", "outcome"],  # outcome: success, error, timeout
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 45.0, 90.0, 180.0]
)

SCRAPER_ERRORS = Counter(
    "scraper_errors_total",
    "Scraper errors by source and error code",
    ["source", "code"]
)

SEARCH_OUTCOMES = Counter(
    "search_requests_total",
    "Search requests by response status",
    ["status"]
)

JOBS_SCORED = Counter(
    "jobs_scored_total",
    "Total jobs scored"
)

SCORING_LATENCY = Histogram(
    "scoring_duration_seconds",
    "Time to score and rank one result set",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25]
)

CACHE_HITS = Counter(
    "search_cache_hits_total",
    "Total search cache hits"
)

CACHE_MISSES = Counter(
    "search_cache_misses_total",
    "Total search cache misses"
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for Prometheus metrics collection.

    Records:
    - Request latency
    - Request count by status code
    - Active request count
    """

    def __init__(self, app: FastAPI, app_name: str = "jobsearch"):
        super().__init__(app)
        self.app_name = app_name

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        endpoint = self._get_endpoint(request)
        method = request.method

        if endpoint == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.labels(method=method, endpoint=endpoint).inc()
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            status = str(response.status_code)
        except Exception as e:
            logger.error(f"Request error: {e}")
            raise
        finally:
            duration = time.perf_counter() - start_time
            REQUEST_LATENCY.labels(method=method, endpoint=endpoint, status=status).observe(duration)
            REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status).inc()
            ACTIVE_REQUESTS.labels(method=method, endpoint=endpoint).dec()

        return response

    def _get_endpoint(self, request: Request) -> str:
        """Route pattern rather than raw path, to bound label cardinality."""
        for route in request.app.routes:
            path = getattr(route, "path", None)
            # Included routers carry no path of their own
            if path is None:
                continue
            match, _ = route.matches(request.scope)
            if match == Match.FULL:
                return path
        return request.url.path


def metrics_endpoint(request: Request) -> Response:
    return PlainTextResponse(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST
    )


def setup_metrics(app: FastAPI) -> None:
    """Add the metrics middleware and GET /metrics route."""
    app.add_middleware(PrometheusMiddleware, app_name="jobsearch")
    app.add_route("/metrics", metrics_endpoint, methods=["GET"])
    logger.info("Prometheus metrics configured")


# ==================== Helper Functions ====================

def record_scraper_result(source: str, outcome: str, duration: float) -> None:
    SCRAPER_DURATION.labels(source=source, outcome=outcome).observe(duration)


def record_scraper_error(source: str, code: str) -> None:
    SCRAPER_ERRORS.labels(source=source, code=code).inc()


def record_search_outcome(status: int) -> None:
    SEARCH_OUTCOMES.labels(status=str(status)).inc()


def record_scoring(job_count: int, duration: float) -> None:
    JOBS_SCORED.inc(job_count)
    SCORING_LATENCY.observe(duration)


def record_cache_hit() -> None:
    CACHE_HITS.inc()


def record_cache_miss() -> None:
    CACHE_MISSES.inc()
