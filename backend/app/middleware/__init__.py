"""
Middleware Package

Contains FastAPI middleware for:
- Prometheus metrics collection
"""

from app.middleware.metrics import (
    PrometheusMiddleware,
    setup_metrics,
    REQUEST_LATENCY,
    REQUEST_COUNT,
    ACTIVE_REQUESTS,
    SCRAPER_DURATION,
    SCRAPER_ERRORS,
    SEARCH_OUTCOMES,
)

__all__ = [
    "PrometheusMiddleware",
    "setup_metrics",
    "REQUEST_LATENCY",
    "REQUEST_COUNT",
    "ACTIVE_REQUESTS",
    "SCRAPER_DURATION",
    "SCRAPER_ERRORS",
    "SEARCH_OUTCOMES",
]
