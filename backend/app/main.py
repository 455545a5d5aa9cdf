"""
Job Search Aggregator API - Main Application Entry Point

This module initializes the FastAPI application with:
- Logging configured from settings
- Search cache lifecycle (Redis connection closed on shutdown)
- CORS middleware for frontend communication
- Prometheus metrics
- Error envelope handlers
- API router registration

Architecture:
    FastAPI App
    ├── Lifespan Management (startup/shutdown)
    ├── CORS Middleware
    ├── Prometheus Middleware (/metrics)
    └── API Router
        └── /api/search-jobs - Aggregated, scored job search
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import api_router
from app.config import get_settings
from app.errors import ErrorCode, JobSearchError
from app.middleware.metrics import setup_metrics
from app.services.cache import close_cache, get_cache

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle events.

    Shutdown:
        1. Close the Redis search cache connection

    Yields:
        Control to the application during its runtime
    """
    logger.info("Job search API starting")
    yield
    await close_cache()


app = FastAPI(
    title="Job Search Aggregator API",
    description="Concurrent multi-source job search with explainable ranking",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_metrics(app)


@app.exception_handler(JobSearchError)
async def job_search_error_handler(request: Request, exc: JobSearchError):
    if exc.status_code >= 500:
        logger.warning(f"{exc.code.value} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": ErrorCode.UNKNOWN_ERROR.value,
                "message": "An unexpected error occurred",
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Liveness plus search cache reachability. Cache outages do not fail the check."""
    if not settings.search_cache_enabled:
        return {"status": "healthy", "cache": "disabled"}

    cache = await get_cache()
    return {
        "status": "healthy",
        "cache": "ok" if await cache.health_check() else "unavailable",
        "cacheStats": cache.get_stats(),
    }
