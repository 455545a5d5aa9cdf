"""
Job Search API

Endpoints:
    POST /api/search-jobs - Aggregate, score and rank jobs across sources
    GET /api/search-jobs - Usage documentation for the POST endpoint

The POST body is read raw so that malformed JSON is reported with the same
error envelope as every other validation failure.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.schemas import JobSource, JobType
from app.services.cache import get_cache
from app.services.orchestrator import SearchOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/search-jobs", tags=["search"])


async def get_orchestrator() -> SearchOrchestrator:
    settings = get_settings()
    cache = await get_cache() if settings.search_cache_enabled else None
    return SearchOrchestrator(settings=settings, cache=cache)


@router.post("")
async def search_jobs(
    request: Request,
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    """
    Search all requested sources and return ranked jobs.

    Returns 200 for complete results, 206 for partial results. Validation
    and total-failure errors are raised and rendered by the app's
    JobSearchError handler (400 / 503 / 504).
    """
    body = await request.body()
    outcome = await orchestrator.search(body)
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@router.get("")
async def search_jobs_usage():
    settings = get_settings()
    return {
        "endpoint": "/api/search-jobs",
        "method": "POST",
        "description": "Search multiple job sources concurrently and return ranked results",
        "requiredFields": {
            "query": "string - job title or keywords (non-empty)",
        },
        "optionalFields": {
            "location": "string - primary location",
            "preferredLocations": "string[] - additional acceptable locations",
            "sources": f"string[] - any of {[s.value for s in JobSource]} (default {settings.default_sources})",
            "salary": "{min?, max?, currency?} - yearly salary range, min <= max",
            "jobTypes": f"string[] - any of {[t.value for t in JobType]}",
            "keywords": "string[] - bonus keywords for title relevance",
            "excludeKeywords": "string[] - drop jobs mentioning any of these",
            "postedWithinDays": "number - 1 to 365",
            "scoringWeights": "{location, titleRelevance, salary, sourceQuality} - each 0 to 1",
            "maxResults": f"number - 1 to 100 (default {settings.default_max_results})",
            "timeoutMs": (
                f"number - overall deadline (default {settings.default_timeout_ms}, "
                f"capped at {settings.max_timeout_ms})"
            ),
        },
        "statusCodes": {
            "200": "All sources completed",
            "206": "Partial results; see data.warnings",
            "400": "Invalid request",
            "503": "No jobs and sources failed",
            "504": "No jobs before the deadline",
        },
        "example": {
            "query": "Senior Software Engineer",
            "location": "San Francisco, CA",
            "sources": ["linkedin", "google_jobs"],
            "salary": {"min": 150000, "max": 200000},
            "maxResults": 20,
        },
    }
