"""
Tests for the search HTTP endpoints and error envelope.

The orchestrator dependency is overridden so no scraper touches the network.

Run with: cd backend && pytest tests/test_search_api.py -v
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.api.search import get_orchestrator
from app.config import Settings
from app.errors import ErrorCode, SearchTimeoutError
from app.main import app
from app.middleware import PrometheusMiddleware
from app.schemas import JobSource, ScraperErrorRecord, ScraperResult
from app.services.orchestrator import SearchOrchestrator


class StubScraper:
    def __init__(self, source, jobs=None, error_code=None):
        self.source = source
        self.jobs = jobs or []
        self.error_code = error_code

    async def scrape(self, config):
        now = datetime.now(timezone.utc)
        errors = []
        if self.error_code:
            errors.append(ScraperErrorRecord(
                source=self.source.value, message="upstream failure", code=self.error_code, timestamp=now
            ))
        return ScraperResult(
            source=self.source,
            jobs=self.jobs,
            scraped_count=len(self.jobs),
            success_count=len(self.jobs),
            errors=errors,
            scraped_at=now,
        )

    async def close(self):
        pass


@pytest.fixture
def use_scrapers():
    """Install an orchestrator backed by the given stub scrapers."""

    def install(stubs):
        orchestrator = SearchOrchestrator(
            settings=Settings(search_cache_enabled=False),
            scraper_factory=lambda source, settings=None: stubs[source],
        )
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    yield install
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


class TestSearchEndpoint:

    def test_complete_results(self, client, use_scrapers, make_job):
        use_scrapers({JobSource.LINKEDIN: StubScraper(JobSource.LINKEDIN, [make_job()])})

        response = client.post("/api/search-jobs", json={"query": "Software Engineer", "sources": ["linkedin"]})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        job = body["data"]["jobs"][0]
        assert job["rank"] == 1
        assert set(job["scoreBreakdown"]) == {"location", "titleRelevance", "salary", "sourceQuality", "total"}
        assert "enhancedScoreBreakdown" in job["metadata"]

    def test_partial_results(self, client, use_scrapers, make_job):
        use_scrapers({
            JobSource.LINKEDIN: StubScraper(JobSource.LINKEDIN, [make_job()]),
            JobSource.INDEED: StubScraper(JobSource.INDEED, error_code=ErrorCode.SCRAPER_NETWORK_ERROR),
        })

        response = client.post("/api/search-jobs", json={"query": "Engineer", "sources": ["linkedin", "indeed"]})

        assert response.status_code == 206
        assert response.json()["data"]["warnings"]

    def test_validation_error_envelope(self, client, use_scrapers):
        use_scrapers({})

        response = client.post("/api/search-jobs", json={"query": ""})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_FAILED"
        assert "Invalid request data" in body["error"]["message"]
        assert "timestamp" in body

    def test_malformed_json(self, client, use_scrapers):
        use_scrapers({})

        response = client.post(
            "/api/search-jobs",
            content=b"{query:",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_INVALID_FORMAT"

    def test_all_sources_failed(self, client, use_scrapers):
        use_scrapers({JobSource.INDEED: StubScraper(JobSource.INDEED, error_code=ErrorCode.SCRAPER_FAILED)})

        response = client.post("/api/search-jobs", json={"query": "Engineer", "sources": ["indeed"]})

        assert response.status_code == 503
        error = response.json()["error"]
        assert error["code"] == "ALL_SOURCES_FAILED"
        assert error["message"] == "Failed to retrieve jobs from all sources"
        assert error["details"]["errors"][0]["source"] == "indeed"

    def test_search_timeout(self, client):
        orchestrator = MagicMock()
        orchestrator.search = AsyncMock(
            side_effect=SearchTimeoutError("Search timed out", {"timedOutSources": ["linkedin"]})
        )
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        try:
            response = client.post("/api/search-jobs", json={"query": "Engineer"})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 504
        assert response.json()["error"]["code"] == "SEARCH_TIMEOUT"

    def test_unexpected_error_is_500(self):
        orchestrator = MagicMock()
        orchestrator.search = AsyncMock(side_effect=RuntimeError("kaboom"))
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        try:
            response = TestClient(app, raise_server_exceptions=False).post(
                "/api/search-jobs", json={"query": "Engineer"}
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "UNKNOWN_ERROR"


class TestAuxiliaryEndpoints:

    def test_usage_document(self, client):
        response = client.get("/api/search-jobs")

        assert response.status_code == 200
        body = response.json()
        assert body["method"] == "POST"
        assert "query" in body["requiredFields"]
        assert "timeoutMs" in body["optionalFields"]

    def test_health_with_cache_up(self, client):
        cache = MagicMock()
        cache.health_check = AsyncMock(return_value=True)
        cache.get_stats.return_value = {"hits": 2, "misses": 2, "errors": 0, "total": 4, "hit_rate": 0.5}

        with patch("app.main.get_cache", AsyncMock(return_value=cache)):
            response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["cache"] == "ok"
        assert body["cacheStats"]["hit_rate"] == 0.5

    def test_health_survives_cache_outage(self, client):
        cache = MagicMock()
        cache.health_check = AsyncMock(return_value=False)
        cache.get_stats.return_value = {"hits": 0, "misses": 0, "errors": 1, "total": 0, "hit_rate": 0.0}

        with patch("app.main.get_cache", AsyncMock(return_value=cache)):
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["cache"] == "unavailable"

    def test_metrics(self, client):
        client.get("/api/search-jobs")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "http_requests_total" in response.text


class TestRealDependencies:
    """Requests that go through the app's own orchestrator dependency."""

    def test_malformed_body_is_400(self, client):
        response = client.post(
            "/api/search-jobs",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_INVALID_FORMAT"

    def test_blank_query_is_400(self, client):
        response = client.post("/api/search-jobs", json={"query": "  "})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_FAILED"

    def test_endpoint_label_skips_pathless_routes(self):
        middleware = PrometheusMiddleware(app)
        request = MagicMock()
        request.app.routes = [object(), *app.routes]
        request.scope = {"type": "http", "path": "/health", "method": "GET"}
        request.url.path = "/health"

        assert middleware._get_endpoint(request) == "/health"
