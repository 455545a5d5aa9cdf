"""
Tests for source scrapers: parsing, retry, error capture and cleanup.

HTTP is served by httpx.MockTransport so no network access is needed.

Run with: cd backend && pytest tests/test_scrapers.py -v
"""

import asyncio
from contextlib import asynccontextmanager

import httpx
import pytest

from app.config import Settings
from app.errors import ErrorCode
from app.schemas import JobSource, JobType, SalaryPeriod, ScraperConfig
from app.services.scrapers import (
    GoogleJobsScraper,
    IndeedScraper,
    LinkedInScraper,
    get_scraper,
)

GOOGLE_JOB = {
    "title": "Senior Software Engineer",
    "company_name": "Tech Corp",
    "location": "San Francisco, CA",
    "via": "LinkedIn",
    "description": "Build distributed systems.",
    "job_highlights": [{"title": "Qualifications", "items": ["5+ years Python"]}],
    "detected_extensions": {
        "posted_at": "3 days ago",
        "schedule_type": "Full-time",
        "salary": "150K–200K a year",
    },
    "apply_options": [{"title": "LinkedIn", "link": "https://www.linkedin.com/jobs/view/1"}],
    "job_id": "abc",
}

INDEED_HTML = """
<html><body>
<div class="job_seen_beacon">
  <h2 class="jobTitle"><a class="jcs-JobTitle" href="/rc/clk?jk=abc123&amp;from=serp">
    <span title="Backend Engineer">Backend Engineer</span></a></h2>
  <span data-testid="company-name">Acme Inc.</span>
  <div data-testid="text-location">Austin, TX</div>
  <div class="salary-snippet-container">$120,000 - $150,000 a year</div>
  <div class="job-snippet">Build and run APIs.</div>
  <span class="date">Posted 3 days ago</span>
</div>
<div class="job_seen_beacon">
  <h2 class="jobTitle"><a class="jcs-JobTitle" href="/rc/clk?jk=def456">
    <span title="Data Engineer">Data Engineer</span></a></h2>
</div>
</body></html>
"""

LINKEDIN_HTML = """
<li>
  <div class="base-card job-search-card" data-entity-urn="urn:li:jobPosting:1">
    <a class="base-card__full-link" href="https://www.linkedin.com/jobs/view/1?trk=guest"></a>
    <h3 class="base-search-card__title">Frontend Developer</h3>
    <h4 class="base-search-card__subtitle">Globex Corporation</h4>
    <span class="job-search-card__location">Remote</span>
    <span class="job-search-card__salary-info">$140,000 - $160,000</span>
    <time class="job-search-card__listdate" datetime="2025-01-12">3 days ago</time>
  </div>
</li>
"""


@pytest.fixture
def settings():
    return Settings(
        serpapi_key="test-key",
        scraper_max_retries=3,
        scraper_backoff_base_seconds=0,
        scraper_backoff_max_seconds=0,
    )


@pytest.fixture
def config():
    return ScraperConfig(search_query="Software Engineer", location="San Francisco, CA", max_results=10)


def _transport(responses):
    """MockTransport replaying `responses` in order; records each request."""
    calls = []

    def handler(request: httpx.Request):
        calls.append(request)
        response = responses[min(len(calls), len(responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response

    return httpx.MockTransport(handler), calls


class TestGoogleJobsScraper:

    @pytest.mark.asyncio
    async def test_missing_api_key_makes_no_request(self, config):
        transport, calls = _transport([httpx.Response(200, json={})])
        scraper = GoogleJobsScraper(settings=Settings(serpapi_key=""), transport=transport)

        result = await scraper.scrape(config)

        assert result.jobs == []
        assert result.errors[0].code == ErrorCode.SCRAPER_INVALID_CONFIG
        assert "SERPAPI_KEY" in result.errors[0].message
        assert calls == []

    @pytest.mark.asyncio
    async def test_parses_results(self, settings, config):
        transport, calls = _transport([httpx.Response(200, json={"jobs_results": [GOOGLE_JOB]})])
        scraper = GoogleJobsScraper(settings=settings, transport=transport)

        result = await scraper.scrape(config)

        assert result.errors == []
        assert result.success_count == 1
        job = result.jobs[0]
        assert job.source == JobSource.GOOGLE_JOBS
        assert job.url == "https://www.linkedin.com/jobs/view/1"
        assert job.id.startswith("google_jobs-")
        assert job.salary.min == 150000
        assert job.salary.period == SalaryPeriod.YEARLY
        assert job.job_type == JobType.FULL_TIME
        assert "5+ years Python" in job.description
        assert job.metadata["via"] == "LinkedIn"
        assert (job.scraped_at - job.posted_date).days == 3
        assert calls[0].url.params["engine"] == "google_jobs"
        assert calls[0].url.params["q"] == "Software Engineer"

    @pytest.mark.asyncio
    async def test_html_description_is_flattened(self, settings, config):
        listing = dict(GOOGLE_JOB, description="<p>Own the <b>payments</b> API.</p>", job_highlights=[])
        transport, _ = _transport([httpx.Response(200, json={"jobs_results": [listing]})])
        scraper = GoogleJobsScraper(settings=settings, transport=transport)

        result = await scraper.scrape(config)

        assert result.jobs[0].description == "Own the payments API."

    @pytest.mark.asyncio
    async def test_truncates_to_max_results(self, settings):
        listings = [dict(GOOGLE_JOB, job_id=str(i), apply_options=[{"link": f"https://x/{i}"}]) for i in range(8)]
        transport, _ = _transport([httpx.Response(200, json={"jobs_results": listings})])
        scraper = GoogleJobsScraper(settings=settings, transport=transport)

        result = await scraper.scrape(ScraperConfig(search_query="Engineer", max_results=5))

        assert len(result.jobs) == 5
        assert result.scraped_count == 8

    @pytest.mark.asyncio
    async def test_unparseable_listing_counted(self, settings, config):
        broken = {"company_name": "No Title Inc"}
        transport, _ = _transport([httpx.Response(200, json={"jobs_results": [GOOGLE_JOB, broken]})])
        scraper = GoogleJobsScraper(settings=settings, transport=transport)

        result = await scraper.scrape(config)

        assert len(result.jobs) == 1
        assert result.failed_count == 1
        assert result.errors[0].code == ErrorCode.SCRAPER_PARSE_ERROR


class TestRetry:

    @pytest.mark.asyncio
    async def test_transient_failure_then_success(self, settings, config):
        transport, calls = _transport([
            httpx.Response(503),
            httpx.Response(200, json={"jobs_results": [GOOGLE_JOB]}),
        ])
        scraper = GoogleJobsScraper(settings=settings, transport=transport)

        result = await scraper.scrape(config)

        assert len(calls) == 2
        assert len(result.jobs) == 1
        assert result.errors == []
        assert result.failed_count == 0

    @pytest.mark.asyncio
    async def test_timeouts_exhaust_retries(self, settings, config):
        transport, calls = _transport([httpx.ConnectTimeout("connect timed out")])
        scraper = GoogleJobsScraper(settings=settings, transport=transport)

        result = await scraper.scrape(config)

        assert len(calls) == 3
        assert result.jobs == []
        assert result.errors[0].code == ErrorCode.SCRAPER_TIMEOUT

    @pytest.mark.asyncio
    async def test_blocked_status_is_not_retried(self, settings, config):
        transport, calls = _transport([httpx.Response(403)])
        scraper = GoogleJobsScraper(settings=settings, transport=transport)

        result = await scraper.scrape(config)

        assert len(calls) == 1
        assert result.errors[0].code == ErrorCode.SCRAPER_RATE_LIMITED


class TestHtmlScrapers:

    @pytest.mark.asyncio
    async def test_indeed_cards(self, settings, config):
        transport, calls = _transport([httpx.Response(200, text=INDEED_HTML)])
        scraper = IndeedScraper(settings=settings, transport=transport)

        result = await scraper.scrape(config)

        assert len(result.jobs) == 1
        assert result.failed_count == 1
        job = result.jobs[0]
        assert job.title == "Backend Engineer"
        assert job.company == "Acme"
        assert job.location == "Austin, TX"
        assert job.url == "https://www.indeed.com/viewjob?jk=abc123"
        assert (job.salary.min, job.salary.max) == (120000, 150000)
        assert job.metadata["jobKey"] == "abc123"
        assert calls[0].url.params["q"] == "Software Engineer"
        assert calls[0].url.params["sort"] == "date"

    @pytest.mark.asyncio
    async def test_indeed_captcha_is_blocked(self, settings, config):
        page = "<html><body><div id='hcaptcha'>Please prove you're human</div></body></html>"
        transport, calls = _transport([httpx.Response(200, text=page)])
        scraper = IndeedScraper(settings=settings, transport=transport)

        result = await scraper.scrape(config)

        assert len(calls) == 1
        assert result.jobs == []
        assert result.errors[0].code == ErrorCode.SCRAPER_RATE_LIMITED

    @pytest.mark.asyncio
    async def test_linkedin_cards(self, settings, config):
        transport, calls = _transport([httpx.Response(200, text=LINKEDIN_HTML)])
        scraper = LinkedInScraper(settings=settings, transport=transport)

        result = await scraper.scrape(config)

        assert len(calls) == 1
        job = result.jobs[0]
        assert job.title == "Frontend Developer"
        assert job.company == "Globex"
        assert job.location == "Remote"
        assert job.url == "https://www.linkedin.com/jobs/view/1"
        assert job.posted_date.day == 12
        assert job.metadata["entityUrn"] == "urn:li:jobPosting:1"

    def test_linkedin_filters(self, settings):
        scraper = LinkedInScraper(settings=settings)
        params = scraper.build_params(ScraperConfig(
            search_query="Engineer",
            location="Remote",
            job_type=JobType.CONTRACT,
            posted_within_days=7,
        ))
        assert params["f_TPR"] == "r604800"
        assert params["f_JT"] == "C"


class TestFailureContainment:

    @pytest.mark.asyncio
    async def test_session_start_failure_is_captured(self, settings, config):
        scraper = IndeedScraper(settings=settings)

        @asynccontextmanager
        async def broken_session():
            raise RuntimeError("browser launch failed")
            yield

        scraper.session = broken_session

        result = await scraper.scrape(config)

        assert result.jobs == []
        assert "browser launch failed" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_cancellation_closes_session(self, settings, config):
        async def slow_handler(request):
            await asyncio.sleep(10)
            return httpx.Response(200, text="")

        scraper = IndeedScraper(settings=settings, transport=httpx.MockTransport(slow_handler))
        task = asyncio.create_task(scraper.scrape(config))
        await asyncio.sleep(0.05)
        client = scraper._client
        assert client is not None

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert client.is_closed
        assert scraper._client is None

    def test_registry_returns_fresh_instances(self, settings):
        first = get_scraper(JobSource.LINKEDIN, settings=settings)
        second = get_scraper(JobSource.LINKEDIN, settings=settings)
        assert isinstance(first, LinkedInScraper)
        assert first is not second
