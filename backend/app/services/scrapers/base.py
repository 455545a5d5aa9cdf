"""
Base scraper: retry, error capture and session lifecycle.

Subclasses implement `fetch_listings` (one network round trip that returns
source-specific listing payloads) and `parse_listing` (payload -> RawJob).
`scrape` wraps both and never raises: every failure is recorded as a
ScraperErrorRecord on the returned ScraperResult. Task cancellation is the
one exception, and still closes the HTTP session via `async with`.
"""

import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, List, Optional, Tuple

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.config import Settings, get_settings
from app.errors import ErrorCode, ScraperError
from app.schemas import JobSource, RawJob, ScraperConfig, ScraperErrorRecord, ScraperResult

logger = logging.getLogger(__name__)

BLOCKED_STATUS_CODES = {401, 403, 429}


def _is_retryable_error(exc: BaseException) -> bool:
    """
    Determine if an exception is retryable.

    Only retries on:
    - Timeouts and connection-level transport errors
    - HTTP 5xx responses
    - ScraperErrors explicitly marked retryable

    Does NOT retry on blocks, CAPTCHAs, 4xx or parse errors.
    """
    if isinstance(exc, ScraperError):
        return exc.retryable
    if isinstance(exc, httpx.TimeoutException):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    if isinstance(exc, httpx.TransportError):
        return True
    return False


def classify_error(source: str, exc: BaseException) -> ScraperError:
    """Map any exception raised while scraping to a ScraperError."""
    if isinstance(exc, ScraperError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return ScraperError(
            source, f"Request timed out: {exc}", ErrorCode.SCRAPER_TIMEOUT, retryable=True
        )
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in BLOCKED_STATUS_CODES:
            return ScraperError(
                source,
                f"Blocked by {source} (HTTP {status})",
                ErrorCode.SCRAPER_RATE_LIMITED,
                context={"status": status},
            )
        return ScraperError(
            source,
            f"HTTP {status} from {source}",
            ErrorCode.SCRAPER_NETWORK_ERROR,
            retryable=status >= 500,
            context={"status": status},
        )
    if isinstance(exc, httpx.TransportError):
        return ScraperError(
            source, f"Network error: {exc}", ErrorCode.SCRAPER_NETWORK_ERROR, retryable=True
        )
    return ScraperError(source, f"Failed to scrape {source}: {exc}", ErrorCode.SCRAPER_FAILED)


class BaseScraper(ABC):
    """Base class for job scrapers"""

    source: JobSource

    # Lowercased markers that mean we got an anti-bot page instead of results
    block_indicators: Tuple[str, ...] = ()

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[httpx.AsyncClient]:
        """Open an HTTP session that is closed on every exit path."""
        client = httpx.AsyncClient(
            timeout=self.settings.scraper_request_timeout_seconds,
            headers={
                "User-Agent": self.settings.scraper_user_agent,
                "Accept-Language": "en-US,en;q=0.9",
            },
            follow_redirects=True,
            transport=self._transport,
        )
        self._client = client
        try:
            yield client
        finally:
            self._client = None
            await client.aclose()

    async def close(self) -> None:
        """Release the session if a scrape is still holding one."""
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    async def scrape(self, config: ScraperConfig) -> ScraperResult:
        started = time.perf_counter()
        scraped_at = datetime.now(timezone.utc)
        jobs: List[RawJob] = []
        errors: List[ScraperErrorRecord] = []
        scraped_count = 0
        failed_count = 0

        try:
            async with self.session() as client:
                listings = await self._fetch_with_retry(client, config)
            scraped_count = len(listings)
            jobs, parse_failures = self._parse_listings(listings, scraped_at)
            failed_count += parse_failures
            if parse_failures:
                errors.append(self._record(ScraperError(
                    self.source.value,
                    f"Failed to parse {parse_failures} of {scraped_count} listings",
                    ErrorCode.SCRAPER_PARSE_ERROR,
                    context={"failed": parse_failures, "total": scraped_count},
                )))
        except Exception as e:
            error = classify_error(self.source.value, e)
            logger.warning(f"{self.source.value} scrape failed [{error.code.value}]: {error.message}")
            errors.append(self._record(error))
            failed_count += 1

        jobs = jobs[: config.max_results]
        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            f"{self.source.value}: {len(jobs)} jobs, {len(errors)} errors in {duration_ms}ms"
        )

        return ScraperResult(
            source=self.source,
            jobs=jobs,
            scraped_count=scraped_count,
            success_count=len(jobs),
            failed_count=failed_count,
            errors=errors,
            scraped_at=scraped_at,
            duration_ms=duration_ms,
        )

    async def _fetch_with_retry(
        self,
        client: httpx.AsyncClient,
        config: ScraperConfig,
    ) -> List[Any]:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.settings.scraper_max_retries)),
            wait=wait_exponential(
                multiplier=self.settings.scraper_backoff_base_seconds,
                max=self.settings.scraper_backoff_max_seconds,
            ),
            retry=retry_if_exception(_is_retryable_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self.fetch_listings(client, config)
        return []

    def _parse_listings(self, listings: List[Any], scraped_at: datetime) -> Tuple[List[RawJob], int]:
        jobs: List[RawJob] = []
        failures = 0
        for listing in listings:
            try:
                job = self.parse_listing(listing, scraped_at)
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                logger.debug(f"{self.source.value}: skipping unparseable listing: {e}")
                job = None
            if job is None:
                failures += 1
            else:
                jobs.append(job)
        return jobs, failures

    def check_blocked(self, html: str) -> None:
        """Raise a non-retryable ScraperError if the page is an anti-bot wall."""
        lower = html.lower()
        for indicator in self.block_indicators:
            if indicator in lower:
                raise ScraperError(
                    self.source.value,
                    f"Blocked by {self.source.value}: detected '{indicator}' page",
                    ErrorCode.SCRAPER_RATE_LIMITED,
                    context={"indicator": indicator},
                )

    def _record(self, error: ScraperError) -> ScraperErrorRecord:
        context = {k: v for k, v in error.context.items() if k != "source"}
        return ScraperErrorRecord(
            source=self.source.value,
            message=error.message,
            code=error.code,
            timestamp=error.timestamp,
            context=context or None,
        )

    @abstractmethod
    async def fetch_listings(self, client: httpx.AsyncClient, config: ScraperConfig) -> List[Any]:
        """Fetch raw listing payloads (dicts, HTML tags...) from the source"""
        pass

    @abstractmethod
    def parse_listing(self, listing: Any, scraped_at: datetime) -> Optional[RawJob]:
        """Normalize one payload into a RawJob, or None if unusable"""
        pass
