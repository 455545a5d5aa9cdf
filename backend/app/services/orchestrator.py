"""
Search Orchestrator - request boundary for job searches.

Pipeline:
    body -> validate (400 on failure, before any I/O)
         -> cache lookup
         -> fan out one task per source under a single deadline
         -> aggregate, de-duplicate, filter
         -> score & rank, truncate to maxResults
         -> response (200 / 206) or escalate (503 / 504)

Status Rules:
    200  every requested source completed without error (even with 0 jobs)
    206  at least one source failed, timed out or parsed only partially
    503  no usable jobs and at least one source errored
    504  no usable jobs and at least one source hit the deadline

Scrapers never raise; the orchestrator only reads their immutable
ScraperResults after fan-in, so no locking is needed.
"""

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError

from app.config import Settings, get_settings
from app.errors import (
    AllSourcesFailedError,
    ErrorCode,
    JobSearchError,
    SearchTimeoutError,
    ValidationError,
)
from app.middleware.metrics import (
    record_cache_hit,
    record_cache_miss,
    record_scoring,
    record_scraper_error,
    record_scraper_result,
    record_search_outcome,
)
from app.schemas import (
    JobSource,
    RawJob,
    ScraperConfig,
    ScraperErrorRecord,
    ScraperResult,
    SearchCriteria,
    SearchData,
    SearchMetadata,
    SearchResponse,
)
from app.schemas.search import ScoreDistribution
from app.services.cache import SearchCache
from app.services.normalize import ensure_aware, normalize_company_name
from app.services.scoring import ScoringEngine
from app.services.scrapers import BaseScraper, get_scraper

logger = logging.getLogger(__name__)

HIGH_SCORE_THRESHOLD = 80
MEDIUM_SCORE_THRESHOLD = 50


@dataclass
class SearchOutcome:
    """HTTP status plus JSON-ready body for a completed search."""
    status_code: int
    body: Dict[str, Any]


def _alnum(text: Optional[str]) -> str:
    return re.sub(r"[^a-z0-9]", "", (text or "").lower())


def dedupe_key(job: RawJob) -> str:
    return "|".join([
        _alnum(job.title),
        _alnum(normalize_company_name(job.company)),
        _alnum(job.location),
    ])


def _richness(job: RawJob) -> Tuple[bool, int, datetime]:
    return job.salary is not None, len(job.description or ""), ensure_aware(job.posted_date)


def deduplicate_jobs(jobs: Sequence[RawJob]) -> Tuple[List[RawJob], int]:
    """
    Collapse the same posting seen on several sources.

    The first occurrence keeps its position; its content is replaced by a
    later duplicate only when that one is richer (has salary, then longer
    description, then newer).

    Returns:
        Tuple of (unique jobs, number of duplicates removed)
    """
    positions: Dict[str, int] = {}
    unique: List[RawJob] = []
    for job in jobs:
        key = dedupe_key(job)
        if key not in positions:
            positions[key] = len(unique)
            unique.append(job)
        elif _richness(job) > _richness(unique[positions[key]]):
            unique[positions[key]] = job
    return unique, len(jobs) - len(unique)


def _format_validation_errors(exc: PydanticValidationError) -> Tuple[str, List[Dict[str, str]]]:
    details = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.append({"field": field, "message": message})
    summary = "; ".join(f"{d['field']}: {d['message']}" for d in details)
    return summary, details


class SearchOrchestrator:
    """
    Runs one search request end to end.

    Args:
        settings: Application settings (defaults from environment)
        engine: Scoring engine
        cache: Optional search cache; None disables caching
        scraper_factory: Callable(source, settings) -> BaseScraper
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        engine: Optional[ScoringEngine] = None,
        cache: Optional[SearchCache] = None,
        scraper_factory: Callable[..., BaseScraper] = get_scraper,
    ):
        self.settings = settings or get_settings()
        self.engine = engine or ScoringEngine()
        self.cache = cache
        self.scraper_factory = scraper_factory

    # ==================== Validation ====================

    def validate(self, body: Any) -> SearchCriteria:
        """Parse and validate a request body, applying defaults and caps."""
        if isinstance(body, (bytes, bytearray, str)):
            try:
                body = json.loads(body)
            except ValueError as e:
                raise ValidationError(
                    f"Invalid input format: request body is not valid JSON ({e})",
                    code=ErrorCode.VALIDATION_INVALID_FORMAT,
                )

        if not isinstance(body, dict):
            raise ValidationError(
                "Invalid input format: request body must be a JSON object",
                code=ErrorCode.VALIDATION_INVALID_FORMAT,
            )

        try:
            criteria = SearchCriteria.model_validate(body)
        except PydanticValidationError as e:
            summary, details = _format_validation_errors(e)
            raise ValidationError(
                f"Invalid request data: {summary}",
                field=details[0]["field"] if details else None,
                context={"errors": details},
            )

        updates: Dict[str, Any] = {}
        requested_timeout = criteria.timeout_ms or self.settings.default_timeout_ms
        updates["timeout_ms"] = min(requested_timeout, self.settings.max_timeout_ms)
        if not criteria.sources:
            updates["sources"] = [JobSource(s) for s in self.settings.default_sources]
        if "max_results" not in criteria.model_fields_set:
            updates["max_results"] = self.settings.default_max_results
        return criteria.model_copy(update=updates)

    # ==================== Execution ====================

    async def search(self, body: Any) -> SearchOutcome:
        """
        Execute a search.

        Raises:
            ValidationError: 400, before any network work
            AllSourcesFailedError: 503
            SearchTimeoutError: 504
        """
        started = time.perf_counter()
        criteria = self.validate(body)

        if self.cache is not None:
            cached = await self.cache.get(criteria)
            if cached:
                record_cache_hit()
                cached["data"]["metadata"]["cached"] = True
                cached["data"]["metadata"]["totalDurationMs"] = int((time.perf_counter() - started) * 1000)
                record_search_outcome(200)
                return SearchOutcome(status_code=200, body=cached)
            record_cache_miss()

        logger.info(
            f"Searching '{criteria.query}' on {[s.value for s in criteria.sources]} "
            f"(timeout {criteria.timeout_ms}ms, max {criteria.max_results})"
        )

        results, timed_out = await self.run_scrapers(criteria)
        try:
            outcome = self.build_outcome(criteria, results, timed_out, started)
        except JobSearchError as e:
            record_search_outcome(e.status_code)
            raise

        record_search_outcome(outcome.status_code)
        if outcome.status_code == 200 and self.cache is not None:
            await self.cache.set(criteria, outcome.body)
        return outcome

    def scraper_config(self, criteria: SearchCriteria) -> ScraperConfig:
        return ScraperConfig(
            search_query=criteria.query,
            location=criteria.location or (criteria.preferred_locations[0] if criteria.preferred_locations else ""),
            max_results=criteria.max_results,
            job_type=criteria.job_types[0] if len(criteria.job_types) == 1 else None,
            posted_within_days=criteria.posted_within_days,
        )

    async def run_scrapers(self, criteria: SearchCriteria) -> Tuple[List[ScraperResult], List[JobSource]]:
        """
        Fan out to every requested source under one deadline.

        Returns:
            Tuple of (results in requested-source order, timed-out sources)
        """
        config = self.scraper_config(criteria)
        deadline = criteria.timeout_ms / 1000

        scrapers: Dict[JobSource, BaseScraper] = {}
        tasks: Dict[JobSource, asyncio.Task] = {}
        for source in criteria.sources:
            scraper = self.scraper_factory(source, settings=self.settings)
            scrapers[source] = scraper
            tasks[source] = asyncio.create_task(
                self._run_scraper(scraper, config), name=f"scrape-{source.value}"
            )

        done, pending = await asyncio.wait(tasks.values(), timeout=deadline)

        if pending:
            for task in pending:
                task.cancel()
            # Let cancelled scrapers unwind their sessions
            await asyncio.wait(pending, timeout=self.settings.cancellation_grace_seconds)

        results: List[ScraperResult] = []
        timed_out: List[JobSource] = []
        for source in criteria.sources:
            task = tasks[source]
            if task in done and not task.cancelled() and task.exception() is None:
                results.append(task.result())
                continue

            if task in done and not task.cancelled():
                error = task.exception()
                logger.error(f"{source.value} scraper crashed: {error!r}")
                results.append(self._failed_result(
                    source, f"Scraper crashed: {error}", ErrorCode.SCRAPER_FAILED
                ))
                continue

            timed_out.append(source)
            record_scraper_result(source.value, "timeout", deadline)
            record_scraper_error(source.value, ErrorCode.SCRAPER_TIMEOUT.value)
            await scrapers[source].close()
            results.append(self._failed_result(
                source,
                f"{source.value} did not finish within {criteria.timeout_ms}ms",
                ErrorCode.SCRAPER_TIMEOUT,
            ))

        return results, timed_out

    async def _run_scraper(self, scraper: BaseScraper, config: ScraperConfig) -> ScraperResult:
        started = time.perf_counter()
        result = await scraper.scrape(config)
        outcome = "error" if result.errors and not result.jobs else "success"
        record_scraper_result(scraper.source.value, outcome, time.perf_counter() - started)
        for error in result.errors:
            record_scraper_error(scraper.source.value, error.code.value if error.code else "UNKNOWN")
        return result

    def _failed_result(self, source: JobSource, message: str, code: ErrorCode) -> ScraperResult:
        now = datetime.now(timezone.utc)
        return ScraperResult(
            source=source,
            failed_count=1,
            errors=[ScraperErrorRecord(source=source.value, message=message, code=code, timestamp=now)],
            scraped_at=now,
        )

    # ==================== Aggregation ====================

    def apply_filters(self, jobs: Sequence[RawJob], criteria: SearchCriteria) -> List[RawJob]:
        """Drop jobs excluded by keyword, job type or posting age."""
        exclude = [
            re.compile(rf"(?<![\w+#]){re.escape(kw.strip().lower())}(?![\w+#])")
            for kw in criteria.exclude_keywords
            if kw.strip()
        ]
        cutoff = None
        if criteria.posted_within_days:
            cutoff = datetime.now(timezone.utc) - timedelta(days=criteria.posted_within_days)

        kept = []
        for job in jobs:
            text = f"{job.title} {job.description}".lower()
            if any(pattern.search(text) for pattern in exclude):
                continue
            # Unknown job type is kept
            if criteria.job_types and job.job_type and job.job_type not in criteria.job_types:
                continue
            if cutoff and ensure_aware(job.posted_date) < cutoff:
                continue
            kept.append(job)
        return kept

    def build_outcome(
        self,
        criteria: SearchCriteria,
        results: List[ScraperResult],
        timed_out: List[JobSource],
        started: float,
    ) -> SearchOutcome:
        timed_out_set = set(timed_out)
        failed = [r.source for r in results if r.source not in timed_out_set and r.errors and not r.jobs]
        degraded = [r for r in results if r.errors and r.jobs]
        successful = [r.source for r in results if r.source not in timed_out_set and r.source not in failed]
        errors = [error for r in results for error in r.errors]

        all_jobs = [job for r in results for job in r.jobs]

        if not all_jobs and (failed or timed_out):
            self._raise_no_results(criteria, results, failed, timed_out, errors)

        unique, duplicates = deduplicate_jobs(all_jobs)
        filtered = self.apply_filters(unique, criteria)

        scoring_started = time.perf_counter()
        try:
            scored = self.engine.score_jobs(filtered, criteria)
        except Exception as e:
            logger.exception("Scoring failed")
            raise JobSearchError(ErrorCode.SCORING_FAILED, f"Failed to score jobs: {e}") from e
        record_scoring(len(filtered), time.perf_counter() - scoring_started)

        jobs = scored[: criteria.max_results]
        warnings = self._warnings(failed, timed_out, degraded)
        status_code = 206 if warnings else 200

        scores = [job.score for job in jobs]
        metadata = SearchMetadata(
            total_duration_ms=int((time.perf_counter() - started) * 1000),
            average_score=round(sum(scores) / len(scores), 2) if scores else 0.0,
            highest_score=round(max(scores), 2) if scores else 0.0,
            lowest_score=round(min(scores), 2) if scores else 0.0,
            total_jobs_found=len(all_jobs),
            unique_jobs=len(unique),
            duplicates_removed=duplicates,
            filtered_out=len(unique) - len(filtered),
            sources_requested=list(criteria.sources),
            successful_sources=successful,
            failed_sources=failed,
            timed_out_sources=timed_out,
            partial_results=status_code == 206,
            score_distribution=self._distribution(scores),
            warnings=warnings or None,
        )
        response = SearchResponse(
            timestamp=datetime.now(timezone.utc),
            data=SearchData(
                jobs=jobs,
                metadata=metadata,
                warnings=warnings or None,
                errors=errors or None,
            ),
        )

        logger.info(
            f"Search '{criteria.query}' -> {status_code}: {len(jobs)} jobs "
            f"({duplicates} duplicates, {len(failed)} failed, {len(timed_out)} timed out)"
        )
        return SearchOutcome(
            status_code=status_code,
            body=response.model_dump(mode="json", by_alias=True),
        )

    def _raise_no_results(
        self,
        criteria: SearchCriteria,
        results: List[ScraperResult],
        failed: List[JobSource],
        timed_out: List[JobSource],
        errors: List[ScraperErrorRecord],
    ) -> None:
        context = {
            "sources": [s.value for s in criteria.sources],
            "failedSources": [s.value for s in failed],
            "timedOutSources": [s.value for s in timed_out],
            "errors": [e.model_dump(mode="json", by_alias=True, exclude_none=True) for e in errors],
        }
        if timed_out:
            raise SearchTimeoutError(
                f"Search timed out after {criteria.timeout_ms}ms before any source returned jobs",
                context,
            )
        blocked = errors and all(e.code == ErrorCode.SCRAPER_RATE_LIMITED for e in errors)
        raise AllSourcesFailedError(
            ErrorCode.SCRAPER_RATE_LIMITED if blocked else ErrorCode.ALL_SOURCES_FAILED,
            "Failed to retrieve jobs from all sources",
            context,
        )

    def _warnings(
        self,
        failed: List[JobSource],
        timed_out: List[JobSource],
        degraded: List[ScraperResult],
    ) -> List[str]:
        warnings = []
        if failed:
            names = ", ".join(s.value for s in failed)
            warnings.append(f"Some sources failed: {names}. Results may be incomplete.")
        if timed_out:
            names = ", ".join(s.value for s in timed_out)
            warnings.append(f"Some sources timed out: {names}. Results may be incomplete.")
        for result in degraded:
            warnings.append(
                f"{result.source.value} returned partial results "
                f"({result.failed_count} listings could not be used)."
            )
        return warnings

    def _distribution(self, scores: List[float]) -> ScoreDistribution:
        return ScoreDistribution(
            high=sum(1 for s in scores if s >= HIGH_SCORE_THRESHOLD),
            medium=sum(1 for s in scores if MEDIUM_SCORE_THRESHOLD <= s < HIGH_SCORE_THRESHOLD),
            low=sum(1 for s in scores if s < MEDIUM_SCORE_THRESHOLD),
        )
