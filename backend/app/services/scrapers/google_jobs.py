import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from app.errors import ErrorCode, ScraperError
from app.schemas import JobSource, JobType, RawJob, ScraperConfig
from app.services.normalize import (
    detect_job_type,
    generate_job_id,
    normalize_company_name,
    normalize_job_title,
    normalize_location,
    parse_posted_date,
    parse_salary,
    strip_html,
    truncate_description,
)
from app.services.scrapers.base import BaseScraper

logger = logging.getLogger(__name__)

SERPAPI_URL = "https://serpapi.com/search.json"

# SerpAPI "chips" filter for posting age
DATE_POSTED_CHIPS = [
    (1, "date_posted:today"),
    (3, "date_posted:3days"),
    (7, "date_posted:week"),
    (31, "date_posted:month"),
]

EMPLOYMENT_TYPE_CHIPS = {
    JobType.FULL_TIME: "employment_type:FULLTIME",
    JobType.PART_TIME: "employment_type:PARTTIME",
    JobType.CONTRACT: "employment_type:CONTRACTOR",
    JobType.INTERNSHIP: "employment_type:INTERN",
}


class GoogleJobsScraper(BaseScraper):
    """Google Jobs results via the SerpAPI google_jobs engine"""

    source = JobSource.GOOGLE_JOBS

    def build_params(self, config: ScraperConfig) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "engine": "google_jobs",
            "q": config.search_query,
            "hl": "en",
            "api_key": self.settings.serpapi_key,
        }
        if config.location:
            params["location"] = config.location

        chips = []
        if config.posted_within_days:
            for days, chip in DATE_POSTED_CHIPS:
                if config.posted_within_days <= days:
                    chips.append(chip)
                    break
        if config.job_type in EMPLOYMENT_TYPE_CHIPS:
            chips.append(EMPLOYMENT_TYPE_CHIPS[config.job_type])
        if chips:
            params["chips"] = ",".join(chips)
        return params

    async def fetch_listings(self, client: httpx.AsyncClient, config: ScraperConfig) -> List[Dict[str, Any]]:
        if not self.settings.serpapi_key:
            raise ScraperError(
                self.source.value,
                "SERPAPI_KEY not configured. Set it in the environment to enable Google Jobs.",
                ErrorCode.SCRAPER_INVALID_CONFIG,
            )

        response = await client.get(SERPAPI_URL, params=self.build_params(config))
        response.raise_for_status()
        data = response.json()

        if data.get("error"):
            message = str(data["error"])
            # SerpAPI reports "no results" as an error string
            if "hasn't returned any results" in message:
                return []
            raise ScraperError(self.source.value, f"SerpAPI error: {message}", ErrorCode.SCRAPER_FAILED)

        return list(data.get("jobs_results") or [])

    def parse_listing(self, listing: Dict[str, Any], scraped_at: datetime) -> Optional[RawJob]:
        title = normalize_job_title(listing.get("title"))
        company = normalize_company_name(listing.get("company_name"))
        if not title or not company:
            return None

        url = self._apply_link(listing)
        extensions = listing.get("detected_extensions") or {}

        description = strip_html(listing.get("description"))
        highlights = self._format_highlights(listing.get("job_highlights") or [])
        if highlights:
            description = f"{description}\n\n{highlights}"

        return RawJob(
            id=generate_job_id(self.source.value, url),
            title=title,
            company=company,
            location=normalize_location(listing.get("location")) or "Not specified",
            salary=parse_salary(extensions.get("salary")),
            description=truncate_description(description),
            url=url,
            source=self.source,
            job_type=detect_job_type(extensions.get("schedule_type")),
            posted_date=parse_posted_date(extensions.get("posted_at"), scraped_at),
            scraped_at=scraped_at,
            metadata={
                "via": listing.get("via"),
                "thumbnail": listing.get("thumbnail"),
                "extensions": listing.get("extensions") or [],
                "jobId": listing.get("job_id"),
            },
        )

    def _apply_link(self, listing: Dict[str, Any]) -> str:
        options = listing.get("apply_options") or []
        if options and options[0].get("link"):
            return options[0]["link"]
        if listing.get("share_link"):
            return listing["share_link"]
        job_id = listing.get("job_id", "")
        return f"https://www.google.com/search?ibp=htl;jobs#htidocid={job_id}"

    def _format_highlights(self, highlights: List[Dict[str, Any]]) -> str:
        sections = []
        for highlight in highlights:
            items = highlight.get("items") or []
            if not items:
                continue
            heading = highlight.get("title") or "Highlights"
            sections.append(heading + ":\n" + "\n".join(f"- {item}" for item in items))
        return "\n\n".join(sections)
