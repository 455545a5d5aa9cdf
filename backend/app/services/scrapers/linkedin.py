import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from bs4 import BeautifulSoup, Tag

from app.schemas import JobSource, JobType, RawJob, ScraperConfig
from app.services.normalize import (
    generate_job_id,
    normalize_company_name,
    normalize_job_title,
    normalize_location,
    parse_posted_date,
    parse_salary,
)
from app.services.scrapers.base import BaseScraper

logger = logging.getLogger(__name__)

# Public guest endpoint; returns <li> job cards, 25 per page
LINKEDIN_SEARCH_URL = "https://www.linkedin.com/jobs-guest/jobs/api/seeMoreJobPostings/search"
PAGE_SIZE = 25
MAX_PAGES = 4

JOB_TYPE_CODES = {
    JobType.FULL_TIME: "F",
    JobType.PART_TIME: "P",
    JobType.CONTRACT: "C",
    JobType.TEMPORARY: "T",
    JobType.INTERNSHIP: "I",
}

CARD_SELECTORS = [".job-search-card", ".base-card", "li"]


def posted_time_filter(days: Optional[int]) -> Optional[str]:
    """LinkedIn f_TPR value: r<seconds>"""
    if not days:
        return None
    if days <= 1:
        return "r86400"
    if days <= 7:
        return "r604800"
    return "r2592000"


def _text(card: Tag, selector: str) -> str:
    node = card.select_one(selector)
    return node.get_text(" ", strip=True) if node else ""


class LinkedInScraper(BaseScraper):
    """LinkedIn public job search (no login)"""

    source = JobSource.LINKEDIN
    block_indicators = (
        "authwall",
        "captcha",
        "checkpoint/challenge",
        "access denied",
        "sign in to continue",
    )

    def build_params(self, config: ScraperConfig, start: int = 0) -> Dict[str, Any]:
        params: Dict[str, Any] = {"keywords": config.search_query, "start": start}
        if config.location:
            params["location"] = config.location
        time_filter = posted_time_filter(config.posted_within_days)
        if time_filter:
            params["f_TPR"] = time_filter
        if config.job_type in JOB_TYPE_CODES:
            params["f_JT"] = JOB_TYPE_CODES[config.job_type]
        return params

    async def fetch_listings(self, client: httpx.AsyncClient, config: ScraperConfig) -> List[Tag]:
        cards: List[Tag] = []
        for page in range(MAX_PAGES):
            response = await client.get(
                LINKEDIN_SEARCH_URL, params=self.build_params(config, page * PAGE_SIZE)
            )
            response.raise_for_status()
            self.check_blocked(response.text)

            page_cards = self.extract_cards(response.text)
            cards.extend(page_cards)
            if len(page_cards) < PAGE_SIZE or len(cards) >= config.max_results:
                break
        return cards

    def extract_cards(self, html: str) -> List[Tag]:
        soup = BeautifulSoup(html, "lxml")
        for selector in CARD_SELECTORS:
            cards = soup.select(selector)
            if cards:
                return cards
        return []

    def parse_listing(self, card: Tag, scraped_at: datetime) -> Optional[RawJob]:
        title = normalize_job_title(_text(card, ".base-search-card__title"))
        company = normalize_company_name(_text(card, ".base-search-card__subtitle"))
        link = card.select_one("a.base-card__full-link") or card.select_one('a[href*="/jobs/view/"]')
        if not title or not company or link is None or not link.get("href"):
            return None

        url = link["href"].split("?")[0]
        date_node = card.select_one("time")
        posted_text = None
        if date_node is not None:
            posted_text = date_node.get("datetime") or date_node.get_text(strip=True)

        return RawJob(
            id=generate_job_id(self.source.value, url),
            title=title,
            company=company,
            location=normalize_location(_text(card, ".job-search-card__location")) or "Not specified",
            salary=parse_salary(_text(card, ".job-search-card__salary-info")),
            description=_text(card, ".job-search-card__snippet"),
            url=url,
            source=self.source,
            posted_date=parse_posted_date(posted_text, scraped_at),
            scraped_at=scraped_at,
            metadata={
                "entityUrn": card.get("data-entity-urn")
                or (card.select_one("[data-entity-urn]") or {}).get("data-entity-urn"),
                "benefits": _text(card, ".job-posting-benefits__text") or None,
            },
        )
