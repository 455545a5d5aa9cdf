import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup, Tag

from app.schemas import JobSource, JobType, RawJob, ScraperConfig
from app.services.normalize import (
    detect_job_type,
    generate_job_id,
    normalize_company_name,
    normalize_job_title,
    normalize_location,
    parse_posted_date,
    parse_salary,
)
from app.services.scrapers.base import BaseScraper

logger = logging.getLogger(__name__)

INDEED_BASE_URL = "https://www.indeed.com"
INDEED_SEARCH_URL = f"{INDEED_BASE_URL}/jobs"
SEARCH_RADIUS_MILES = 25

JOB_TYPE_CODES = {
    JobType.FULL_TIME: "fulltime",
    JobType.PART_TIME: "parttime",
    JobType.CONTRACT: "contract",
    JobType.TEMPORARY: "temporary",
    JobType.INTERNSHIP: "internship",
}

CARD_SELECTORS = [".job_seen_beacon", '[data-testid="job-card"]', ".result", ".jobCard"]
TITLE_SELECTORS = ["h2.jobTitle a span", ".jobTitle span[title]", 'a[data-testid="job-title"]']
COMPANY_SELECTORS = ['[data-testid="company-name"]', ".companyName"]
LOCATION_SELECTORS = ['[data-testid="text-location"]', ".companyLocation"]
SALARY_SELECTORS = [".salary-snippet-container", ".salary-snippet", '[data-testid="attribute_snippet_testid"]']
LINK_SELECTORS = ["h2.jobTitle a", "a.jcs-JobTitle", 'a[data-testid="job-title"]']
SNIPPET_SELECTORS = [".job-snippet", '[data-testid="job-snippet"]']
DATE_SELECTORS = [".date", '[data-testid="myJobsStateDate"]']

JOB_KEY_PATTERN = re.compile(r"jk=([a-zA-Z0-9]+)")


def _first_text(card: Tag, selectors: List[str]) -> str:
    for selector in selectors:
        node = card.select_one(selector)
        if node is not None:
            text = node.get("title") or node.get_text(" ", strip=True)
            if text:
                return text
    return ""


class IndeedScraper(BaseScraper):
    """Indeed search results page"""

    source = JobSource.INDEED
    block_indicators = (
        "hcaptcha",
        "recaptcha",
        "captcha",
        "cf-challenge",
        "access denied",
        "security check",
        "prove you're human",
        "unusual traffic",
    )

    def build_params(self, config: ScraperConfig) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "q": config.search_query,
            "l": config.location,
            "radius": SEARCH_RADIUS_MILES,
            "sort": "date",
        }
        if config.posted_within_days:
            params["fromage"] = config.posted_within_days
        if config.job_type in JOB_TYPE_CODES:
            params["jt"] = JOB_TYPE_CODES[config.job_type]
        return params

    async def fetch_listings(self, client: httpx.AsyncClient, config: ScraperConfig) -> List[Tag]:
        response = await client.get(INDEED_SEARCH_URL, params=self.build_params(config))
        response.raise_for_status()
        self.check_blocked(response.text)
        return self.extract_cards(response.text)

    def extract_cards(self, html: str) -> List[Tag]:
        soup = BeautifulSoup(html, "lxml")
        for selector in CARD_SELECTORS:
            cards = soup.select(selector)
            if cards:
                return cards
        return []

    def parse_listing(self, card: Tag, scraped_at: datetime) -> Optional[RawJob]:
        title = normalize_job_title(_first_text(card, TITLE_SELECTORS))
        company = normalize_company_name(_first_text(card, COMPANY_SELECTORS))
        href = None
        for selector in LINK_SELECTORS:
            link = card.select_one(selector)
            if link is not None and link.get("href"):
                href = link["href"]
                break
        if not title or not company or not href:
            return None

        url = urljoin(INDEED_BASE_URL, href)
        job_key_match = JOB_KEY_PATTERN.search(href)
        job_key = job_key_match.group(1) if job_key_match else card.get("data-jk")
        if job_key:
            url = f"{INDEED_BASE_URL}/viewjob?jk={job_key}"

        salary_text = _first_text(card, SALARY_SELECTORS)
        # Indeed renders "30+ days ago" for anything older
        posted_text = _first_text(card, DATE_SELECTORS).replace("Posted", "").replace("Active", "")

        return RawJob(
            id=generate_job_id(self.source.value, url),
            title=title,
            company=company,
            location=normalize_location(_first_text(card, LOCATION_SELECTORS)) or "Not specified",
            salary=parse_salary(salary_text) if any(ch.isdigit() for ch in salary_text) else None,
            description=_first_text(card, SNIPPET_SELECTORS),
            url=url,
            source=self.source,
            job_type=detect_job_type(salary_text),
            posted_date=parse_posted_date(posted_text, scraped_at),
            scraped_at=scraped_at,
            metadata={"jobKey": job_key},
        )
