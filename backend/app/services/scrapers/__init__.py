from typing import Dict, Optional, Type

import httpx

from app.config import Settings
from app.schemas import JobSource
from app.services.scrapers.base import BaseScraper
from app.services.scrapers.google_jobs import GoogleJobsScraper
from app.services.scrapers.indeed import IndeedScraper
from app.services.scrapers.linkedin import LinkedInScraper

SCRAPERS: Dict[JobSource, Type[BaseScraper]] = {
    JobSource.GOOGLE_JOBS: GoogleJobsScraper,
    JobSource.LINKEDIN: LinkedInScraper,
    JobSource.INDEED: IndeedScraper,
}


def get_scraper(
    source: JobSource,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BaseScraper:
    """Create a fresh scraper; instances are never shared between requests."""
    return SCRAPERS[JobSource(source)](settings=settings, transport=transport)


__all__ = [
    "BaseScraper",
    "GoogleJobsScraper",
    "IndeedScraper",
    "LinkedInScraper",
    "SCRAPERS",
    "get_scraper",
]
