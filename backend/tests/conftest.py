"""
Shared fixtures for the job search test suite.

Run with: cd backend && pytest tests/ -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.schemas import JobSource, JobType, RawJob, Salary, SalaryPeriod, SearchCriteria

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

LONG_DESCRIPTION = (
    "We are looking for a Senior Software Engineer to join our platform team. "
    "You will design and build distributed services in Python and TypeScript, "
    "mentor other engineers, and own features end to end from design through "
    "production rollout and monitoring."
)


def _make_job(**overrides) -> RawJob:
    fields = {
        "id": "linkedin-abc123",
        "title": "Senior Software Engineer",
        "company": "Tech Corp",
        "location": "San Francisco, CA",
        "salary": Salary(min=150000, max=200000, currency="USD", period=SalaryPeriod.YEARLY),
        "description": LONG_DESCRIPTION,
        "url": "https://example.com/jobs/1",
        "source": JobSource.LINKEDIN,
        "job_type": JobType.FULL_TIME,
        "posted_date": NOW - timedelta(days=2),
        "scraped_at": NOW,
    }
    fields.update(overrides)
    return RawJob(**fields)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_job():
    """Factory for RawJob with sensible defaults; override any field."""
    return _make_job


@pytest.fixture
def raw_job():
    return _make_job()


@pytest.fixture
def criteria():
    return SearchCriteria(
        query="Senior Software Engineer",
        location="San Francisco, CA",
        salary={"min": 150000, "max": 200000},
    )
