from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class CamelModel(BaseModel):
    """Base model that speaks camelCase JSON and snake_case Python."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class JobSource(str, Enum):
    LINKEDIN = "linkedin"
    INDEED = "indeed"
    GOOGLE_JOBS = "google_jobs"


class SalaryPeriod(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class JobType(str, Enum):
    FULL_TIME = "full-time"
    PART_TIME = "part-time"
    CONTRACT = "contract"
    TEMPORARY = "temporary"
    INTERNSHIP = "internship"


class Salary(CamelModel):
    min: float
    max: float
    currency: str = "USD"
    period: SalaryPeriod = SalaryPeriod.YEARLY

    class Config:
        frozen = True


class RawJob(CamelModel):
    """A job posting as produced by one scraper. Immutable."""

    id: str
    title: str
    company: str
    location: str
    salary: Optional[Salary] = None
    description: str = ""
    url: str
    source: JobSource
    job_type: Optional[JobType] = None
    posted_date: datetime
    scraped_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True


class FactorScore(CamelModel):
    score: float
    weight: float
    weighted: float


class ScoreBreakdown(CamelModel):
    location: FactorScore
    title_relevance: FactorScore
    salary: FactorScore
    source_quality: FactorScore
    total: float


class EnhancedFactorScore(FactorScore):
    confidence: float
    reasons: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)


class EnhancedScoreBreakdown(CamelModel):
    location: EnhancedFactorScore
    title_relevance: EnhancedFactorScore
    salary: EnhancedFactorScore
    source_quality: EnhancedFactorScore
    total: float
    overall_confidence: float
    top_reasons: List[str] = Field(default_factory=list)


class ScoredJob(RawJob):
    """RawJob annotated with total score, breakdown and rank.

    The per-factor confidences and reasons live under
    metadata["enhancedScoreBreakdown"] so downstream consumers that only
    understand RawJob can pass them through untouched.
    """

    score: float
    score_breakdown: ScoreBreakdown
    rank: int = 0
