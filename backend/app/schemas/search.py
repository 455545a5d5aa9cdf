from pydantic import Field, field_validator, model_validator
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.errors import ErrorCode
from app.schemas.job import CamelModel, JobSource, JobType, RawJob, ScoredJob

DEFAULT_MAX_RESULTS = 25
MAX_RESULTS_LIMIT = 100

VALID_SOURCES = [source.value for source in JobSource]


class SalaryRange(CamelModel):
    """Salary expectation. Yearly unless stated otherwise."""

    min: Optional[float] = Field(default=None, ge=0)
    max: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = None

    @model_validator(mode="after")
    def check_range(self) -> "SalaryRange":
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("salary range: min cannot be greater than max")
        return self


class ScoringWeights(CamelModel):
    location: float = Field(default=0.30, ge=0, le=1)
    title_relevance: float = Field(default=0.30, ge=0, le=1)
    salary: float = Field(default=0.20, ge=0, le=1)
    source_quality: float = Field(default=0.20, ge=0, le=1)


DEFAULT_SCORING_WEIGHTS = ScoringWeights()


class SearchCriteria(CamelModel):
    """Validated search request. Immutable after validation."""

    query: str
    location: Optional[str] = None
    preferred_locations: List[str] = Field(default_factory=list)
    sources: Optional[List[JobSource]] = None
    salary: Optional[SalaryRange] = None
    job_types: List[JobType] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    exclude_keywords: List[str] = Field(default_factory=list)
    scoring_weights: Optional[ScoringWeights] = None
    max_results: int = Field(default=DEFAULT_MAX_RESULTS, ge=1, le=MAX_RESULTS_LIMIT)
    timeout_ms: Optional[int] = Field(default=None, gt=0)
    posted_within_days: Optional[int] = Field(default=None, ge=1, le=365)

    class Config:
        frozen = True

    @field_validator("query", mode="before")
    @classmethod
    def strip_query(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("query is required and must be a non-empty string")
        return value

    @field_validator("sources", mode="before")
    @classmethod
    def check_sources(cls, value: Any) -> Any:
        if isinstance(value, list):
            invalid = [str(s) for s in value if s not in VALID_SOURCES]
            if invalid:
                raise ValueError(
                    f"Invalid sources: {', '.join(invalid)}. "
                    f"Valid sources are: {', '.join(VALID_SOURCES)}"
                )
            # Preserve request order, drop repeats
            value = list(dict.fromkeys(value))
        return value

    def criteria_locations(self) -> List[str]:
        """Preferred locations first, then the primary location."""
        locations = [loc for loc in self.preferred_locations if loc and loc.strip()]
        if self.location and self.location.strip() and self.location not in locations:
            locations.append(self.location)
        return locations


class ScraperConfig(CamelModel):
    search_query: str
    location: str = ""
    max_results: int = DEFAULT_MAX_RESULTS
    job_type: Optional[JobType] = None
    posted_within_days: Optional[int] = None


class ScraperErrorRecord(CamelModel):
    source: str
    message: str
    code: Optional[ErrorCode] = None
    timestamp: datetime
    context: Optional[Dict[str, Any]] = None


class ScraperResult(CamelModel):
    source: JobSource
    jobs: List[RawJob] = Field(default_factory=list)
    scraped_count: int = 0
    success_count: int = 0
    failed_count: int = 0
    errors: List[ScraperErrorRecord] = Field(default_factory=list)
    scraped_at: datetime
    duration_ms: int = 0


class ScoreDistribution(CamelModel):
    high: int = 0  # >= 80
    medium: int = 0  # 50-79
    low: int = 0  # < 50


class SearchMetadata(CamelModel):
    total_duration_ms: int
    average_score: float
    highest_score: float
    lowest_score: float
    total_jobs_found: int = 0
    unique_jobs: int = 0
    duplicates_removed: int = 0
    filtered_out: int = 0
    sources_requested: List[JobSource] = Field(default_factory=list)
    successful_sources: List[JobSource] = Field(default_factory=list)
    failed_sources: List[JobSource] = Field(default_factory=list)
    timed_out_sources: List[JobSource] = Field(default_factory=list)
    partial_results: bool = False
    cached: bool = False
    score_distribution: ScoreDistribution = Field(default_factory=ScoreDistribution)
    warnings: Optional[List[str]] = None


class SearchData(CamelModel):
    jobs: List[ScoredJob]
    metadata: SearchMetadata
    warnings: Optional[List[str]] = None
    errors: Optional[List[ScraperErrorRecord]] = None


class SearchResponse(CamelModel):
    success: bool = True
    timestamp: datetime
    data: SearchData
