from app.schemas.job import (
    JobSource,
    SalaryPeriod,
    JobType,
    Salary,
    RawJob,
    FactorScore,
    ScoreBreakdown,
    EnhancedFactorScore,
    EnhancedScoreBreakdown,
    ScoredJob,
)
from app.schemas.search import (
    SalaryRange,
    ScoringWeights,
    DEFAULT_SCORING_WEIGHTS,
    SearchCriteria,
    ScraperConfig,
    ScraperErrorRecord,
    ScraperResult,
    SearchMetadata,
    SearchData,
    SearchResponse,
)

__all__ = [
    "JobSource",
    "SalaryPeriod",
    "JobType",
    "Salary",
    "RawJob",
    "FactorScore",
    "ScoreBreakdown",
    "EnhancedFactorScore",
    "EnhancedScoreBreakdown",
    "ScoredJob",
    "SalaryRange",
    "ScoringWeights",
    "DEFAULT_SCORING_WEIGHTS",
    "SearchCriteria",
    "ScraperConfig",
    "ScraperErrorRecord",
    "ScraperResult",
    "SearchMetadata",
    "SearchData",
    "SearchResponse",
]
