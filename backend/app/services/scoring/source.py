"""
Source quality scoring: how trustworthy and complete a posting looks.

score = base(source) + salary bonus + description bonus + freshness
        + company bonus, clipped to [45, 100].
"""

from datetime import datetime
from typing import List, Optional

from app.schemas import JobSource, RawJob, SearchCriteria
from app.services.normalize import ensure_aware
from app.services.scoring.base import ScoringStrategy, StrategyResult, utc_now

SOURCE_PROFILES = {
    JobSource.LINKEDIN: (88, "Professional network with verified companies"),
    JobSource.GOOGLE_JOBS: (85, "Aggregated from multiple job boards"),
    JobSource.INDEED: (82, "Large job board with diverse listings"),
}
DEFAULT_BASE_SCORE = 75

SALARY_BONUS = 5
DESCRIPTION_BONUS = 3
COMPANY_BONUS = 2
FRESH_BONUS = 5  # <= 7 days
RECENT_BONUS = 2  # <= 14 days
AGING_PENALTY = 3  # >= 30 days
STALE_PENALTY = 8  # >= 60 days
VERY_STALE_PENALTY = 12  # >= 90 days

DETAILED_DESCRIPTION_LENGTH = 200
MINIMAL_DESCRIPTION_LENGTH = 50

SCORE_FLOOR = 45
SCORE_CEILING = 100

UNKNOWN_COMPANIES = {"", "unknown", "confidential", "n/a", "not specified"}


class SourceQualityStrategy(ScoringStrategy):
    name = "sourceQuality"

    def score(
        self,
        job: RawJob,
        criteria: SearchCriteria,
        now: Optional[datetime] = None,
    ) -> StrategyResult:
        now = now or utc_now()
        base, description = SOURCE_PROFILES.get(job.source, (DEFAULT_BASE_SCORE, "Unrated source"))

        score = float(base)
        reasons: List[str] = [f"Reputable job source ({job.source.value})"]
        signals = 0

        if job.salary is not None:
            score += SALARY_BONUS
            signals += 1
            reasons.append("Includes salary information")

        description_length = len((job.description or "").strip())
        if description_length >= DETAILED_DESCRIPTION_LENGTH:
            score += DESCRIPTION_BONUS
            signals += 1
            reasons.append("Detailed job description")

        if (job.company or "").strip().lower() not in UNKNOWN_COMPANIES:
            score += COMPANY_BONUS
            signals += 1

        age_days = max(0.0, (now - ensure_aware(job.posted_date)).total_seconds() / 86400)
        if age_days <= 7:
            score += FRESH_BONUS
            signals += 1
            reasons.append("Recently posted")
        elif age_days <= 14:
            score += RECENT_BONUS
            signals += 1
            reasons.append("Posted within the last two weeks")
        elif age_days >= 90:
            score -= VERY_STALE_PENALTY
            reasons.append("Job posting is old")
        elif age_days >= 60:
            score -= STALE_PENALTY
            reasons.append("Job posting is old")
        elif age_days >= 30:
            score -= AGING_PENALTY
            reasons.append("Posted over a month ago")

        confidence = 0.55 + 0.1 * signals
        if description_length < MINIMAL_DESCRIPTION_LENGTH:
            confidence -= 0.1

        return StrategyResult(
            score=max(SCORE_FLOOR, min(SCORE_CEILING, score)),
            confidence=max(0.3, min(0.95, confidence)),
            reasons=reasons,
            details={
                "source": job.source.value,
                "sourceDescription": description,
                "ageDays": round(age_days, 1),
                "qualitySignals": signals,
            },
        )
