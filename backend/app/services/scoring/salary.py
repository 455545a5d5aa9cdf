"""
Salary scoring.

Both ranges are normalized to a yearly basis (hourly x2080, daily x260,
weekly x52, monthly x12) before comparison. Criteria with only a minimum
are open-ended upwards; criteria with only a maximum start at zero.

Bands:
    - Job range inside criteria range    100
    - Job range entirely above           90
    - Partial overlap                    65-95 (by overlap fraction)
    - Job range entirely below           10-60 (by shortfall)
    - Missing job salary                 50, confidence 0.3
    - Missing criteria salary            50, confidence 0.5

Confidence starts at 0.95 and drops as either range widens, since wide
ranges say little about the actual offer.
"""

import math
from datetime import datetime
from typing import Optional, Tuple

from app.schemas import RawJob, SearchCriteria
from app.services.normalize import to_yearly
from app.services.scoring.base import ScoringStrategy, StrategyResult

ABOVE_SCORE = 90
OVERLAP_BASE = 65
OVERLAP_SCALE = 30
OVERLAP_CAP = 95
BELOW_BASE = 60
BELOW_FLOOR = 10
BELOW_SHORTFALL_SCALE = 150
NEUTRAL_SCORE = 50

BASE_CONFIDENCE = 0.95
MIN_CONFIDENCE = 0.4
WIDTH_TOLERANCE = 0.25  # relative spread considered precise
WIDTH_PENALTY = 0.4
OPEN_ENDED_SPREAD = 0.5
CURRENCY_MISMATCH_PENALTY = 0.2


def _spread(low: float, high: float) -> float:
    """Relative width of a range: (high - low) / high."""
    if math.isinf(high):
        return OPEN_ENDED_SPREAD
    if high <= 0:
        return 0.0
    return (high - low) / high


def _width_penalty(low: float, high: float) -> float:
    return WIDTH_PENALTY * max(0.0, _spread(low, high) - WIDTH_TOLERANCE)


def _format(amount: float) -> str:
    return "open" if math.isinf(amount) else f"{amount:,.0f}"


class SalaryStrategy(ScoringStrategy):
    name = "salary"

    def score(
        self,
        job: RawJob,
        criteria: SearchCriteria,
        now: Optional[datetime] = None,
    ) -> StrategyResult:
        wanted = criteria.salary
        if wanted is None or (wanted.min is None and wanted.max is None):
            return StrategyResult(
                score=NEUTRAL_SCORE,
                confidence=0.5,
                reasons=["No salary preference specified"],
            )

        if job.salary is None or (job.salary.min <= 0 and job.salary.max <= 0):
            return StrategyResult(
                score=NEUTRAL_SCORE,
                confidence=0.3,
                reasons=["No salary information provided"],
            )

        job_low = to_yearly(job.salary.min, job.salary.period)
        job_high = to_yearly(job.salary.max, job.salary.period)
        if job_low > job_high:
            job_low, job_high = job_high, job_low
        if job_low <= 0:
            job_low = job_high

        want_low = wanted.min if wanted.min is not None else 0.0
        want_high = wanted.max if wanted.max is not None else math.inf

        score, reason = self._compare(job_low, job_high, want_low, want_high)

        confidence = (
            BASE_CONFIDENCE
            - _width_penalty(job_low, job_high)
            - _width_penalty(want_low, want_high)
        )
        reasons = [reason]
        if wanted.currency and wanted.currency.upper() != job.salary.currency.upper():
            confidence -= CURRENCY_MISMATCH_PENALTY
            reasons.append(f"Salary currency differs ({job.salary.currency} vs {wanted.currency.upper()})")

        return StrategyResult(
            score=score,
            confidence=max(MIN_CONFIDENCE, confidence),
            reasons=reasons,
            details={
                "jobYearlyMin": round(job_low, 2),
                "jobYearlyMax": round(job_high, 2),
                "originalPeriod": job.salary.period.value,
                "criteriaMin": want_low,
                "criteriaMax": None if math.isinf(want_high) else want_high,
            },
        )

    def _compare(
        self,
        job_low: float,
        job_high: float,
        want_low: float,
        want_high: float,
    ) -> Tuple[float, str]:
        job_text = f"{_format(job_low)}-{_format(job_high)}"

        if want_low <= job_low and job_high <= want_high:
            return 100.0, f"Perfect salary alignment ({job_text})"

        if job_low > want_high:
            return float(ABOVE_SCORE), f"Above expected salary ({job_text})"

        if job_high < want_low:
            shortfall = (want_low - job_high) / want_low
            score = max(BELOW_FLOOR, BELOW_BASE - BELOW_SHORTFALL_SCALE * shortfall)
            return score, f"Below expected salary ({job_text})"

        overlap = min(job_high, want_high) - max(job_low, want_low)
        width = job_high - job_low
        fraction = overlap / width if width > 0 else 1.0
        score = min(OVERLAP_CAP, OVERLAP_BASE + OVERLAP_SCALE * fraction)
        return score, f"Partial salary overlap ({job_text})"
