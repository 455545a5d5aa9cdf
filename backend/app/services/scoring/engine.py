"""
Scoring Engine - weighted multi-factor ranking of scraped jobs.

Score Composition (default weights):
    - Location (30%): exact / remote / same city / same state
    - Title Relevance (30%): keyword coverage, role synonyms, seniority
    - Salary (20%): yearly-normalized range comparison
    - Source Quality (20%): source reputation, completeness, freshness

For each factor: weighted = score x weight. The total is the sum of the
weighted scores clipped to [0, 100]; weights are not renormalized, so a
weight of 0 removes a factor entirely.

Complexity Analysis:
    - score_job: O(1) in the number of jobs (bounded by title/location length)
    - score_jobs: O(n log n) for the final sort, O(n) scoring
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from app.schemas import (
    DEFAULT_SCORING_WEIGHTS,
    EnhancedFactorScore,
    EnhancedScoreBreakdown,
    FactorScore,
    RawJob,
    ScoreBreakdown,
    ScoredJob,
    ScoringWeights,
    SearchCriteria,
)
from app.services.scoring.base import ScoringStrategy, StrategyResult, utc_now
from app.services.scoring.location import LocationStrategy
from app.services.scoring.salary import SalaryStrategy
from app.services.scoring.source import SourceQualityStrategy
from app.services.scoring.title import TitleRelevanceStrategy

MAX_TOP_REASONS = 5

# Field name on ScoringWeights -> strategy; order is the reason tie-break order
FACTORS = ("location", "title_relevance", "salary", "source_quality")


def _clip(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class ScoringEngine:
    """
    Combines the four scoring strategies into a ranked list.

    Pure: identical jobs, criteria and reference time always produce
    identical scores and ordering.
    """

    def __init__(self, default_weights: Optional[ScoringWeights] = None):
        self.default_weights = default_weights or DEFAULT_SCORING_WEIGHTS
        self.strategies: Dict[str, ScoringStrategy] = {
            "location": LocationStrategy(),
            "title_relevance": TitleRelevanceStrategy(),
            "salary": SalaryStrategy(),
            "source_quality": SourceQualityStrategy(),
        }

    def score_job(
        self,
        job: RawJob,
        criteria: SearchCriteria,
        now: Optional[datetime] = None,
    ) -> ScoredJob:
        now = now or utc_now()
        weights = criteria.scoring_weights or self.default_weights

        factors: Dict[str, EnhancedFactorScore] = {}
        results: Dict[str, StrategyResult] = {}
        for name in FACTORS:
            weight = getattr(weights, name)
            result = self.strategies[name].score(job, criteria, now)
            results[name] = result
            # weight 0 forces weighted 0 whatever the raw score
            weighted = result.score * weight if weight > 0 else 0.0
            factors[name] = EnhancedFactorScore(
                score=result.score,
                weight=weight,
                weighted=weighted,
                confidence=result.confidence,
                reasons=result.reasons,
                details=result.details,
            )

        total = _clip(sum(f.weighted for f in factors.values()))

        enhanced = EnhancedScoreBreakdown(
            **factors,
            total=total,
            overall_confidence=self._overall_confidence(factors),
            top_reasons=self._top_reasons(factors),
        )
        breakdown = ScoreBreakdown(
            total=total,
            **{
                name: FactorScore(score=f.score, weight=f.weight, weighted=f.weighted)
                for name, f in factors.items()
            },
        )

        metadata = dict(job.metadata)
        metadata["enhancedScoreBreakdown"] = enhanced.model_dump(by_alias=True)

        return ScoredJob(
            **job.model_dump(exclude={"metadata"}),
            metadata=metadata,
            score=total,
            score_breakdown=breakdown,
        )

    def score_jobs(
        self,
        jobs: Sequence[RawJob],
        criteria: SearchCriteria,
        now: Optional[datetime] = None,
    ) -> List[ScoredJob]:
        """
        Score and rank jobs. Ties on total keep input order, then id.

        Returns:
            New list of ScoredJob with rank 1..N
        """
        if not jobs:
            return []

        now = now or utc_now()
        scored = [
            (self.score_job(job, criteria, now), index)
            for index, job in enumerate(jobs)
        ]
        scored.sort(key=lambda item: (-item[0].score, item[1], item[0].id))

        return [
            job.model_copy(update={"rank": rank})
            for rank, (job, _) in enumerate(scored, start=1)
        ]

    def _overall_confidence(self, factors: Dict[str, EnhancedFactorScore]) -> float:
        total_weight = sum(f.weight for f in factors.values())
        if total_weight <= 0:
            return round(sum(f.confidence for f in factors.values()) / len(factors), 3)
        weighted = sum(f.confidence * f.weight for f in factors.values())
        return round(weighted / total_weight, 3)

    def _top_reasons(self, factors: Dict[str, EnhancedFactorScore]) -> List[str]:
        """Pick up to five distinct reasons by confidence x weight."""
        candidates = []
        for factor_index, name in enumerate(FACTORS):
            factor = factors[name]
            importance = factor.confidence * factor.weight
            for reason_index, reason in enumerate(factor.reasons):
                candidates.append((-importance, factor_index, reason_index, reason))
        candidates.sort()

        top: List[str] = []
        for _, _, _, reason in candidates:
            if reason not in top:
                top.append(reason)
            if len(top) == MAX_TOP_REASONS:
                break
        return top
