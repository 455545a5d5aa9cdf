from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.schemas import RawJob, SearchCriteria


@dataclass
class StrategyResult:
    """
    Outcome of one scoring factor for one job.

    Attributes:
        score: Raw factor score (0-100)
        confidence: How much the score should be trusted (0-1)
        reasons: Human-readable explanations, most important first
        details: Factor-specific diagnostics passed through to clients
    """
    score: float
    confidence: float
    reasons: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.score = max(0.0, min(100.0, float(self.score)))
        self.confidence = max(0.0, min(1.0, float(self.confidence)))


class ScoringStrategy(ABC):
    """Pure, synchronous scorer for a single factor."""

    name: str = "unknown"

    @abstractmethod
    def score(
        self,
        job: RawJob,
        criteria: SearchCriteria,
        now: Optional[datetime] = None,
    ) -> StrategyResult:
        """Score one job against the criteria. Must not perform I/O."""
        pass


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
