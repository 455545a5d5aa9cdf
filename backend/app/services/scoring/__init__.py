from app.services.scoring.base import ScoringStrategy, StrategyResult
from app.services.scoring.engine import ScoringEngine
from app.services.scoring.location import LocationStrategy
from app.services.scoring.salary import SalaryStrategy
from app.services.scoring.source import SourceQualityStrategy
from app.services.scoring.title import TitleRelevanceStrategy

__all__ = [
    "ScoringStrategy",
    "StrategyResult",
    "ScoringEngine",
    "LocationStrategy",
    "SalaryStrategy",
    "SourceQualityStrategy",
    "TitleRelevanceStrategy",
]
