"""Scoring facade and its building blocks."""

from .batch import BatchOrchestrator
from .cache import ScoreCache, ScoringCacheEntry
from .insights import derive_insights
from .rate_limiter import RateLimiter
from .service import ScoringService
from .stats import Outcome, StatisticsCollector

__all__ = [
    "BatchOrchestrator",
    "Outcome",
    "RateLimiter",
    "ScoreCache",
    "ScoringCacheEntry",
    "ScoringService",
    "StatisticsCollector",
    "derive_insights",
]
