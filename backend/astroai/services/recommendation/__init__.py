"""Recommendation services for consulting offerings."""

from .catalog import DEFAULT_CATALOG
from .scorer import RecommendationScorer

__all__ = ["DEFAULT_CATALOG", "RecommendationScorer"]
