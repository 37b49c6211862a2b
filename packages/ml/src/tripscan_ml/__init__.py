"""TripScan ML - ranking, facets, intent and price insights."""

from tripscan_ml.facets import apply_filters, derive_filters, matches_filter
from tripscan_ml.insights import PriceInsight, price_insight, snapshot
from tripscan_ml.intent import Suggestion, build_recommendations, detect_intent
from tripscan_ml.ranking import (
    WEIGHT_PROFILES,
    RankingEngine,
    RankingWeights,
    available_sorts,
    sort_results,
)

__all__ = [
    "WEIGHT_PROFILES",
    "PriceInsight",
    "RankingEngine",
    "RankingWeights",
    "Suggestion",
    "apply_filters",
    "available_sorts",
    "build_recommendations",
    "derive_filters",
    "detect_intent",
    "matches_filter",
    "price_insight",
    "snapshot",
    "sort_results",
]
