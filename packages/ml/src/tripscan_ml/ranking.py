"""Multi-factor ranking of unique results with weighted subscores."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, model_validator

from tripscan_core.schemas import (
    BudgetLevel,
    CabinClass,
    CarResult,
    Category,
    ExperienceResult,
    FlightResult,
    HotelResult,
    IntentKind,
    RankingInfo,
    SortDefinition,
    SortOption,
)
from tripscan_ml.facets import matches_filter

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from tripscan_core.schemas import EnrichedQuery, UnifiedResult


class RankingWeights(BaseModel):
    """Relative importance of each subscore."""

    price: float = Field(default=0.30, ge=0)
    quality: float = Field(default=0.25, ge=0)
    relevance: float = Field(default=0.20, ge=0)
    personalization: float = Field(default=0.15, ge=0)
    freshness: float = Field(default=0.10, ge=0)

    @model_validator(mode="after")
    def _validate_total(self) -> RankingWeights:
        if self.total <= 0:
            msg = "At least one ranking weight must be positive"
            raise ValueError(msg)
        return self

    @property
    def total(self) -> float:
        return (
            self.price
            + self.quality
            + self.relevance
            + self.personalization
            + self.freshness
        )


WEIGHT_PROFILES: dict[str, RankingWeights] = {
    "BALANCED": RankingWeights(),
    "PRICE": RankingWeights(
        price=0.50, quality=0.15, relevance=0.15, personalization=0.10, freshness=0.10
    ),
    "QUALITY": RankingWeights(
        price=0.15, quality=0.45, relevance=0.20, personalization=0.10, freshness=0.10
    ),
}

_PREMIUM_CABINS = frozenset({CabinClass.BUSINESS, CabinClass.FIRST})


class RankingEngine:
    """Scores and orders unique results.

    Pure: the same results, query, weights and priorities always produce the
    same order.  Time-dependent scoring uses ``query.search_time``.
    """

    def __init__(
        self,
        weights: RankingWeights | None = None,
        provider_priorities: Mapping[str, int] | None = None,
        freshness_window_seconds: float = 300.0,
    ) -> None:
        self._weights = weights or WEIGHT_PROFILES["BALANCED"]
        self._priorities = dict(provider_priorities or {})
        self._freshness_window = freshness_window_seconds

    @property
    def weights(self) -> RankingWeights:
        return self._weights

    def rank(
        self, results: Sequence[UnifiedResult], query: EnrichedQuery
    ) -> list[UnifiedResult]:
        """Return copies of ``results`` with ranking blocks, best first."""
        if not results:
            return []

        prices = [r.price.amount for r in results]
        min_price = min(prices)
        price_range = max(prices) - min_price
        w = self._weights

        scored: list[tuple[float, UnifiedResult, dict[str, float]]] = []
        for result in results:
            price = _score_price(result.price.amount, min_price, price_range)
            parts = {
                "price": price,
                "quality": _score_quality(result),
                "relevance": _score_relevance(result, query),
                "personalization": _score_personalization(result, query, price),
                "freshness": self._score_freshness(result, query),
            }
            total = (
                w.price * parts["price"]
                + w.quality * parts["quality"]
                + w.relevance * parts["relevance"]
                + w.personalization * parts["personalization"]
                + w.freshness * parts["freshness"]
            ) / w.total
            scored.append((round(_clamp(total), 4), result, parts))

        scored.sort(
            key=lambda item: (
                -item[0],
                -self._priorities.get(item[1].provider.code, 0),
                item[1].id,
            )
        )
        return [
            result.model_copy(
                update={
                    "ranking": RankingInfo(
                        score=total,
                        rank=position,
                        price_score=round(parts["price"], 4),
                        quality_score=round(parts["quality"], 4),
                        relevance_score=round(parts["relevance"], 4),
                        personalization_score=round(parts["personalization"], 4),
                        freshness_score=round(parts["freshness"], 4),
                    )
                }
            )
            for position, (total, result, parts) in enumerate(scored, start=1)
        ]

    def _score_freshness(self, result: UnifiedResult, query: EnrichedQuery) -> float:
        """100 when just retrieved, decaying to 50 across the window."""
        age = (query.search_time - result.provider.retrieved_at).total_seconds()
        age = max(age, 0.0)
        if age > self._freshness_window:
            return 50.0
        return 100.0 - age / self._freshness_window * 50.0


def _score_price(price: float, min_price: float, price_range: float) -> float:
    """Min-max normalization: cheapest=100, most expensive=0."""
    if price_range == 0:
        return 50.0
    return (1.0 - (price - min_price) / price_range) * 100.0


def _score_quality(result: UnifiedResult) -> float:
    if isinstance(result, FlightResult):
        score = 50.0
        if result.is_refundable:
            score += 15
        if result.is_changeable:
            score += 10
        if result.checked_bags_included:
            score += 10
        return _clamp(score)

    if isinstance(result, HotelResult):
        parts: list[tuple[float, float]] = []
        if result.star_rating is not None:
            parts.append((result.star_rating / 5 * 100, 0.4))
        if result.guest_rating is not None:
            parts.append((result.guest_rating / 10 * 100, 0.4))
        volume = min(result.guest_review_count / 500, 1.0) * 100
        if not parts:
            return 50.0
        weight = sum(p[1] for p in parts)
        base = sum(value * share for value, share in parts) / weight
        return _clamp(base * 0.8 + volume * 0.2)

    rating = result.rating
    if isinstance(result, CarResult):
        volume = min(result.review_count / 200, 1.0) * 100
        bonus = 10.0 if result.free_cancellation else 0.0
    else:
        volume = min(result.review_count / 1000, 1.0) * 100
        bonus = 10.0 if getattr(result, "is_bestseller", False) else 0.0
    if rating is None:
        return _clamp(50.0 + bonus)
    return _clamp(rating / 5 * 70 + volume * 0.2 + bonus)


def _score_relevance(result: UnifiedResult, query: EnrichedQuery) -> float:
    score = 50.0
    if isinstance(result, FlightResult):
        stops = result.max_stops
        if stops == 0:
            score += 20
        elif stops == 1:
            score += 10
        else:
            score -= 5 * stops
    distance = result.distance_km
    if distance is not None:
        if distance < 1:
            score += 20
        elif distance < 3:
            score += 10
        elif distance > 10:
            score -= 10

    for filter_id, value in query.filters.items():
        matched = matches_filter(result, filter_id, value)
        if matched is True:
            score += 5
        elif matched is False:
            score -= 10

    score += _intent_bias(result, query) * query.intent.confidence
    return _clamp(score)


def _intent_bias(result: UnifiedResult, query: EnrichedQuery) -> float:
    flexible = bool(
        getattr(result, "free_cancellation", False)
        or getattr(result, "is_refundable", False)
    )
    intent = query.intent.primary
    if intent is IntentKind.BOOK:
        return 10.0 if flexible else 0.0
    if intent is IntentKind.COMPARE:
        return 10.0 if result.alternatives else 0.0
    if intent is IntentKind.PLAN:
        return 5.0 if flexible else 0.0
    rating = result.rating
    return 5.0 if rating is not None and rating >= 4.5 else 0.0


def _score_personalization(
    result: UnifiedResult, query: EnrichedQuery, price_score: float
) -> float:
    prefs = query.preferences
    if prefs is None:
        return 50.0
    score = 50.0

    if prefs.budget_level is BudgetLevel.BUDGET and price_score >= 70:
        score += 15
    elif prefs.budget_level is BudgetLevel.MODERATE and 30 <= price_score <= 80:
        score += 15
    elif prefs.budget_level is BudgetLevel.LUXURY and _is_premium(result):
        score += 15

    if isinstance(result, FlightResult):
        preferred = {code.upper() for code in prefs.preferred_airlines}
        if preferred & set(result.carriers):
            score += 15
        if prefs.preferred_cabin == result.cabin_class:
            score += 10
    elif isinstance(result, HotelResult):
        chains = {c.casefold() for c in prefs.preferred_hotel_chains}
        brands = {(result.chain_code or "").casefold(), (result.brand or "").casefold()}
        if chains & brands:
            score += 15
        if prefs.required_amenities:
            have = {a.casefold() for a in result.amenities}
            wanted = {a.casefold() for a in prefs.required_amenities}
            score += 10 * len(wanted & have) / len(wanted)
    return _clamp(score)


def _is_premium(result: UnifiedResult) -> bool:
    if isinstance(result, FlightResult):
        return result.cabin_class in _PREMIUM_CABINS
    if isinstance(result, HotelResult):
        return (result.star_rating or 0) >= 4
    rating = result.rating
    return rating is not None and rating >= 4.5


def _clamp(value: float) -> float:
    return min(100.0, max(0.0, value))


# ----------------------------------------------------------------------
# Sorting
# ----------------------------------------------------------------------

SORT_LABELS: dict[SortOption, str] = {
    SortOption.RECOMMENDED: "Recommended",
    SortOption.PRICE_LOW: "Price: low to high",
    SortOption.PRICE_HIGH: "Price: high to low",
    SortOption.DURATION_SHORT: "Duration: shortest",
    SortOption.DURATION_LONG: "Duration: longest",
    SortOption.DEPARTURE_EARLY: "Departure: earliest",
    SortOption.DEPARTURE_LATE: "Departure: latest",
    SortOption.RATING_HIGH: "Rating: highest",
    SortOption.DISTANCE_NEAR: "Distance: nearest",
    SortOption.POPULARITY: "Most popular",
}

_COMMON_SORTS = (SortOption.RECOMMENDED, SortOption.PRICE_LOW, SortOption.PRICE_HIGH)

_SORTS_BY_CATEGORY: dict[Category, tuple[SortOption, ...]] = {
    Category.FLIGHTS: (
        *_COMMON_SORTS,
        SortOption.DURATION_SHORT,
        SortOption.DEPARTURE_EARLY,
        SortOption.DEPARTURE_LATE,
    ),
    Category.HOTELS: (
        *_COMMON_SORTS,
        SortOption.RATING_HIGH,
        SortOption.DISTANCE_NEAR,
    ),
    Category.CARS: (*_COMMON_SORTS, SortOption.RATING_HIGH),
    Category.EXPERIENCES: (
        *_COMMON_SORTS,
        SortOption.RATING_HIGH,
        SortOption.DURATION_SHORT,
        SortOption.POPULARITY,
    ),
}


def available_sorts(category: Category) -> list[SortDefinition]:
    """Sort options offered for a category."""
    return [
        SortDefinition(id=option, label=SORT_LABELS[option])
        for option in _SORTS_BY_CATEGORY[category]
    ]


def _popularity(result: UnifiedResult) -> float:
    if isinstance(result, ExperienceResult):
        return float(result.booking_count + result.review_count)
    return float(result.review_count)


def _timestamp(result: UnifiedResult) -> float | None:
    starts = result.starts_at
    return starts.timestamp() if starts is not None else None


def _negate(
    fn: Callable[[UnifiedResult], float | None],
) -> Callable[[UnifiedResult], float | None]:
    def inner(result: UnifiedResult) -> float | None:
        value = fn(result)
        return -value if value is not None else None

    return inner


_SORT_VALUE: dict[SortOption, Callable[[UnifiedResult], float | None]] = {
    SortOption.PRICE_LOW: lambda r: r.price.amount,
    SortOption.PRICE_HIGH: _negate(lambda r: r.price.amount),
    SortOption.DURATION_SHORT: lambda r: r.duration_minutes,
    SortOption.DURATION_LONG: _negate(lambda r: r.duration_minutes),
    SortOption.DEPARTURE_EARLY: _timestamp,
    SortOption.DEPARTURE_LATE: _negate(_timestamp),
    SortOption.RATING_HIGH: _negate(lambda r: r.rating),
    SortOption.DISTANCE_NEAR: lambda r: r.distance_km,
    SortOption.POPULARITY: _negate(_popularity),
}


def sort_results(
    results: Sequence[UnifiedResult], sort_by: SortOption
) -> list[UnifiedResult]:
    """Order results; missing values sort last, ties fall back to rank then id."""

    def rank_of(result: UnifiedResult) -> float:
        return result.ranking.rank if result.ranking is not None else math.inf

    value_fn = _SORT_VALUE.get(sort_by)
    if value_fn is None:
        return sorted(results, key=lambda r: (rank_of(r), r.id))

    def key(result: UnifiedResult) -> tuple[bool, float, float, str]:
        value = value_fn(result)
        return (value is None, value or 0.0, rank_of(result), result.id)

    return sorted(results, key=key)
