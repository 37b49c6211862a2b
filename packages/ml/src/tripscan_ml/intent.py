"""Search intent detection and derived recommendations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from tripscan_core.schemas import (
    Category,
    DateType,
    IntentKind,
    IntentSignal,
    SearchIntent,
    SearchMode,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import date

    from tripscan_core.schemas import EnrichedQuery, ParsedQuery, SearchHistoryItem

# Signals that indicate the traveller is ready to book.
_BOOKING_SIGNALS = frozenset(
    {"specific_dates", "detailed_travelers", "urgent_travel", "near_travel"}
)

BOOK_CONFIDENCE = 0.6
URGENT_DAYS = 14
NEAR_DAYS = 30


class Suggestion(BaseModel):
    """A recommendation shown next to the results."""

    type: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)


def detect_intent(
    query: ParsedQuery,
    history: Sequence[SearchHistoryItem],
    destination_code: str | None,
    today: date,
) -> SearchIntent:
    """Classify primary intent from query signals and prior searches.

    Confidence is the booking-signal share of the total signal weight; it is
    0.5 when there is no evidence either way.
    """
    signals: list[IntentSignal] = []

    dates = query.dates
    if dates is not None and not dates.flexible and dates.type is DateType.EXACT:
        signals.append(_signal("specific_dates", "date_query", 0.8))

    travelers = query.travelers
    if travelers.adults > 1 or travelers.children or travelers.infants:
        signals.append(_signal("detailed_travelers", "traveler_query", 0.7))

    if dates is not None:
        days_until = (dates.start_date - today).days
        if 0 <= days_until < URGENT_DAYS:
            signals.append(_signal("urgent_travel", "date_query", 0.9))
        elif 0 <= days_until < NEAR_DAYS:
            signals.append(_signal("near_travel", "date_query", 0.6))

    repeat = destination_code is not None and any(
        item.destination_code == destination_code for item in history
    )
    if repeat:
        signals.append(_signal("repeat_search", "user_history", 0.6))

    multi_category = len(query.categories) >= 3
    if multi_category:
        signals.append(_signal("multi_category", "category_mix", 0.5))

    total = sum(s.weight for s in signals)
    booking = sum(s.weight for s in signals if s.name in _BOOKING_SIGNALS)
    confidence = round(booking / total, 4) if total else 0.5

    if confidence > BOOK_CONFIDENCE:
        primary = IntentKind.BOOK
    elif query.mode is SearchMode.PLAN or multi_category:
        primary = IntentKind.PLAN
    elif repeat:
        primary = IntentKind.COMPARE
    else:
        primary = IntentKind.EXPLORE

    return SearchIntent(primary=primary, confidence=confidence, signals=tuple(signals))


def _signal(name: str, source: str, weight: float) -> IntentSignal:
    return IntentSignal(name=name, source=source, weight=weight)


def build_recommendations(
    query: EnrichedQuery,
    result_counts: Mapping[Category, int],
    duplicate_groups: int = 0,
) -> list[Suggestion]:
    """Suggestions derived from intent and what the search produced."""
    suggestions: list[Suggestion] = []
    intent = query.intent
    names = {s.name for s in intent.signals}
    city = query.destination_location.name

    for category, count in sorted(result_counts.items()):
        if count == 0:
            suggestions.append(
                Suggestion(
                    type="broaden_search",
                    message=f"No {category} found for {city}; try other dates",
                    data={"category": category.value},
                )
            )

    if (
        Category.FLIGHTS in query.categories
        and query.dates is not None
        and not query.dates.flexible
        and intent.primary is not IntentKind.BOOK
    ):
        suggestions.append(
            Suggestion(
                type="flexible_dates",
                message="Searching a few days either side may reveal lower fares",
                data={"flex_days": 3},
            )
        )

    if "urgent_travel" in names:
        suggestions.append(
            Suggestion(
                type="book_soon",
                message="Departure is close; prices often rise in the final weeks",
            )
        )

    if intent.primary is IntentKind.COMPARE and duplicate_groups:
        suggestions.append(
            Suggestion(
                type="compare_providers",
                message=f"{duplicate_groups} offers are sold by several providers",
                data={"groups": duplicate_groups},
            )
        )

    if intent.primary in (IntentKind.EXPLORE, IntentKind.PLAN) and (
        Category.EXPERIENCES not in query.categories
    ):
        suggestions.append(
            Suggestion(
                type="add_category",
                message=f"Discover things to do in {city}",
                data={"category": Category.EXPERIENCES.value},
            )
        )

    insight = query.destination_insight
    if insight is not None and insight.best_months and query.dates is not None:
        month = query.dates.start_date.month
        if month not in insight.best_months:
            suggestions.append(
                Suggestion(
                    type="best_time",
                    message=f"{insight.name} is most popular in other months",
                    data={"best_months": list(insight.best_months)},
                )
            )
    return suggestions
