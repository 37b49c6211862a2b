"""Pydantic-compatible enums shared by every TripScan package."""

from enum import StrEnum


class Category(StrEnum):
    """Inventory category a provider can be searched for."""

    FLIGHTS = "flights"
    HOTELS = "hotels"
    CARS = "cars"
    EXPERIENCES = "experiences"


class SearchMode(StrEnum):
    """Top-level search mode chosen by the client."""

    UNIFIED = "unified"
    FLIGHT = "flight"
    HOTEL = "hotel"
    CAR = "car"
    EXPERIENCE = "experience"
    PACKAGE = "package"
    PLAN = "plan"


class SearchAction(StrEnum):
    """Endpoint action."""

    SEARCH = "search"
    CONTINUE = "continue"
    AUTOCOMPLETE = "autocomplete"
    TRENDING = "trending"


class TripType(StrEnum):
    """Trip type."""

    ONE_WAY = "one_way"
    ROUND_TRIP = "round_trip"
    MULTI_CITY = "multi_city"


class CabinClass(StrEnum):
    """Cabin class for flights."""

    ECONOMY = "economy"
    PREMIUM_ECONOMY = "premium_economy"
    BUSINESS = "business"
    FIRST = "first"


class DateType(StrEnum):
    """How the traveller expressed their dates."""

    EXACT = "exact"
    FLEXIBLE = "flexible"
    WEEKEND = "weekend"
    MONTH = "month"


class LocationType(StrEnum):
    """Kind of place a resolved location represents."""

    CITY = "city"
    AIRPORT = "airport"
    REGION = "region"
    COUNTRY = "country"


class SearchStatus(StrEnum):
    """Session / search lifecycle status."""

    PENDING = "pending"
    SEARCHING = "searching"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            SearchStatus.COMPLETED,
            SearchStatus.PARTIAL,
            SearchStatus.FAILED,
        )

    @property
    def stage(self) -> int:
        """Ordinal used to enforce forward-only transitions."""
        if self is SearchStatus.PENDING:
            return 0
        if self is SearchStatus.SEARCHING:
            return 1
        return 2


class ExecutionStrategy(StrEnum):
    """How execution phases are scheduled."""

    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"
    HYBRID = "hybrid"


class FailureKind(StrEnum):
    """Structured reason an adapter call did not produce results."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    INVALID_REQUEST = "invalid_request"
    BAD_RESPONSE = "bad_response"
    ABANDONED = "abandoned"
    ERROR = "error"


class IntentKind(StrEnum):
    """Inferred purpose of a search."""

    EXPLORE = "explore"
    BOOK = "book"
    COMPARE = "compare"
    PLAN = "plan"


class FilterType(StrEnum):
    """Kind of facet the filter engine can derive."""

    RANGE = "range"
    MULTI_SELECT = "multi_select"
    SINGLE_SELECT = "single_select"
    BOOLEAN = "boolean"
    TIME_RANGE = "time_range"


class SortOption(StrEnum):
    """Result orderings offered to the client."""

    RECOMMENDED = "recommended"
    PRICE_LOW = "price_low"
    PRICE_HIGH = "price_high"
    DURATION_SHORT = "duration_short"
    DURATION_LONG = "duration_long"
    DEPARTURE_EARLY = "departure_early"
    DEPARTURE_LATE = "departure_late"
    RATING_HIGH = "rating_high"
    DISTANCE_NEAR = "distance_near"
    POPULARITY = "popularity"


class BudgetLevel(StrEnum):
    """Traveller budget preference."""

    BUDGET = "budget"
    MODERATE = "moderate"
    LUXURY = "luxury"
