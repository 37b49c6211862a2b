"""Parsed and enriched search query schemas."""

from __future__ import annotations

from datetime import date, datetime  # noqa: TC003
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import (
    BudgetLevel,
    CabinClass,
    Category,
    DateType,
    IntentKind,
    SearchMode,
    SortOption,
    TripType,
)
from .location import LocationQuery, ResolvedLocation


class DateQuery(BaseModel):
    """Requested travel dates."""

    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date | None = None
    flexible: bool = False
    flex_days: int = Field(default=0, ge=0, le=7)
    type: DateType = DateType.EXACT

    @property
    def nights(self) -> int | None:
        if self.end_date is None:
            return None
        return (self.end_date - self.start_date).days


class TravelerCount(BaseModel):
    """Number of travellers by type."""

    model_config = ConfigDict(frozen=True)

    adults: int = Field(default=1, ge=1, le=9)
    children: int = Field(default=0, ge=0, le=8)
    children_ages: tuple[int, ...] = ()
    infants: int = Field(default=0, ge=0, le=4)

    @model_validator(mode="after")
    def _validate_totals(self) -> TravelerCount:
        if self.infants > self.adults:
            msg = "Each infant requires at least one adult"
            raise ValueError(msg)
        if len(self.children_ages) > self.children:
            msg = "More children ages given than children"
            raise ValueError(msg)
        return self

    @property
    def total(self) -> int:
        return self.adults + self.children + self.infants


class SearchOptions(BaseModel):
    """Client execution options."""

    model_config = ConfigDict(frozen=True)

    currency: str = Field(default="USD", min_length=3, max_length=3)
    language: str = "en"
    strategy: Literal["balanced", "fast", "comprehensive"] = "balanced"
    limit: int = Field(default=50, ge=1, le=200)


class UserPreferences(BaseModel):
    """Read-only preference signals for one user."""

    model_config = ConfigDict(frozen=True)

    budget_level: BudgetLevel | None = None
    preferred_airlines: tuple[str, ...] = ()
    preferred_hotel_chains: tuple[str, ...] = ()
    required_amenities: tuple[str, ...] = ()
    preferred_cabin: CabinClass | None = None
    home_airport: str | None = None


class SearchHistoryItem(BaseModel):
    """One prior search made by the user."""

    model_config = ConfigDict(frozen=True)

    mode: SearchMode = SearchMode.UNIFIED
    origin_code: str | None = None
    destination_code: str
    start_date: date | None = None
    searched_at: datetime


class DestinationInsight(BaseModel):
    """Location-intelligence summary surfaced as ``destinationInfo``."""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    country_code: str
    description: str | None = None
    popularity_score: float = 0.0
    best_months: tuple[int, ...] = ()
    average_daily_cost: float | None = None
    highlights: tuple[str, ...] = ()


class IntentSignal(BaseModel):
    """Evidence contributing to intent detection."""

    model_config = ConfigDict(frozen=True)

    name: str
    source: str
    weight: float = Field(ge=0, le=1)


class SearchIntent(BaseModel):
    """Primary intent with confidence and the signals behind it."""

    model_config = ConfigDict(frozen=True)

    primary: IntentKind = IntentKind.EXPLORE
    confidence: float = Field(default=0.5, ge=0, le=1)
    signals: tuple[IntentSignal, ...] = ()


class ParsedQuery(BaseModel):
    """Validated query with defaults filled in."""

    model_config = ConfigDict(frozen=True)

    mode: SearchMode = SearchMode.UNIFIED
    categories: tuple[Category, ...]
    destination: LocationQuery
    origin: LocationQuery | None = None
    dates: DateQuery | None = None
    travelers: TravelerCount = Field(default_factory=TravelerCount)
    rooms: int = Field(default=1, ge=1, le=9)
    cabin_class: CabinClass = CabinClass.ECONOMY
    trip_type: TripType = TripType.ONE_WAY
    filters: dict[str, Any] = Field(default_factory=dict)
    sort_by: SortOption = SortOption.RECOMMENDED
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1, le=200)
    options: SearchOptions = Field(default_factory=SearchOptions)
    user_id: str | None = None
    search_time: datetime


class EnrichedQuery(ParsedQuery):
    """Parsed query plus resolved locations, user context and intent."""

    destination_location: ResolvedLocation
    origin_location: ResolvedLocation | None = None
    currency: str = "USD"
    intent: SearchIntent = Field(default_factory=SearchIntent)
    preferences: UserPreferences | None = None
    history: tuple[SearchHistoryItem, ...] = ()
    destination_insight: DestinationInsight | None = None

    @property
    def fallback_locations(self) -> list[str]:
        """Raw inputs the resolver could not match."""
        fallbacks = []
        for query, resolved in (
            (self.origin, self.origin_location),
            (self.destination, self.destination_location),
        ):
            if query is not None and resolved is not None and resolved.is_fallback:
                fallbacks.append(query.text)
        return fallbacks
