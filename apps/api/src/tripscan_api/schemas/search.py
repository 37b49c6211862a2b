"""Search endpoint request / response schemas."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from tripscan_core.schemas import (
    CabinClass,
    Category,
    DateType,
    LocationType,
    SearchAction,
    SearchMode,
    SearchStatus,
    SortOption,
    TripType,
)

from .common import CamelModel


class LocationInput(CamelModel):
    """Free text and/or code for a place."""

    query: str | None = None
    code: str | None = None
    type: LocationType | None = None


class DatesInput(CamelModel):
    """Dates as sent by the client; parsed by the query normalizer."""

    start_date: str | None = None
    end_date: str | None = None
    flexible: bool = False
    flex_days: int = 0
    type: DateType | None = None


class TravelersInput(CamelModel):
    adults: int = 1
    children: int = 0
    children_ages: list[int] = Field(default_factory=list)
    infants: int = 0


class OptionsInput(CamelModel):
    currency: str = "USD"
    language: str = "en"
    strategy: str = "balanced"
    limit: int = 50


class SearchRequest(CamelModel):
    """Inbound body for ``POST /search``, dispatched on ``action``."""

    action: SearchAction = SearchAction.SEARCH
    mode: SearchMode | None = None
    destination: LocationInput | None = None
    origin: LocationInput | None = None
    dates: DatesInput | None = None
    travelers: TravelersInput | None = None
    rooms: int | None = None
    cabin_class: CabinClass | None = None
    trip_type: TripType | None = None
    filters: dict[str, Any] | None = None
    sort_by: SortOption | None = None
    options: OptionsInput | None = None
    session_token: str | None = None
    user_id: str | None = None

    # Continuation
    category: Category | None = None
    page: int | None = None
    page_size: int | None = None
    clicked_offer_id: str | None = None
    saved_offer_id: str | None = None
    time_spent_seconds: float | None = None

    # Autocomplete / trending
    query: str | None = None
    limit: int | None = None


class PageInfo(CamelModel):
    page: int
    page_size: int
    total_pages: int
    has_more: bool


class ProviderInfo(CamelModel):
    code: str
    response_time: int
    from_cache: bool
    result_count: int
    success: bool
    error: str | None = None


class CategoryPayload(CamelModel):
    """One category's page of results."""

    items: list[dict[str, Any]]
    total_count: int
    page_info: PageInfo
    providers: list[ProviderInfo]
    filter_stats: dict[str, Any]
    applied_filters: dict[str, Any] = Field(default_factory=dict)
    sort_by: SortOption = SortOption.RECOMMENDED


class ResultSources(CamelModel):
    cached: int = 0
    live: int = 0


class SearchMeta(CamelModel):
    search_duration: int
    providers: list[dict[str, Any]]
    cache_hits: int = 0
    result_sources: ResultSources = Field(default_factory=ResultSources)
    fallback_locations: list[str] = Field(default_factory=list)


class SearchData(CamelModel):
    """Payload of a ``search`` or ``continue`` response."""

    session_token: str
    status: SearchStatus
    results: dict[Category, CategoryPayload]
    query: dict[str, Any]
    filters: dict[Category, list[dict[str, Any]]]
    sorts: dict[Category, list[dict[str, Any]]]
    suggestions: list[dict[str, Any]] = Field(default_factory=list)
    destination_info: dict[str, Any] | None = None
    price_insights: dict[Category, dict[str, Any]] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    meta: SearchMeta


class DestinationItem(CamelModel):
    """Autocomplete / trending entry."""

    code: str
    name: str
    full_name: str | None = None
    type: LocationType = LocationType.CITY
    country_code: str
    tagline: str | None = None
    best_months: list[int] = Field(default_factory=list)
    popularity_score: float = 0.0
