"""Core schemas for TripScan."""

from .enums import (
    BudgetLevel,
    CabinClass,
    Category,
    DateType,
    ExecutionStrategy,
    FailureKind,
    FilterType,
    IntentKind,
    LocationType,
    SearchAction,
    SearchMode,
    SearchStatus,
    SortOption,
    TripType,
)
from .execution import (
    AdapterContext,
    AdapterFailure,
    AdapterOutcome,
    AdapterSuccess,
    CarSearchParams,
    ExecutionPhase,
    ExecutionPlan,
    ExecutionResult,
    ExperienceSearchParams,
    FlightSearchParams,
    HealthCheckResult,
    HotelSearchParams,
    SearchParams,
)
from .filters import (
    AppliedFilters,
    DeduplicationResult,
    DeduplicationStats,
    DuplicateGroup,
    DuplicateMember,
    FilterDefinition,
    FilterOption,
    FilterResult,
    FilterStats,
    SortDefinition,
)
from .location import Coordinates, LocationQuery, ResolvedLocation
from .query import (
    DateQuery,
    DestinationInsight,
    EnrichedQuery,
    IntentSignal,
    ParsedQuery,
    SearchHistoryItem,
    SearchIntent,
    SearchOptions,
    TravelerCount,
    UserPreferences,
)
from .results import (
    AlternativeOffer,
    CarResult,
    ExperienceResult,
    FlightResult,
    FlightSegment,
    FlightSlice,
    HotelResult,
    Price,
    ProviderStamp,
    RankingInfo,
    UnifiedResult,
    unified_results_adapter,
)
from .session import (
    CategoryResults,
    PriceSnapshot,
    ProviderSummary,
    SearchSession,
    SessionAnalytics,
)

__all__ = [
    "AdapterContext",
    "AdapterFailure",
    "AdapterOutcome",
    "AdapterSuccess",
    "AlternativeOffer",
    "AppliedFilters",
    "BudgetLevel",
    "CabinClass",
    "CarResult",
    "CarSearchParams",
    "Category",
    "CategoryResults",
    "Coordinates",
    "DateQuery",
    "DateType",
    "DeduplicationResult",
    "DeduplicationStats",
    "DestinationInsight",
    "DuplicateGroup",
    "DuplicateMember",
    "EnrichedQuery",
    "ExecutionPhase",
    "ExecutionPlan",
    "ExecutionResult",
    "ExecutionStrategy",
    "ExperienceResult",
    "ExperienceSearchParams",
    "FailureKind",
    "FilterDefinition",
    "FilterOption",
    "FilterResult",
    "FilterStats",
    "FilterType",
    "FlightResult",
    "FlightSearchParams",
    "FlightSegment",
    "FlightSlice",
    "HealthCheckResult",
    "HotelResult",
    "HotelSearchParams",
    "IntentKind",
    "IntentSignal",
    "LocationQuery",
    "LocationType",
    "ParsedQuery",
    "Price",
    "PriceSnapshot",
    "ProviderStamp",
    "ProviderSummary",
    "RankingInfo",
    "ResolvedLocation",
    "SearchAction",
    "SearchHistoryItem",
    "SearchIntent",
    "SearchMode",
    "SearchOptions",
    "SearchParams",
    "SearchSession",
    "SearchStatus",
    "SessionAnalytics",
    "SortDefinition",
    "SortOption",
    "TravelerCount",
    "TripType",
    "UnifiedResult",
    "UserPreferences",
    "unified_results_adapter",
]
