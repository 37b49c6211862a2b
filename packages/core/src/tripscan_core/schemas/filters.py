"""Filter facet, sort and deduplication schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import FilterType, SortOption
from .results import UnifiedResult  # noqa: TC001

AppliedFilters = dict[str, Any]


class FilterOption(BaseModel):
    """One selectable value of a facet."""

    model_config = ConfigDict(frozen=True)

    value: str
    label: str
    count: int = 0


class FilterDefinition(BaseModel):
    """A facet derived from the current unique result set."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    type: FilterType
    options: tuple[FilterOption, ...] = ()
    min: float | None = None
    max: float | None = None
    unit: str | None = None


class FilterStats(BaseModel):
    """Before/after counts of a filter pass."""

    total_before: int
    total_after: int
    removed_count: int


class FilterResult(BaseModel):
    """Filtered list plus the facets and stats that produced it."""

    results: list[UnifiedResult]
    available_filters: list[FilterDefinition]
    applied_filters: AppliedFilters
    filter_stats: FilterStats


class SortDefinition(BaseModel):
    """A sort option offered for a category."""

    model_config = ConfigDict(frozen=True)

    id: SortOption
    label: str


class DuplicateMember(BaseModel):
    """A non-primary offer inside a duplicate group."""

    model_config = ConfigDict(frozen=True)

    result_id: str
    provider_code: str
    price: float
    price_delta: float
    similarity: float = Field(ge=0, le=1)


class DuplicateGroup(BaseModel):
    """Offers judged to be the same itinerary, stay, rental or activity."""

    model_config = ConfigDict(frozen=True)

    primary_id: str
    primary_provider: str
    primary_price: float
    duplicates: tuple[DuplicateMember, ...]

    @property
    def size(self) -> int:
        return 1 + len(self.duplicates)

    @property
    def member_ids(self) -> frozenset[str]:
        return frozenset(
            [self.primary_id, *(member.result_id for member in self.duplicates)]
        )


class DeduplicationStats(BaseModel):
    """Counts describing a deduplication pass."""

    input_count: int
    output_count: int
    duplicates_found: int
    dedup_rate: float


class DeduplicationResult(BaseModel):
    """Unique results with the groups that were collapsed."""

    unique_results: list[UnifiedResult]
    groups: list[DuplicateGroup]
    stats: DeduplicationStats
