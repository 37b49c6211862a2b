"""Abstract base class for all provider adapters."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

from tripscan_core.errors import UnsupportedCategoryError
from tripscan_core.schemas import Category

if TYPE_CHECKING:
    from tripscan_core.schemas import (
        AdapterContext,
        AdapterOutcome,
        CarSearchParams,
        ExperienceSearchParams,
        FlightSearchParams,
        HealthCheckResult,
        HotelSearchParams,
        SearchParams,
    )

_METHOD_BY_CATEGORY: dict[Category, str] = {
    Category.FLIGHTS: "search_flights",
    Category.HOTELS: "search_hotels",
    Category.CARS: "search_cars",
    Category.EXPERIENCES: "search_experiences",
}


class ProviderAdapter(abc.ABC):
    """Uniform contract every provider connector implements.

    Subclasses declare ``supported_categories`` and override the matching
    ``search_<category>`` methods.  Recoverable conditions (rate limits,
    timeouts, unavailable upstream, bad payloads) are returned as
    :class:`AdapterFailure`; only unexpected faults raise.
    """

    code: str
    name: str
    priority: int = 50
    timeout_ms: int = 8000
    supported_categories: frozenset[Category] = frozenset()

    def supports(self, category: Category) -> bool:
        return category in self.supported_categories

    def implemented_categories(self) -> frozenset[Category]:
        """Categories whose search method is actually overridden."""
        return frozenset(
            category
            for category, method in _METHOD_BY_CATEGORY.items()
            if getattr(type(self), method) is not getattr(ProviderAdapter, method)
        )

    async def search(
        self,
        category: Category,
        params: SearchParams,
        context: AdapterContext,
    ) -> AdapterOutcome:
        """Capability-checked dispatch to the category's search method."""
        if not self.supports(category):
            msg = f"{self.code} does not support {category}"
            raise UnsupportedCategoryError(self.code, msg, category=category.value)
        method = getattr(self, _METHOD_BY_CATEGORY[category])
        return await method(params, context)

    async def search_flights(
        self, params: FlightSearchParams, context: AdapterContext
    ) -> AdapterOutcome:
        raise UnsupportedCategoryError(self.code, f"{self.code} has no flights")

    async def search_hotels(
        self, params: HotelSearchParams, context: AdapterContext
    ) -> AdapterOutcome:
        raise UnsupportedCategoryError(self.code, f"{self.code} has no hotels")

    async def search_cars(
        self, params: CarSearchParams, context: AdapterContext
    ) -> AdapterOutcome:
        raise UnsupportedCategoryError(self.code, f"{self.code} has no cars")

    async def search_experiences(
        self, params: ExperienceSearchParams, context: AdapterContext
    ) -> AdapterOutcome:
        raise UnsupportedCategoryError(self.code, f"{self.code} has no experiences")

    @abc.abstractmethod
    async def health_check(self) -> HealthCheckResult:
        """Check the provider and report reachability and latency."""

    async def close(self) -> None:  # noqa: B027
        """Release any held resources (HTTP clients, etc.)."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.code}>"
