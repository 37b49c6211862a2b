"""Fixture-backed adapter serving offers from memory or a JSON file.

Useful for demos, local development and contract tests.  File layout::

    {
      "providers": [
        {
          "code": "demo", "name": "Demo", "priority": 50,
          "latency_ms": 0,
          "offers": {"flights": [{"offer_id": "...", ...}], "hotels": [...]}
        }
      ]
    }
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from tripscan_core.schemas import AdapterSuccess, Category, HealthCheckResult
from tripscan_providers.base import ProviderAdapter
from tripscan_providers.normalizer import ResultNormalizer

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from tripscan_core.schemas import (
        AdapterContext,
        AdapterOutcome,
        CarSearchParams,
        ExperienceSearchParams,
        FlightSearchParams,
        HotelSearchParams,
        UnifiedResult,
    )

logger = logging.getLogger(__name__)


class StaticAdapter(ProviderAdapter):
    """Serves a fixed offer list, filtered to the requested route or city."""

    def __init__(
        self,
        code: str,
        name: str,
        offers: Mapping[Category | str, Sequence[dict[str, Any]]],
        *,
        priority: int = 50,
        timeout_ms: int = 8000,
        latency: float = 0.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.code = code
        self.name = name
        self.priority = priority
        self.timeout_ms = timeout_ms
        self._latency = latency
        self._offers = {Category(k): list(v) for k, v in offers.items()}
        self.supported_categories = frozenset(self._offers)
        self._normalizer = ResultNormalizer(code, name, clock=clock)

    @classmethod
    def from_file(cls, path: str | Path) -> list[StaticAdapter]:
        """Load every provider declared in a fixture file."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        adapters = [
            cls(
                entry["code"],
                entry.get("name", entry["code"]),
                entry.get("offers", {}),
                priority=entry.get("priority", 50),
                timeout_ms=entry.get("timeout_ms", 8000),
                latency=entry.get("latency_ms", 0) / 1000,
            )
            for entry in data.get("providers", [])
        ]
        logger.info("Loaded %d static providers from %s", len(adapters), path)
        return adapters

    # ------------------------------------------------------------------
    # ProviderAdapter interface
    # ------------------------------------------------------------------

    async def search_flights(
        self, params: FlightSearchParams, context: AdapterContext
    ) -> AdapterOutcome:
        return await self._serve(
            Category.FLIGHTS,
            context,
            params.max_results,
            lambda r: r.origin == params.origin
            and r.destination == params.destination
            and r.departure_at.date() == params.departure_date,
        )

    async def search_hotels(
        self, params: HotelSearchParams, context: AdapterContext
    ) -> AdapterOutcome:
        return await self._serve(
            Category.HOTELS,
            context,
            params.max_results,
            lambda r: _same_place(r.city, params.city, params.destination),
        )

    async def search_cars(
        self, params: CarSearchParams, context: AdapterContext
    ) -> AdapterOutcome:
        return await self._serve(
            Category.CARS,
            context,
            params.max_results,
            lambda r: r.pickup_location.upper() == params.pickup_location.upper(),
        )

    async def search_experiences(
        self, params: ExperienceSearchParams, context: AdapterContext
    ) -> AdapterOutcome:
        return await self._serve(
            Category.EXPERIENCES,
            context,
            params.max_results,
            lambda r: _same_place(r.city, params.city, params.destination),
        )

    async def health_check(self) -> HealthCheckResult:
        return HealthCheckResult(
            provider_code=self.code,
            healthy=True,
            response_time_ms=int(self._latency * 1000),
            checked_at=datetime.now(tz=UTC),
        )

    # ------------------------------------------------------------------

    async def _serve(
        self,
        category: Category,
        context: AdapterContext,
        limit: int,
        predicate: Callable[[Any], bool],
    ) -> AdapterOutcome:
        if self._latency:
            await asyncio.sleep(self._latency)
        results: list[UnifiedResult] = [
            r
            for r in self._normalizer.normalize_many(
                category, self._offers.get(category, []), currency=context.currency
            )
            if predicate(r)
        ]
        return AdapterSuccess(
            results=results[:limit],
            total_count=len(results),
            has_more=len(results) > limit,
        )


def _same_place(result_city: str | None, city: str, code: str) -> bool:
    if result_city is None:
        return True
    return result_city.casefold() in (city.casefold(), code.casefold())
