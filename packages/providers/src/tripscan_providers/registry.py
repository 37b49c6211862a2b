"""Startup-built, read-only registry of provider adapters."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime
from types import MappingProxyType
from typing import TYPE_CHECKING

from tripscan_core.schemas import Category, HealthCheckResult
from tripscan_providers.gateway.adapter import GatewayAdapter
from tripscan_providers.static.adapter import StaticAdapter

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tripscan_providers.base import ProviderAdapter
    from tripscan_providers.config import ProviderSettings

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Adapters keyed by provider code, looked up by category.

    Populated once from the constructor and never mutated afterwards, so it
    can be shared across concurrent searches without locking.
    """

    def __init__(self, adapters: Iterable[ProviderAdapter]) -> None:
        by_code: dict[str, ProviderAdapter] = {}
        for adapter in adapters:
            if adapter.code in by_code:
                msg = f"Duplicate provider code: {adapter.code}"
                raise ValueError(msg)
            missing = adapter.supported_categories - adapter.implemented_categories()
            if missing:
                msg = (
                    f"{adapter.code} declares {sorted(missing)} "
                    "without implementing them"
                )
                raise TypeError(msg)
            by_code[adapter.code] = adapter
        self._adapters = MappingProxyType(by_code)
        self._by_category = MappingProxyType(
            {
                category: tuple(
                    sorted(
                        (a for a in by_code.values() if a.supports(category)),
                        key=lambda a: (-a.priority, a.code),
                    )
                )
                for category in Category
            }
        )
        logger.info(
            "Adapter registry built with %d providers: %s",
            len(by_code),
            ", ".join(sorted(by_code)),
        )

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, code: object) -> bool:
        return code in self._adapters

    @property
    def codes(self) -> list[str]:
        return sorted(self._adapters)

    def get(self, code: str) -> ProviderAdapter:
        return self._adapters[code]

    def for_category(self, category: Category) -> tuple[ProviderAdapter, ...]:
        """Adapters supporting ``category``, highest priority first."""
        return self._by_category[category]

    def priorities(self) -> dict[str, int]:
        return {code: adapter.priority for code, adapter in self._adapters.items()}

    async def health_check_all(self, timeout: float = 5.0) -> list[HealthCheckResult]:
        """Check every adapter concurrently; a hung check reports unhealthy."""

        async def _check(adapter: ProviderAdapter) -> HealthCheckResult:
            start = time.monotonic()
            try:
                async with asyncio.timeout(timeout):
                    return await adapter.health_check()
            except TimeoutError:
                error = f"health check exceeded {timeout:.1f}s"
            except Exception as exc:
                logger.exception("Health check failed for %s", adapter.code)
                error = str(exc)
            return HealthCheckResult(
                provider_code=adapter.code,
                healthy=False,
                response_time_ms=int((time.monotonic() - start) * 1000),
                error=error,
                checked_at=datetime.now(tz=UTC),
            )

        adapters = [self._adapters[code] for code in self.codes]
        return list(await asyncio.gather(*(_check(a) for a in adapters)))

    async def close(self) -> None:
        for adapter in self._adapters.values():
            try:
                await adapter.close()
            except Exception:
                logger.exception("Failed to close adapter %s", adapter.code)


def build_registry(settings: ProviderSettings) -> AdapterRegistry:
    """Create adapters from configuration."""
    adapters: list[ProviderAdapter] = [
        GatewayAdapter(
            gateway,
            default_timeout_ms=settings.default_timeout_ms,
            max_retries=settings.max_retries,
            retry_base_delay=settings.retry_base_delay,
            retry_max_delay=settings.retry_max_delay,
        )
        for gateway in settings.gateways
        if gateway.enabled
    ]
    if settings.static_fixture_path:
        adapters.extend(StaticAdapter.from_file(settings.static_fixture_path))
    if not adapters:
        logger.warning("No providers configured; every search will fail")
    return AdapterRegistry(adapters)
