"""Adapter for providers reachable through a JSON search gateway."""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx

from tripscan_core.schemas import (
    AdapterFailure,
    AdapterSuccess,
    Category,
    FailureKind,
    HealthCheckResult,
)
from tripscan_providers.base import ProviderAdapter
from tripscan_providers.normalizer import NormalizationError, ResultNormalizer
from tripscan_providers.retry import RETRYABLE_STATUSES

from .client import GatewayClient
from .response_parser import parse_gateway_response

if TYPE_CHECKING:
    from tripscan_core.schemas import (
        AdapterContext,
        AdapterOutcome,
        CarSearchParams,
        ExperienceSearchParams,
        FlightSearchParams,
        HotelSearchParams,
        SearchParams,
    )
    from tripscan_providers.config import GatewayConfig

logger = logging.getLogger(__name__)


class GatewayAdapter(ProviderAdapter):
    """Provider that speaks the unified offer format over HTTP."""

    def __init__(
        self,
        config: GatewayConfig,
        *,
        default_timeout_ms: int = 8000,
        max_retries: int = 2,
        retry_base_delay: float = 0.25,
        retry_max_delay: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.code = config.code
        self.name = config.name
        self.priority = config.priority
        self.timeout_ms = config.timeout_ms or default_timeout_ms
        self.supported_categories = frozenset(config.categories)
        self._normalizer = ResultNormalizer(self.code, self.name)
        self._client = GatewayClient(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=self.timeout_ms / 1000,
            max_retries=max_retries,
            retry_base_delay=retry_base_delay,
            retry_max_delay=retry_max_delay,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # ProviderAdapter interface
    # ------------------------------------------------------------------

    async def search_flights(
        self, params: FlightSearchParams, context: AdapterContext
    ) -> AdapterOutcome:
        return await self._search(Category.FLIGHTS, params, context)

    async def search_hotels(
        self, params: HotelSearchParams, context: AdapterContext
    ) -> AdapterOutcome:
        return await self._search(Category.HOTELS, params, context)

    async def search_cars(
        self, params: CarSearchParams, context: AdapterContext
    ) -> AdapterOutcome:
        return await self._search(Category.CARS, params, context)

    async def search_experiences(
        self, params: ExperienceSearchParams, context: AdapterContext
    ) -> AdapterOutcome:
        return await self._search(Category.EXPERIENCES, params, context)

    async def health_check(self) -> HealthCheckResult:
        """Report whether ``GET /health`` answers 200."""
        start = time.monotonic()
        error: str | None = None
        try:
            healthy = await self._client.health()
            if not healthy:
                error = "health endpoint returned non-200"
        except httpx.HTTPError as exc:
            healthy = False
            error = str(exc) or type(exc).__name__
        return HealthCheckResult(
            provider_code=self.code,
            healthy=healthy,
            response_time_ms=int((time.monotonic() - start) * 1000),
            error=error,
            checked_at=datetime.now(tz=UTC),
        )

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        await self._client.close()

    # ------------------------------------------------------------------

    async def _search(
        self, category: Category, params: SearchParams, context: AdapterContext
    ) -> AdapterOutcome:
        body = {
            "params": params.model_dump(mode="json"),
            "currency": context.currency,
            "language": context.language,
            "requestId": context.request_id,
        }
        try:
            raw = await self._client.search(category, body)
            results, total, has_more = parse_gateway_response(
                raw, category, self._normalizer, currency=context.currency
            )
        except httpx.TimeoutException as exc:
            return AdapterFailure(
                kind=FailureKind.TIMEOUT,
                message=f"{self.code} timed out: {type(exc).__name__}",
                retryable=True,
            )
        except httpx.HTTPStatusError as exc:
            return _status_failure(self.code, exc.response.status_code)
        except httpx.TransportError as exc:
            return AdapterFailure(
                kind=FailureKind.UNAVAILABLE,
                message=f"{self.code} unreachable: {exc}",
                retryable=True,
            )
        except (NormalizationError, ValueError) as exc:
            logger.warning("%s returned an unusable payload: %s", self.code, exc)
            return AdapterFailure(
                kind=FailureKind.BAD_RESPONSE,
                message=f"{self.code} returned an invalid response",
            )
        return AdapterSuccess(results=results, total_count=total, has_more=has_more)


def _status_failure(code: str, status: int) -> AdapterFailure:
    if status == 429:
        kind = FailureKind.RATE_LIMITED
    elif status == 408:
        kind = FailureKind.TIMEOUT
    elif status >= 500:
        kind = FailureKind.UNAVAILABLE
    else:
        kind = FailureKind.INVALID_REQUEST
    return AdapterFailure(
        kind=kind,
        message=f"{code} responded with HTTP {status}",
        retryable=status in RETRYABLE_STATUSES,
        status_code=status,
    )
