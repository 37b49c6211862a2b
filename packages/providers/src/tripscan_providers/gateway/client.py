"""HTTP client for JSON search gateways."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from tripscan_providers.retry import async_retry

if TYPE_CHECKING:
    from tripscan_core.schemas import Category

logger = logging.getLogger(__name__)


class GatewayClient:
    """Thin async wrapper around ``POST /{category}/search`` and ``GET /health``."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str = "",
        timeout: float = 8.0,
        max_retries: int = 2,
        retry_base_delay: float = 0.25,
        retry_max_delay: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        # Retry on transient HTTP / connection errors
        self._post = async_retry(
            max_retries=max_retries,
            base_delay=retry_base_delay,
            max_delay=retry_max_delay,
        )(self._post_once)

    async def _post_once(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        resp = await self._client.post(path, json=body)
        resp.raise_for_status()
        data: dict[str, Any] = resp.json()
        return data

    async def search(
        self, category: Category, body: dict[str, Any]
    ) -> dict[str, Any]:
        """Call ``POST /{category}/search`` and return the parsed JSON body."""
        data = await self._post(f"/{category.value}/search", body)
        logger.debug(
            "Gateway %s search returned %d offers",
            category,
            len(data.get("data", [])),
        )
        return data

    async def health(self) -> bool:
        resp = await self._client.get("/health")
        return resp.status_code == 200

    async def close(self) -> None:
        """Shut down the underlying HTTPX client."""
        await self._client.aclose()
