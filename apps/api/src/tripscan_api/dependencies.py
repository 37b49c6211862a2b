"""FastAPI dependency injection providers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request

if TYPE_CHECKING:
    from tripscan_providers.registry import AdapterRegistry

    from tripscan_api.services.search_service import SearchEngine


def get_engine(request: Request) -> SearchEngine:
    """Return the search engine built during application startup."""
    return request.app.state.engine


def get_registry(request: Request) -> AdapterRegistry:
    """Return the provider registry built during application startup."""
    return request.app.state.registry
