"""Provider health router."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from tripscan_api.dependencies import get_registry
from tripscan_api.schemas.common import ApiResponse
from tripscan_core.schemas import HealthCheckResult
from tripscan_providers.config import settings as provider_settings
from tripscan_providers.registry import AdapterRegistry

router = APIRouter(prefix="/providers", tags=["providers"])

RegistryDep = Annotated[AdapterRegistry, Depends(get_registry)]


@router.get("/health", response_model=ApiResponse[list[HealthCheckResult]])
async def provider_health(
    registry: RegistryDep,
) -> ApiResponse[list[HealthCheckResult]]:
    """Health-check every registered provider."""
    results = await registry.health_check_all(provider_settings.health_check_timeout)
    return ApiResponse[list[HealthCheckResult]](data=results)
