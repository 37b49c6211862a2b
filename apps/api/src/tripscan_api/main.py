"""FastAPI application factory."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from tripscan_api.config import ApiSettings, settings

# Propagate DB URL so tripscan_db.database picks it up via os.getenv.
os.environ.setdefault("DATABASE_URL", settings.database_url)

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tripscan_api.cache.redis_client import close_redis, init_redis
from tripscan_api.cache.session_store import (
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
)
from tripscan_api.execution import ExecutionPlanner, PlanExecutor
from tripscan_api.routers import providers, search
from tripscan_api.schemas.common import ApiError, ApiResponse
from tripscan_api.services.destination_service import (
    DestinationService,
    SqlLocationDirectory,
)
from tripscan_api.services.personalization_service import (
    QueryEnricher,
    SqlPreferenceStore,
)
from tripscan_api.services.query_service import QueryNormalizer
from tripscan_api.services.search_service import SearchEngine
from tripscan_api.services.session_service import SessionManager
from tripscan_core.errors import (
    ResolutionError,
    SessionNotFoundError,
    TripScanError,
    ValidationError,
)
from tripscan_core.schemas import Category
from tripscan_db.database import dispose_engine, get_session_factory, init_engine
from tripscan_ml.ranking import WEIGHT_PROFILES, RankingEngine
from tripscan_providers.config import settings as provider_settings
from tripscan_providers.pipeline.dedup import DedupConfig
from tripscan_providers.registry import build_registry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from tripscan_api.services.destination_service import LocationDirectory
    from tripscan_api.services.personalization_service import PreferenceStore
    from tripscan_providers.registry import AdapterRegistry

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[TripScanError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ResolutionError, status.HTTP_400_BAD_REQUEST),
    (SessionNotFoundError, status.HTTP_404_NOT_FOUND),
)


def build_engine(
    config: ApiSettings,
    registry: AdapterRegistry,
    store: SessionStore,
    directory: LocationDirectory,
    preference_store: PreferenceStore | None = None,
) -> SearchEngine:
    """Wire every pipeline stage into a :class:`SearchEngine`."""
    destinations = DestinationService(directory)
    priorities = registry.priorities()
    return SearchEngine(
        registry=registry,
        normalizer=QueryNormalizer(
            default_page_size=config.default_page_size,
            max_page_size=config.max_page_size,
        ),
        enricher=QueryEnricher(destinations, preference_store),
        planner=ExecutionPlanner(
            registry,
            total_timeout_ms=config.search_timeout_ms,
            phase_timeout_ms=config.phase_timeout_ms,
            min_results_required=config.min_results_required,
            fast_min_results=config.fast_min_results,
        ),
        executor=PlanExecutor(registry),
        sessions=SessionManager(
            store,
            ttl_seconds=config.session_ttl,
            freshness_seconds=config.results_freshness,
            max_page_size=config.max_page_size,
        ),
        destinations=destinations,
        ranking=RankingEngine(
            WEIGHT_PROFILES[config.ranking_profile.upper()],
            provider_priorities=priorities,
            freshness_window_seconds=config.results_freshness,
        ),
        dedup_config=DedupConfig(
            thresholds={
                Category.FLIGHTS: config.dedup_flight_threshold,
                Category.HOTELS: config.dedup_hotel_threshold,
                Category.CARS: config.dedup_car_threshold,
                Category.EXPERIENCES: config.dedup_experience_threshold,
            }
        ),
        preference_store=preference_store,
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage startup / shutdown resources."""
    store: SessionStore
    if settings.session_store == "redis":
        client = await init_redis(settings.redis_url)
        store = RedisSessionStore(client, lock_timeout=settings.session_lock_timeout)
    else:
        store = InMemorySessionStore()

    init_engine(settings.database_url)
    session_factory = get_session_factory()
    registry = build_registry(provider_settings)
    logger.info("Registered providers: %s", ", ".join(registry.codes) or "-")

    app.state.registry = registry
    app.state.engine = build_engine(
        settings,
        registry,
        store,
        SqlLocationDirectory(
            session_factory,
            cache_ttl=settings.location_cache_ttl,
            trending_ttl=settings.trending_cache_ttl,
        ),
        SqlPreferenceStore(session_factory),
    )
    yield
    await registry.close()
    await dispose_engine()
    await close_redis()


def _error_response(status_code: int, error: ApiError) -> JSONResponse:
    body = ApiResponse[None](success=False, error=error)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))


async def _domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, TripScanError)
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code >= 500:
        logger.error("Search failed: %s", exc.message, exc_info=exc)
    info = exc.to_info()
    return _error_response(
        status_code,
        ApiError(code=info.code, message=info.message, details=info.details),
    )


async def _request_validation_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    errors = [
        {
            "field": ".".join(str(p) for p in err["loc"] if p != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        ApiError(
            code=ValidationError.code,
            message="Invalid request",
            details={"errors": errors},
        ),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ApiError(code="INTERNAL_ERROR", message="Internal server error"),
    )


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    app = FastAPI(
        title="TripScan API",
        version="0.1.0",
        lifespan=_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TripScanError, _domain_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    # Routers
    _prefix = "/api/v1"
    app.include_router(search.router, prefix=_prefix)
    app.include_router(providers.router, prefix=_prefix)

    return app


app = create_app()
