"""Fakes and factory fixtures for the API service tests."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest
import redis.asyncio as redis
from sqlalchemy.exc import OperationalError

from tripscan_api.cache.session_store import InMemorySessionStore
from tripscan_api.execution import ExecutionPlanner, PlanExecutor
from tripscan_api.services.destination_service import (
    DestinationService,
    LocationEntry,
)
from tripscan_api.services.personalization_service import QueryEnricher
from tripscan_api.services.query_service import QueryNormalizer
from tripscan_api.services.search_service import SearchEngine
from tripscan_api.services.session_service import SessionManager
from tripscan_core.errors import ResolutionError
from tripscan_core.schemas import (
    AdapterFailure,
    AdapterSuccess,
    Category,
    HealthCheckResult,
    LocationType,
)
from tripscan_ml.ranking import RankingEngine
from tripscan_providers.base import ProviderAdapter
from tripscan_providers.registry import AdapterRegistry

START = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class FakeAdapter(ProviderAdapter):
    """Adapter answering from canned results with optional latency or faults."""

    def __init__(
        self,
        code: str,
        results: dict[Category, list] | None = None,
        *,
        priority: int = 50,
        timeout_ms: int = 8000,
        delay: float = 0.0,
        failure: AdapterFailure | None = None,
        error: Exception | None = None,
    ) -> None:
        self.code = code
        self.name = code.title()
        self.priority = priority
        self.timeout_ms = timeout_ms
        self.results = results or {}
        self.supported_categories = frozenset(self.results)
        self.delay = delay
        self.failure = failure
        self.error = error
        self.calls: list[tuple[Category, object]] = []

    async def _answer(self, category, params):
        self.calls.append((category, params))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.failure is not None:
            return self.failure
        results = self.results[category]
        return AdapterSuccess(results=results, total_count=len(results))

    async def search_flights(self, params, context):
        return await self._answer(Category.FLIGHTS, params)

    async def search_hotels(self, params, context):
        return await self._answer(Category.HOTELS, params)

    async def search_cars(self, params, context):
        return await self._answer(Category.CARS, params)

    async def search_experiences(self, params, context):
        return await self._answer(Category.EXPERIENCES, params)

    async def health_check(self) -> HealthCheckResult:
        return HealthCheckResult(
            provider_code=self.code,
            healthy=self.error is None,
            checked_at=START,
        )


@pytest.fixture
def make_adapter():
    """Factory fixture for FakeAdapter instances."""
    return FakeAdapter


# ---------------------------------------------------------------------------
# Locations and user context
# ---------------------------------------------------------------------------


LOCATIONS = [
    LocationEntry(
        code="PAR",
        name="Paris",
        country_code="FR",
        country_name="France",
        latitude=48.8566,
        longitude=2.3522,
        tagline="City of light",
        best_months=[5, 6, 9],
        good_for=["museums", "food"],
        popularity_score=95,
    ),
    LocationEntry(
        code="LON", name="London", country_code="GB", popularity_score=90
    ),
    LocationEntry(
        code="JFK",
        name="New York JFK",
        type=LocationType.AIRPORT,
        country_code="US",
        popularity_score=85,
    ),
    LocationEntry(
        code="LAX",
        name="Los Angeles",
        type=LocationType.AIRPORT,
        country_code="US",
        popularity_score=70,
    ),
    LocationEntry(code="SPJ", name="Sparta", country_code="GR", popularity_score=50),
    LocationEntry(code="PMF", name="Parma", country_code="IT", popularity_score=40),
]


class FakeDirectory:
    """In-memory ``LocationDirectory`` in popularity order."""

    def __init__(self, entries=LOCATIONS, *, broken: bool = False) -> None:
        self.entries = sorted(entries, key=lambda e: -e.popularity_score)
        self.broken = broken

    def _check(self) -> None:
        if self.broken:
            msg = "directory offline"
            raise ResolutionError(msg)

    async def find_by_code(self, code):
        self._check()
        return next((e for e in self.entries if e.code == code.upper()), None)

    async def search(self, term, limit):
        self._check()
        lowered = term.lower()
        return [
            e
            for e in self.entries
            if lowered in e.name.lower() or e.code.startswith(term.upper())
        ][:limit]

    async def top(self, limit):
        self._check()
        return self.entries[:limit]


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def make_directory():
    return FakeDirectory


@dataclass
class FakePreferenceStore:
    """``PreferenceStore`` with canned data; ``broken`` simulates a DB outage."""

    prefs: dict = field(default_factory=dict)
    past: list = field(default_factory=list)
    recorded: list = field(default_factory=list)
    broken: bool = False

    def _check(self) -> None:
        if self.broken:
            raise OperationalError("SELECT 1", {}, Exception("db down"))

    async def preferences(self, user_id):
        self._check()
        return self.prefs.get(user_id)

    async def history(self, user_id, limit):
        self._check()
        return self.past[:limit]

    async def record_search(self, user_id, query, count):
        self._check()
        self.recorded.append((user_id, query.destination_location.code, count))


@pytest.fixture
def make_preference_store():
    return FakePreferenceStore


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


class FakeRedis:
    """The slice of ``redis.asyncio.Redis`` used by the cache and stores."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.locked: list[str] = []
        self.broken = False

    def _check(self) -> None:
        if self.broken:
            msg = "connection refused"
            raise redis.ConnectionError(msg)

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        self.ttls[key] = ex

    async def delete(self, key):
        self._check()
        self.data.pop(key, None)

    async def exists(self, key):
        self._check()
        return int(key in self.data)

    def lock(self, name, timeout=None, blocking_timeout=None):
        @asynccontextmanager
        async def _held():
            self.locked.append(name)
            yield

        return _held()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@dataclass
class Harness:
    engine: SearchEngine
    registry: AdapterRegistry
    sessions: SessionManager
    store: InMemorySessionStore
    clock: FakeClock


@pytest.fixture
def make_engine(clock, directory):
    """Factory fixture wiring a SearchEngine over fake adapters."""

    def _make(
        *adapters: FakeAdapter,
        preference_store: FakePreferenceStore | None = None,
        total_timeout_ms: int = 2000,
        min_results_required: int = 1,
        fast_min_results: int = 10,
    ) -> Harness:
        registry = AdapterRegistry(adapters)
        store = InMemorySessionStore()
        sessions = SessionManager(
            store, ttl_seconds=1800, freshness_seconds=300, clock=clock
        )
        destinations = DestinationService(directory)
        engine = SearchEngine(
            registry=registry,
            normalizer=QueryNormalizer(clock=clock),
            enricher=QueryEnricher(destinations, preference_store),
            planner=ExecutionPlanner(
                registry,
                total_timeout_ms=total_timeout_ms,
                phase_timeout_ms=total_timeout_ms,
                min_results_required=min_results_required,
                fast_min_results=fast_min_results,
            ),
            executor=PlanExecutor(registry),
            sessions=sessions,
            destinations=destinations,
            ranking=RankingEngine(provider_priorities=registry.priorities()),
            preference_store=preference_store,
        )
        return Harness(engine, registry, sessions, store, clock)

    return _make
