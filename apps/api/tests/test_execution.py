"""Tests for adapter parameters, execution planning and the plan executor."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from tripscan_api.execution import ExecutionPlanner, PlanExecutor
from tripscan_api.execution.params import build_params
from tripscan_core.schemas import (
    AdapterContext,
    AdapterFailure,
    Category,
    ExecutionPhase,
    ExecutionPlan,
    ExecutionStrategy,
    FailureKind,
    SearchMode,
)
from tripscan_providers.registry import AdapterRegistry

ALL = (Category.FLIGHTS, Category.HOTELS, Category.CARS, Category.EXPERIENCES)


@pytest.fixture
def context() -> AdapterContext:
    return AdapterContext(request_id="req-1")


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


def test_params_per_category(make_query):
    query = make_query()

    flights = build_params(Category.FLIGHTS, query)
    hotels = build_params(Category.HOTELS, query)
    cars = build_params(Category.CARS, query)
    experiences = build_params(Category.EXPERIENCES, query)

    assert (flights.origin, flights.destination) == ("LON", "PAR")
    assert flights.return_date is None
    assert (hotels.check_in, hotels.check_out) == (date(2026, 4, 10), date(2026, 4, 14))
    assert hotels.city == "Paris"
    assert cars.pickup_at == datetime(2026, 4, 10, 10, 0, tzinfo=UTC)
    assert cars.dropoff_location == "PAR"
    assert experiences.end_date == date(2026, 4, 14)


def test_open_ended_dates_get_a_one_day_window(make_query):
    query = make_query(end=None)

    assert build_params(Category.HOTELS, query).check_out == date(2026, 4, 11)
    assert build_params(Category.CARS, query).dropoff_at.date() == date(2026, 4, 11)
    assert build_params(Category.EXPERIENCES, query).end_date == date(2026, 4, 10)


def test_flight_params_need_an_origin(make_query):
    with pytest.raises(ValueError, match="origin"):
        build_params(Category.FLIGHTS, make_query(origin=None))


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------


@pytest.fixture
def registry(make_adapter) -> AdapterRegistry:
    return AdapterRegistry(
        [
            make_adapter("alpha", {Category.FLIGHTS: [], Category.HOTELS: []}),
            make_adapter("beta", {Category.HOTELS: []}, priority=80),
            make_adapter("gamma", {Category.EXPERIENCES: []}),
        ]
    )


def test_balanced_plan_runs_everything_in_one_stage(registry, make_query):
    plan = ExecutionPlanner(registry).plan(make_query())

    assert plan.strategy is ExecutionStrategy.PARALLEL
    assert plan.categories == [Category.FLIGHTS, Category.HOTELS]
    assert [p.stage for p in plan.phases] == [0, 0]
    assert all(p.wait_for_all for p in plan.phases)
    assert plan.phases[1].providers == ("beta", "alpha")
    assert plan.phases[0].timeout_ms == 10000


def test_package_plan_is_sequential(registry, make_query):
    plan = ExecutionPlanner(registry).plan(
        make_query(mode=SearchMode.PACKAGE, categories=ALL)
    )

    assert plan.strategy is ExecutionStrategy.SEQUENTIAL
    # No provider serves cars, so that category is dropped from the plan.
    assert plan.categories == [
        Category.FLIGHTS,
        Category.HOTELS,
        Category.EXPERIENCES,
    ]
    assert [p.stage for p in plan.phases] == [0, 1, 2]
    assert len(plan.stages) == 3


def test_fast_plan_is_hybrid_across_categories(registry, make_query):
    planner = ExecutionPlanner(registry, fast_min_results=5)
    hybrid = planner.plan(make_query(strategy="fast"))
    single = planner.plan(make_query(strategy="fast", categories=(Category.HOTELS,)))

    assert hybrid.strategy is ExecutionStrategy.HYBRID
    primary, secondary = hybrid.phases
    assert (primary.wait_for_all, primary.min_results) == (True, 0)
    assert (secondary.wait_for_all, secondary.min_results) == (False, 5)
    assert single.strategy is ExecutionStrategy.PARALLEL
    assert single.phases[0].wait_for_all is False


def test_comprehensive_plan_uses_the_whole_budget(registry, make_query):
    planner = ExecutionPlanner(registry, total_timeout_ms=15000)
    plan = planner.plan(make_query(strategy="comprehensive"))
    assert {p.timeout_ms for p in plan.phases} == {15000}


def test_flights_without_origin_are_skipped(registry, make_query):
    plan = ExecutionPlanner(registry).plan(make_query(origin=None))
    assert plan.categories == [Category.HOTELS]


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


@pytest.mark.timeout(10)
async def test_slow_provider_times_out_without_blocking_others(
    make_adapter, make_flight, make_query, context
):
    fast = make_adapter("alpha", {Category.FLIGHTS: [make_flight("AA1", 300.0)]})
    slow = make_adapter(
        "slow", {Category.FLIGHTS: [make_flight("SL1", 200.0)]}, timeout_ms=50, delay=1
    )
    broken = make_adapter(
        "broken", {Category.FLIGHTS: []}, error=RuntimeError("upstream exploded")
    )
    limited = make_adapter(
        "limited",
        {Category.FLIGHTS: []},
        failure=AdapterFailure(kind=FailureKind.RATE_LIMITED, message="429"),
    )
    registry = AdapterRegistry([fast, slow, broken, limited])
    query = make_query(categories=(Category.FLIGHTS,))
    plan = ExecutionPlanner(registry).plan(query)

    results = await PlanExecutor(registry).execute(plan, query, context)
    by_code = {r.provider_code: r for r in results}

    assert [r.provider_code for r in results] == list(plan.phases[0].providers)
    assert by_code["alpha"].success
    assert by_code["alpha"].total_count == 1
    assert by_code["slow"].failure_kind is FailureKind.TIMEOUT
    assert by_code["slow"].response_time_ms < 1000
    assert by_code["broken"].failure_kind is FailureKind.ERROR
    assert by_code["broken"].error == "upstream exploded"
    assert by_code["limited"].failure_kind is FailureKind.RATE_LIMITED
    assert by_code["limited"].error == "429"


@pytest.mark.timeout(10)
async def test_hybrid_phase_abandons_stragglers(
    make_adapter, make_flight, make_hotel, make_query, context
):
    flights = make_adapter("air", {Category.FLIGHTS: [make_flight("F1", 300.0)]})
    quick = make_adapter(
        "quick",
        {Category.HOTELS: [make_hotel("H1", 100.0), make_hotel("H2", 120.0)]},
    )
    sluggish = make_adapter("sluggish", {Category.HOTELS: []}, delay=1)
    registry = AdapterRegistry([flights, quick, sluggish])
    query = make_query(strategy="fast")
    plan = ExecutionPlanner(registry, fast_min_results=2).plan(query)

    results = await PlanExecutor(registry).execute(plan, query, context)
    by_code = {r.provider_code: r for r in results}

    assert by_code["air"].success
    assert by_code["quick"].success
    assert by_code["sluggish"].failure_kind is FailureKind.ABANDONED
    assert by_code["sluggish"].error == "Abandoned after enough results arrived"


@pytest.mark.timeout(10)
async def test_sequential_stages_share_one_deadline(
    make_adapter, make_flight, make_hotel, make_query, context
):
    flights = make_adapter(
        "air", {Category.FLIGHTS: [make_flight("F1", 300.0)]}, delay=0.3
    )
    hotels = make_adapter("inn", {Category.HOTELS: [make_hotel("H1", 90.0)]}, delay=0.3)
    registry = AdapterRegistry([flights, hotels])
    query = make_query(mode=SearchMode.PACKAGE)
    plan = ExecutionPlanner(registry, total_timeout_ms=100).plan(query)

    results = await PlanExecutor(registry).execute(plan, query, context)

    assert [r.category for r in results] == [Category.FLIGHTS, Category.HOTELS]
    assert all(r.failure_kind is FailureKind.TIMEOUT for r in results)


async def test_unbuildable_parameters_skip_the_provider(
    make_adapter, make_query, context
):
    adapter = make_adapter("air", {Category.FLIGHTS: []})
    registry = AdapterRegistry([adapter])
    plan = ExecutionPlan(
        phases=(
            ExecutionPhase(
                stage=0,
                category=Category.FLIGHTS,
                providers=("air",),
                timeout_ms=1000,
            ),
        ),
        total_timeout_ms=1000,
    )

    results = await PlanExecutor(registry).execute(
        plan, make_query(origin=None), context
    )

    assert results[0].failure_kind is FailureKind.INVALID_REQUEST
    assert adapter.calls == []


async def test_results_of_another_category_are_a_bad_response(
    make_adapter, make_flight, make_hotel, make_query, context
):
    good = make_adapter("alpha", {Category.FLIGHTS: [make_flight("AA1", 300.0)]})
    rogue = make_adapter(
        "rogue", {Category.FLIGHTS: [make_hotel("H1", 90.0, provider="rogue")]}
    )
    registry = AdapterRegistry([good, rogue])
    query = make_query(categories=(Category.FLIGHTS,))
    plan = ExecutionPlanner(registry).plan(query)

    results = await PlanExecutor(registry).execute(plan, query, context)
    by_code = {r.provider_code: r for r in results}

    assert by_code["alpha"].success
    assert by_code["rogue"].failure_kind is FailureKind.BAD_RESPONSE
    assert by_code["rogue"].results == []
    assert by_code["rogue"].error == "Returned hotels results for a flights search"
