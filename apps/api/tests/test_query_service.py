"""Tests for request normalization, location resolution and enrichment."""

from __future__ import annotations

from datetime import date

import pytest

from tripscan_api.schemas.search import SearchRequest
from tripscan_api.services.destination_service import DestinationService
from tripscan_api.services.personalization_service import QueryEnricher
from tripscan_api.services.query_service import QueryNormalizer, determine_categories
from tripscan_core.errors import ResolutionError, ValidationError
from tripscan_core.schemas import (
    BudgetLevel,
    Category,
    DateType,
    IntentKind,
    LocationQuery,
    SearchHistoryItem,
    SearchMode,
    TripType,
    UserPreferences,
)


def _request(**body) -> SearchRequest:
    body.setdefault("destination", {"query": "Paris"})
    return SearchRequest.model_validate(body)


@pytest.fixture
def normalizer(clock) -> QueryNormalizer:
    return QueryNormalizer(default_page_size=20, max_page_size=100, clock=clock)


# ---------------------------------------------------------------------------
# Query normalizer
# ---------------------------------------------------------------------------


def test_categories_per_mode():
    assert determine_categories(SearchMode.UNIFIED, has_origin=True) == (
        Category.FLIGHTS,
        Category.HOTELS,
        Category.EXPERIENCES,
    )
    assert determine_categories(SearchMode.UNIFIED, has_origin=False) == (
        Category.HOTELS,
        Category.EXPERIENCES,
    )
    assert determine_categories(SearchMode.CAR, has_origin=True) == (Category.CARS,)
    assert len(determine_categories(SearchMode.PACKAGE, has_origin=True)) == 4


def test_normalize_fills_defaults(normalizer, clock):
    parsed = normalizer.normalize(_request())

    assert parsed.mode is SearchMode.UNIFIED
    assert parsed.categories == (Category.HOTELS, Category.EXPERIENCES)
    assert parsed.dates.start_date == date(2026, 3, 16)
    assert parsed.dates.flexible is True
    assert parsed.dates.type is DateType.FLEXIBLE
    assert parsed.travelers.adults == 1
    assert parsed.page == 1
    assert parsed.page_size == 20
    assert parsed.trip_type is TripType.ONE_WAY
    assert parsed.search_time == clock.now


def test_normalize_reads_camel_case_input(normalizer):
    parsed = normalizer.normalize(
        _request(
            mode="flight",
            origin={"code": "jfk"},
            dates={"startDate": "2026-04-10", "endDate": "2026-04-17"},
            travelers={"adults": 2, "children": 1, "childrenAges": [7]},
            cabinClass="business",
            options={"currency": "eur", "limit": 10},
            pageSize=5,
        )
    )
    assert parsed.categories == (Category.FLIGHTS,)
    assert parsed.origin.code == "JFK"
    assert parsed.trip_type is TripType.ROUND_TRIP
    assert parsed.dates.nights == 7
    assert parsed.travelers.total == 3
    assert parsed.options.currency == "EUR"
    assert parsed.page_size == 5


def test_oversized_pages_are_capped(normalizer):
    assert normalizer.normalize(_request(pageSize=500)).page_size == 100


@pytest.mark.parametrize(
    ("body", "field"),
    [
        ({"destination": {"query": "   "}}, "destination"),
        ({"mode": "flight"}, "origin"),
        ({"dates": {"startDate": "2026-04-10", "endDate": "2026-04-01"}}, None),
        ({"dates": {"startDate": "next tuesday"}}, "dates.startDate"),
        ({"tripType": "round_trip", "dates": {"startDate": "2026-04-10"}}, None),
        ({"travelers": {"adults": 0}}, "travelers.adults"),
        ({"page": 0}, "page"),
        ({"pageSize": 0}, "pageSize"),
    ],
)
def test_invalid_requests_are_rejected(normalizer, body, field):
    with pytest.raises(ValidationError) as excinfo:
        normalizer.normalize(_request(**body))
    if field is not None:
        assert excinfo.value.details["field"] == field


def test_model_level_errors_are_listed(normalizer):
    with pytest.raises(ValidationError) as excinfo:
        normalizer.normalize(_request(travelers={"adults": 1, "infants": 2}))
    assert excinfo.value.details["errors"]


# ---------------------------------------------------------------------------
# Destination resolver
# ---------------------------------------------------------------------------


async def test_resolve_by_code_and_by_name(directory):
    service = DestinationService(directory)

    by_code = await service.resolve(LocationQuery(code="par"))
    by_name = await service.resolve(LocationQuery(query="paris"))

    assert by_code.code == by_name.code == "PAR"
    assert by_name.is_fallback is False
    assert by_name.full_name == "Paris, FR"
    assert by_name.coordinates.latitude == pytest.approx(48.8566)


async def test_unknown_places_fall_back(directory, make_directory):
    atlantis = LocationQuery(query="Atlantis")

    fallback = await DestinationService(directory).resolve(atlantis)
    offline = await DestinationService(make_directory(broken=True)).resolve(atlantis)

    for location in (fallback, offline):
        assert location.is_fallback is True
        assert location.code == "ATL"
        assert location.country_code == "XX"
        assert location.name == "Atlantis"


async def test_unusable_input_is_a_resolution_error(directory):
    with pytest.raises(ResolutionError):
        await DestinationService(directory).resolve(LocationQuery(query="!!!"))


async def test_autocomplete_orders_code_then_prefix(directory):
    service = DestinationService(directory)
    entries = await service.autocomplete("par", limit=5)

    assert [e.code for e in entries] == ["PAR", "PMF", "SPJ"]
    assert await service.autocomplete("p") == []
    assert [e.code for e in await service.autocomplete("par", limit=1)] == ["PAR"]


async def test_trending_and_outages(directory, make_directory):
    assert [e.code for e in await DestinationService(directory).trending(2)] == [
        "PAR",
        "LON",
    ]
    broken = DestinationService(make_directory(broken=True))
    assert await broken.trending() == []
    assert await broken.autocomplete("paris") == []
    assert await broken.insight("PAR") is None


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


async def test_enrich_resolves_and_loads_user_context(
    normalizer, directory, make_preference_store, clock
):
    store = make_preference_store(
        prefs={"u1": UserPreferences(budget_level=BudgetLevel.LUXURY)},
        past=[SearchHistoryItem(destination_code="PAR", searched_at=clock.now)],
    )
    enricher = QueryEnricher(DestinationService(directory), store)
    parsed = normalizer.normalize(_request(origin={"query": "London"}, userId="u1"))

    query = await enricher.enrich(parsed)

    assert query.destination_location.code == "PAR"
    assert query.origin_location.code == "LON"
    assert query.preferences.budget_level is BudgetLevel.LUXURY
    assert query.destination_insight.best_months == (5, 6, 9)
    assert query.currency == "USD"
    assert "repeat_search" in {s.name for s in query.intent.signals}


async def test_enrich_survives_a_preference_outage(
    normalizer, directory, make_preference_store
):
    enricher = QueryEnricher(
        DestinationService(directory), make_preference_store(broken=True)
    )
    parsed = normalizer.normalize(
        _request(
            mode="hotel",
            userId="u1",
            dates={"startDate": "2026-09-01", "flexible": True},
        )
    )

    query = await enricher.enrich(parsed)

    assert query.preferences is None
    assert query.history == ()
    assert query.intent.primary is IntentKind.EXPLORE
