"""End-to-end tests of the search engine over fake providers."""

from __future__ import annotations

import pytest

from tripscan_api.schemas.search import SearchRequest
from tripscan_core.errors import SessionNotFoundError, ValidationError
from tripscan_core.schemas import (
    AdapterFailure,
    Category,
    FailureKind,
    SearchStatus,
)


def _request(**body) -> SearchRequest:
    return SearchRequest.model_validate(body)


def _flight_search(**extra) -> SearchRequest:
    return _request(
        mode="flight",
        origin={"code": "JFK"},
        destination={"code": "LAX"},
        dates={"startDate": "2026-04-10"},
        travelers={"adults": 2},
        **extra,
    )


@pytest.fixture
def flight_providers(make_adapter, make_flight):
    """alpha sells AA1-AA5, beta resells AA1 cheaper, gamma sells one-stop DL."""
    alpha = make_adapter(
        "alpha",
        {
            Category.FLIGHTS: [
                make_flight(f"AA{i}", 300.0 + 5 * i, flight_numbers=(f"AA{i}",))
                for i in range(1, 6)
            ]
        },
        priority=60,
    )
    beta = make_adapter(
        "beta",
        {
            Category.FLIGHTS: [
                make_flight("B-UA1", 410.0, provider="beta", flight_numbers=("UA1",)),
                make_flight("B-UA2", 290.0, provider="beta", flight_numbers=("UA2",)),
                make_flight("B-AA1", 299.0, provider="beta", flight_numbers=("AA1",)),
            ]
        },
    )
    gamma = make_adapter(
        "gamma",
        {
            Category.FLIGHTS: [
                make_flight(
                    f"DL{i}",
                    250.0 + 10 * i,
                    provider="gamma",
                    flight_numbers=(f"DL{i}", f"DL{i}0"),
                )
                for i in range(1, 5)
            ]
        },
    )
    return alpha, beta, gamma


def _by_offer(payload) -> dict[str, dict]:
    return {item["providerOfferId"]: item for item in payload.items}


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


async def test_search_merges_cross_provider_duplicates(make_engine, flight_providers):
    harness = make_engine(*flight_providers)

    data = await harness.engine.search(_flight_search())

    assert data.status is SearchStatus.COMPLETED
    payload = data.results[Category.FLIGHTS]
    assert payload.total_count == 11
    assert payload.page_info.total_pages == 1
    items = _by_offer(payload)
    assert "AA1" not in items
    merged = items["B-AA1"]
    assert merged["provider"]["code"] == "beta"
    assert [a["provider"]["code"] for a in merged["alternatives"]] == ["alpha"]
    assert merged["alternatives"][0]["priceDelta"] == pytest.approx(6.0)
    assert [i["ranking"]["rank"] for i in payload.items] == list(range(1, 12))
    assert {p.code for p in payload.providers} == {"alpha", "beta", "gamma"}
    assert data.warnings == []
    assert data.query["destinationLocation"]["code"] == "LAX"
    assert data.query["travelers"]["adults"] == 2
    assert data.meta.result_sources.live == 12
    assert {p["category"] for p in data.meta.providers} == {"flights"}


async def test_search_stores_the_session(make_engine, flight_providers):
    harness = make_engine(*flight_providers)

    data = await harness.engine.search(_flight_search())
    session = await harness.sessions.get(data.session_token)

    assert session.status is SearchStatus.COMPLETED
    assert len(session.categories[Category.FLIGHTS].groups) == 1
    assert session.price_history[0].min_price == 260.0
    assert Category.FLIGHTS in data.price_insights


async def test_continue_applies_filters_without_new_provider_calls(
    make_engine, flight_providers
):
    harness = make_engine(*flight_providers)
    alpha = flight_providers[0]
    first = await harness.engine.search(_flight_search())

    data = await harness.engine.continue_search(
        _request(
            action="continue",
            sessionToken=first.session_token,
            filters={"stops": ["0"]},
        )
    )

    payload = data.results[Category.FLIGHTS]
    assert payload.total_count == 7
    assert all(not key.startswith("DL") for key in _by_offer(payload))
    assert payload.filter_stats == {
        "totalBefore": 11,
        "totalAfter": 7,
        "removedCount": 4,
    }
    assert payload.applied_filters == {"stops": ["0"]}
    assert data.session_token == first.session_token
    assert len(alpha.calls) == 1


async def test_stale_results_are_refreshed_on_continue(make_engine, flight_providers):
    harness = make_engine(*flight_providers)
    alpha = flight_providers[0]
    first = await harness.engine.search(_flight_search())

    harness.clock.advance(seconds=301)
    await harness.engine.continue_search(
        _request(action="continue", sessionToken=first.session_token)
    )

    assert len(alpha.calls) == 2


async def test_failed_refresh_keeps_the_stored_results(make_engine, flight_providers):
    alpha = flight_providers[0]
    harness = make_engine(alpha)
    first = await harness.engine.search(_flight_search())

    alpha.failure = AdapterFailure(kind=FailureKind.UNAVAILABLE, message="down")
    harness.clock.advance(seconds=301)
    data = await harness.engine.continue_search(
        _request(action="continue", sessionToken=first.session_token)
    )

    assert len(alpha.calls) == 2
    assert data.results[Category.FLIGHTS].total_count == 5
    assert data.status is SearchStatus.COMPLETED
    assert "alpha (flights): unavailable: down" in data.warnings


async def test_continue_after_expiry(make_engine, flight_providers):
    harness = make_engine(*flight_providers)
    first = await harness.engine.search(_flight_search())

    harness.clock.advance(seconds=1801)

    with pytest.raises(SessionNotFoundError):
        await harness.engine.continue_search(
            _request(action="continue", sessionToken=first.session_token)
        )


async def test_continue_needs_a_token(make_engine, flight_providers):
    harness = make_engine(*flight_providers)
    with pytest.raises(ValidationError):
        await harness.engine.continue_search(_request(action="continue"))


@pytest.mark.timeout(10)
async def test_slow_provider_makes_the_search_partial(
    make_engine, make_adapter, make_flight, flight_providers
):
    alpha, beta, _ = flight_providers
    slow = make_adapter(
        "slow",
        {Category.FLIGHTS: [make_flight("S1", 100.0, provider="slow")]},
        timeout_ms=50,
        delay=1,
    )
    harness = make_engine(alpha, beta, slow)

    data = await harness.engine.search(_flight_search())

    assert data.status is SearchStatus.PARTIAL
    assert data.results[Category.FLIGHTS].total_count == 7
    assert data.warnings[0] == "1 of 3 provider calls failed"
    assert any(w.startswith("slow (flights): timeout") for w in data.warnings)
    slow_info = next(p for p in data.meta.providers if p["code"] == "slow")
    assert slow_info["success"] is False
    assert slow_info["resultCount"] == 0


async def test_provider_answering_another_category_is_isolated(
    make_engine, make_adapter, make_hotel, flight_providers
):
    rogue = make_adapter(
        "rogue", {Category.FLIGHTS: [make_hotel("H1", 90.0, provider="rogue")]}
    )
    harness = make_engine(flight_providers[0], rogue)

    data = await harness.engine.search(_flight_search())

    assert data.status is SearchStatus.PARTIAL
    assert data.results[Category.FLIGHTS].total_count == 5
    assert any(w.startswith("rogue (flights): bad_response") for w in data.warnings)


async def test_pipeline_error_marks_the_session_failed(
    make_engine, flight_providers, monkeypatch
):
    harness = make_engine(*flight_providers)

    def broken(results, query):
        raise RuntimeError("ranking exploded")

    monkeypatch.setattr(harness.engine._ranking, "rank", broken)

    with pytest.raises(RuntimeError, match="ranking exploded"):
        await harness.engine.search(_flight_search())

    (token,) = harness.store._records
    session = await harness.sessions.get(token)
    assert session.status is SearchStatus.FAILED
    assert session.warnings == ["Search failed unexpectedly"]


async def test_malformed_filters_are_rejected_before_searching(
    make_engine, flight_providers
):
    harness = make_engine(*flight_providers)

    with pytest.raises(ValidationError):
        await harness.engine.search(_flight_search(filters={"price": {"max": "lots"}}))

    assert all(adapter.calls == [] for adapter in flight_providers)
    assert len(harness.store) == 0


async def test_no_results_is_still_completed(make_engine, make_adapter):
    harness = make_engine(make_adapter("alpha", {Category.FLIGHTS: []}))

    data = await harness.engine.search(_flight_search())

    assert data.status is SearchStatus.COMPLETED
    assert data.results[Category.FLIGHTS].total_count == 0
    assert [s["type"] for s in data.suggestions][0] == "broaden_search"


async def test_every_provider_failing_fails_the_search(make_engine, make_adapter):
    harness = make_engine(
        make_adapter("alpha", {Category.FLIGHTS: []}, error=RuntimeError("down")),
        make_adapter("beta", {Category.FLIGHTS: []}, error=RuntimeError("down")),
    )

    data = await harness.engine.search(_flight_search())

    assert data.status is SearchStatus.FAILED
    assert len(data.warnings) == 2


async def test_no_capable_providers(make_engine, make_adapter, make_hotel):
    harness = make_engine(make_adapter("inn", {Category.HOTELS: [make_hotel("H", 1)]}))

    data = await harness.engine.search(_flight_search())

    assert data.status is SearchStatus.FAILED
    assert data.results == {}
    assert data.warnings == ["No providers available for the requested categories"]


async def test_unknown_destination_falls_back(make_engine, make_adapter, make_hotel):
    inn = make_adapter("inn", {Category.HOTELS: [make_hotel("H1", 120.0)]})
    harness = make_engine(inn)

    data = await harness.engine.search(
        _request(mode="hotel", destination={"query": "Atlantis"})
    )

    assert data.meta.fallback_locations == ["Atlantis"]
    assert data.destination_info is None
    assert inn.calls[0][1].destination == "ATL"


async def test_destination_info_is_included(make_engine, make_adapter, make_hotel):
    harness = make_engine(
        make_adapter("inn", {Category.HOTELS: [make_hotel("H1", 120.0)]})
    )

    data = await harness.engine.search(
        _request(mode="hotel", destination={"query": "Paris"})
    )

    assert data.destination_info["code"] == "PAR"
    assert data.destination_info["bestMonths"] == [5, 6, 9]
    assert data.filters[Category.HOTELS]
    assert data.sorts[Category.HOTELS][0]["id"] == "recommended"


async def test_search_history_is_recorded(
    make_engine, make_preference_store, flight_providers
):
    store = make_preference_store()
    harness = make_engine(*flight_providers, preference_store=store)

    await harness.engine.search(_flight_search(userId="u1"))
    await harness.engine.search(_flight_search())

    assert store.recorded == [("u1", "LAX", 11)]


async def test_preference_outage_does_not_fail_the_search(
    make_engine, make_preference_store, flight_providers
):
    harness = make_engine(
        *flight_providers, preference_store=make_preference_store(broken=True)
    )

    data = await harness.engine.search(_flight_search(userId="u1"))

    assert data.status is SearchStatus.COMPLETED


async def test_invalid_request_contacts_no_provider(make_engine, flight_providers):
    harness = make_engine(*flight_providers)

    request = _request(mode="flight", destination={"code": "LAX"})

    with pytest.raises(ValidationError):
        await harness.engine.search(request)

    assert all(adapter.calls == [] for adapter in flight_providers)
    assert len(harness.store) == 0


# ---------------------------------------------------------------------------
# Destinations
# ---------------------------------------------------------------------------


async def test_autocomplete_and_trending(make_engine):
    engine = make_engine().engine

    suggestions = await engine.autocomplete("par", 2)
    trending = await engine.trending(3)

    assert [d.code for d in suggestions] == ["PAR", "PMF"]
    assert suggestions[0].full_name == "Paris, FR"
    assert [d.code for d in trending] == ["PAR", "LON", "JFK"]
    assert await engine.autocomplete(None) == []
