"""Tests for the HTTP gateway adapter, using httpx.MockTransport."""

from __future__ import annotations

import json
from datetime import date

import httpx
import pytest

from tripscan_core.schemas import (
    AdapterFailure,
    AdapterSuccess,
    Category,
    FailureKind,
    FlightSearchParams,
    HotelSearchParams,
)
from tripscan_providers.config import GatewayConfig
from tripscan_providers.gateway.adapter import GatewayAdapter

FLIGHT_PARAMS = FlightSearchParams(
    origin="LHR", destination="JFK", departure_date=date(2026, 4, 10)
)
HOTEL_PARAMS = HotelSearchParams(
    destination="PAR",
    city="Paris",
    check_in=date(2026, 4, 10),
    check_out=date(2026, 4, 14),
)


def _adapter(handler, *, max_retries: int = 0, **config) -> GatewayAdapter:
    gateway = GatewayConfig(
        code=config.pop("code", "skyapi"),
        name="Sky API",
        base_url="https://gateway.example",
        api_key=config.pop("api_key", "secret"),
        categories=config.pop("categories", [Category.FLIGHTS, Category.HOTELS]),
        **config,
    )
    return GatewayAdapter(
        gateway,
        max_retries=max_retries,
        retry_base_delay=0,
        retry_max_delay=0,
        transport=httpx.MockTransport(handler),
    )


async def test_search_normalizes_offers(context, flight_payload):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "data": [flight_payload("G1", 410.0), flight_payload("G2", 380.0)],
                "meta": {"total": 7, "hasMore": True},
            },
        )

    adapter = _adapter(handler)
    try:
        outcome = await adapter.search(Category.FLIGHTS, FLIGHT_PARAMS, context)
    finally:
        await adapter.close()

    assert isinstance(outcome, AdapterSuccess)
    assert outcome.total_count == 7
    assert outcome.has_more is True
    assert [r.provider_offer_id for r in outcome.results] == ["G1", "G2"]
    assert all(r.provider.code == "skyapi" for r in outcome.results)
    # Context currency fills in prices that do not declare one.
    assert outcome.results[0].price.currency == "EUR"

    request = seen[0]
    assert request.url.path == "/flights/search"
    assert request.headers["Authorization"] == "Bearer secret"
    body = json.loads(request.content)
    assert body["params"]["origin"] == "LHR"
    assert body["requestId"] == "req-1"


async def test_malformed_offers_are_skipped(context, hotel_payload):
    def handler(request: httpx.Request) -> httpx.Response:
        broken = {"id": "H2", "price": {"amount": -5}, "name": "Broken"}
        return httpx.Response(200, json={"data": [hotel_payload("H1", 900), broken]})

    adapter = _adapter(handler)
    outcome = await adapter.search(Category.HOTELS, HOTEL_PARAMS, context)
    await adapter.close()

    assert isinstance(outcome, AdapterSuccess)
    assert [r.provider_offer_id for r in outcome.results] == ["H1"]
    assert outcome.results[0].price.currency == "EUR"


@pytest.mark.parametrize(
    ("status", "kind"),
    [
        (429, FailureKind.RATE_LIMITED),
        (503, FailureKind.UNAVAILABLE),
        (400, FailureKind.INVALID_REQUEST),
        (408, FailureKind.TIMEOUT),
    ],
)
async def test_http_errors_become_failures(context, status, kind):
    adapter = _adapter(lambda request: httpx.Response(status, json={}))
    outcome = await adapter.search(Category.FLIGHTS, FLIGHT_PARAMS, context)
    await adapter.close()

    assert isinstance(outcome, AdapterFailure)
    assert outcome.kind is kind
    assert outcome.status_code == status


async def test_transport_errors_become_failures(context):
    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    cases = ((timeout, FailureKind.TIMEOUT), (refused, FailureKind.UNAVAILABLE))
    for handler, kind in cases:
        adapter = _adapter(handler)
        outcome = await adapter.search(Category.FLIGHTS, FLIGHT_PARAMS, context)
        await adapter.close()
        assert isinstance(outcome, AdapterFailure)
        assert outcome.kind is kind
        assert outcome.retryable is True


async def test_unusable_payload_is_a_bad_response(context):
    adapter = _adapter(lambda request: httpx.Response(200, json={"offers": []}))
    outcome = await adapter.search(Category.FLIGHTS, FLIGHT_PARAMS, context)
    await adapter.close()

    assert isinstance(outcome, AdapterFailure)
    assert outcome.kind is FailureKind.BAD_RESPONSE


async def test_transient_errors_are_retried(context, flight_payload):
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            return httpx.Response(502)
        return httpx.Response(200, json={"data": [flight_payload("G1", 300.0)]})

    adapter = _adapter(handler, max_retries=2)
    outcome = await adapter.search(Category.FLIGHTS, FLIGHT_PARAMS, context)
    await adapter.close()

    assert calls == 2
    assert isinstance(outcome, AdapterSuccess)
    assert outcome.total_count == 1


async def test_health_check_reports_status():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/health"
        return httpx.Response(503)

    adapter = _adapter(handler)
    result = await adapter.health_check()
    await adapter.close()

    assert result.provider_code == "skyapi"
    assert result.healthy is False
    assert result.error
