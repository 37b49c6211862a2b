"""Shared fixtures for provider adapter tests."""

from __future__ import annotations

import pytest

from tripscan_core.schemas import AdapterContext


@pytest.fixture
def context() -> AdapterContext:
    return AdapterContext(request_id="req-1", currency="EUR", timeout_ms=2000)


@pytest.fixture
def flight_payload():
    """Factory fixture for gateway-format flight offers (LHR-JFK)."""

    def _make(offer: str, amount: float, number: str = "BA117") -> dict:
        return {
            "offer_id": offer,
            "price": {"amount": amount},
            "deep_link": f"https://book.example/{offer}",
            "slices": [
                {
                    "origin": "LHR",
                    "destination": "JFK",
                    "departure_at": "2026-04-10T08:30:00Z",
                    "arrival_at": "2026-04-10T16:30:00Z",
                    "duration_minutes": 480,
                    "segments": [
                        {
                            "marketing_carrier": number[:2],
                            "flight_number": number,
                            "origin": "LHR",
                            "destination": "JFK",
                            "departure_at": "2026-04-10T08:30:00Z",
                            "arrival_at": "2026-04-10T16:30:00Z",
                            "duration_minutes": 480,
                        }
                    ],
                }
            ],
        }

    return _make


@pytest.fixture
def hotel_payload():
    """Factory fixture for gateway-format hotel offers (Paris)."""

    def _make(offer: str, amount: float, name: str = "Hotel Lutetia") -> dict:
        return {
            "id": offer,
            "price": {"amount": amount, "currency": "EUR"},
            "name": name,
            "city": "Paris",
            "star_rating": 5,
            "guest_rating": 9.1,
            "check_in": "2026-04-10",
            "check_out": "2026-04-14",
        }

    return _make
