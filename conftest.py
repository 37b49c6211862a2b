"""Shared fixtures and result factories for every test suite."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from tripscan_core.ids import offer_id
from tripscan_core.schemas import (
    CabinClass,
    CarResult,
    Category,
    Coordinates,
    DateQuery,
    DateType,
    EnrichedQuery,
    ExperienceResult,
    FlightResult,
    FlightSegment,
    FlightSlice,
    HotelResult,
    LocationQuery,
    Price,
    ProviderStamp,
    ResolvedLocation,
    SearchMode,
    TravelerCount,
)

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
TRIP_START = date(2026, 4, 10)
TRIP_END = date(2026, 4, 14)


@pytest.fixture
def now() -> datetime:
    """Fixed 'current' time used by clocks and provider stamps."""
    return NOW


def _stamp(provider: str, retrieved_at: datetime | None) -> ProviderStamp:
    return ProviderStamp(
        code=provider, name=provider.title(), retrieved_at=retrieved_at or NOW
    )


@pytest.fixture
def make_flight():
    """Factory fixture for one-way FlightResult instances."""

    def _make(
        offer: str,
        price: float,
        *,
        provider: str = "alpha",
        flight_numbers: tuple[str, ...] = ("BA117",),
        origin: str = "LHR",
        destination: str = "JFK",
        departure: datetime | None = None,
        duration: int = 480,
        cabin: CabinClass = CabinClass.ECONOMY,
        refundable: bool = False,
        retrieved_at: datetime | None = None,
    ) -> FlightResult:
        departure = departure or datetime(2026, 4, 10, 8, 30, tzinfo=UTC)
        segments = []
        leg_start = departure
        leg_minutes = duration // len(flight_numbers)
        stops = [origin, *(f"X{i}X" for i in range(len(flight_numbers) - 1))]
        stops.append(destination)
        for i, number in enumerate(flight_numbers):
            leg_end = leg_start + timedelta(minutes=leg_minutes)
            segments.append(
                FlightSegment(
                    marketing_carrier=number[:2],
                    flight_number=number,
                    origin=stops[i],
                    destination=stops[i + 1],
                    departure_at=leg_start,
                    arrival_at=leg_end,
                    duration_minutes=leg_minutes,
                    cabin_class=cabin,
                )
            )
            leg_start = leg_end
        return FlightResult(
            id=offer_id(provider, offer),
            provider_offer_id=offer,
            provider=_stamp(provider, retrieved_at),
            price=Price(amount=price),
            slices=(
                FlightSlice(
                    origin=origin,
                    destination=destination,
                    departure_at=departure,
                    arrival_at=departure + timedelta(minutes=duration),
                    duration_minutes=duration,
                    segments=tuple(segments),
                ),
            ),
            cabin_class=cabin,
            is_refundable=refundable,
        )

    return _make


@pytest.fixture
def make_hotel():
    """Factory fixture for HotelResult instances."""

    def _make(
        offer: str,
        price: float,
        *,
        provider: str = "alpha",
        name: str = "Grand Plaza Hotel",
        city: str = "Paris",
        coordinates: tuple[float, float] | None = (48.8566, 2.3522),
        stars: float | None = 4,
        guest_rating: float | None = 8.6,
        reviews: int = 320,
        amenities: list[str] | None = None,
        distance_km: float | None = 1.2,
        free_cancellation: bool = False,
        check_in: date = TRIP_START,
        check_out: date = TRIP_END,
        retrieved_at: datetime | None = None,
    ) -> HotelResult:
        return HotelResult(
            id=offer_id(provider, offer),
            provider_offer_id=offer,
            provider=_stamp(provider, retrieved_at),
            price=Price(amount=price),
            name=name,
            city=city,
            coordinates=(
                Coordinates(latitude=coordinates[0], longitude=coordinates[1])
                if coordinates
                else None
            ),
            star_rating=stars,
            guest_rating=guest_rating,
            guest_review_count=reviews,
            amenities=amenities if amenities is not None else ["wifi"],
            distance_from_center_km=distance_km,
            free_cancellation=free_cancellation,
            check_in=check_in,
            check_out=check_out,
        )

    return _make


@pytest.fixture
def make_car():
    """Factory fixture for CarResult instances."""

    def _make(
        offer: str,
        price: float,
        *,
        provider: str = "alpha",
        company: str = "Hertz",
        vehicle: str = "Toyota Corolla",
        vehicle_type: str = "compact",
        pickup: str = "CDG",
        transmission: str = "automatic",
        rating: float | None = 4.2,
    ) -> CarResult:
        pickup_at = datetime(2026, 4, 10, 10, 0, tzinfo=UTC)
        return CarResult(
            id=offer_id(provider, offer),
            provider_offer_id=offer,
            provider=_stamp(provider, None),
            price=Price(amount=price),
            rental_company=company,
            vehicle_name=vehicle,
            vehicle_type=vehicle_type,
            transmission=transmission,
            pickup_location=pickup,
            dropoff_location=pickup,
            pickup_at=pickup_at,
            dropoff_at=pickup_at + timedelta(days=4),
            supplier_rating=rating,
        )

    return _make


@pytest.fixture
def make_experience():
    """Factory fixture for ExperienceResult instances."""

    def _make(
        offer: str,
        price: float,
        *,
        provider: str = "alpha",
        title: str = "Louvre Museum Skip-the-Line Tour",
        category_name: str = "museum",
        city: str = "Paris",
        duration: int | None = 180,
        rating: float | None = 4.7,
        reviews: int = 1500,
        bookings: int = 0,
    ) -> ExperienceResult:
        return ExperienceResult(
            id=offer_id(provider, offer),
            provider_offer_id=offer,
            provider=_stamp(provider, None),
            price=Price(amount=price),
            title=title,
            category_name=category_name,
            city=city,
            duration=duration,
            experience_rating=rating,
            experience_review_count=reviews,
            booking_count=bookings,
        )

    return _make


@pytest.fixture
def make_query():
    """Factory fixture for EnrichedQuery instances (Paris, from London)."""

    def _make(
        *,
        mode: SearchMode = SearchMode.PLAN,
        categories: tuple[Category, ...] = (Category.FLIGHTS, Category.HOTELS),
        origin: str | None = "LON",
        start: date = TRIP_START,
        end: date | None = TRIP_END,
        flexible: bool = False,
        adults: int = 1,
        filters: dict | None = None,
        strategy: str = "balanced",
        search_time: datetime = NOW,
        **overrides,
    ) -> EnrichedQuery:
        origin_location = None
        if origin is not None:
            origin_location = ResolvedLocation(
                code=origin, name="London", country_code="GB"
            )
        return EnrichedQuery(
            mode=mode,
            categories=categories,
            destination=LocationQuery(query="Paris"),
            origin=LocationQuery(code=origin) if origin else None,
            dates=DateQuery(
                start_date=start,
                end_date=end,
                flexible=flexible,
                type=DateType.FLEXIBLE if flexible else DateType.EXACT,
            ),
            travelers=TravelerCount(adults=adults),
            filters=filters or {},
            options={"strategy": strategy},
            search_time=search_time,
            destination_location=ResolvedLocation(
                code="PAR",
                name="Paris",
                country_code="FR",
                coordinates=Coordinates(latitude=48.8566, longitude=2.3522),
            ),
            origin_location=origin_location,
            **overrides,
        )

    return _make
