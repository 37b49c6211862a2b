"""Unified, provider-agnostic result schemas.

Every offer returned by any provider is normalized into one of four result
models sharing a common envelope (id, provider stamp, price, ranking and
alternatives).  :data:`UnifiedResult` is the tagged union over them.
"""

from __future__ import annotations

from datetime import date, datetime  # noqa: TC003
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, computed_field

from .enums import CabinClass, Category, TripType
from .location import Coordinates  # noqa: TC001


class Price(BaseModel):
    """Normalized total price of an offer."""

    model_config = ConfigDict(frozen=True)

    amount: float = Field(ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    base: float | None = None
    taxes: float | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def formatted(self) -> str:
        return f"{self.currency} {self.amount:,.2f}"


class ProviderStamp(BaseModel):
    """Which provider produced an offer, and when."""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    retrieved_at: datetime


class RankingInfo(BaseModel):
    """Score block attached by the ranking engine."""

    model_config = ConfigDict(frozen=True)

    score: float
    rank: int
    price_score: float
    quality_score: float
    relevance_score: float
    personalization_score: float
    freshness_score: float


class AlternativeOffer(BaseModel):
    """Another provider's offer for the same itinerary, stay or rental."""

    model_config = ConfigDict(frozen=True)

    id: str
    provider: ProviderStamp
    price: Price
    price_delta: float
    similarity: float = Field(ge=0, le=1)
    deep_link: str | None = None


class _ResultBase(BaseModel):
    id: str
    provider_offer_id: str
    provider: ProviderStamp
    price: Price
    deep_link: str | None = None
    ranking: RankingInfo | None = None
    alternatives: list[AlternativeOffer] = Field(default_factory=list)

    # Generic accessors used by ranking, sorting and filtering.  Each result
    # type overrides the ones that make sense for it.

    @property
    def duration_minutes(self) -> int | None:
        return None

    @property
    def rating(self) -> float | None:
        """Quality rating on a 0-5 scale."""
        return None

    @property
    def review_count(self) -> int:
        return 0

    @property
    def distance_km(self) -> float | None:
        return None

    @property
    def starts_at(self) -> datetime | None:
        return None


class FlightSegment(BaseModel):
    """One flown leg."""

    model_config = ConfigDict(frozen=True)

    marketing_carrier: str
    carrier_name: str | None = None
    operating_carrier: str | None = None
    flight_number: str
    origin: str
    destination: str
    departure_at: datetime
    arrival_at: datetime
    duration_minutes: int = Field(ge=0)
    cabin_class: CabinClass = CabinClass.ECONOMY
    booking_class: str | None = None


class FlightSlice(BaseModel):
    """One direction of travel, made of one or more segments."""

    model_config = ConfigDict(frozen=True)

    origin: str
    destination: str
    departure_at: datetime
    arrival_at: datetime
    duration_minutes: int = Field(ge=0)
    segments: tuple[FlightSegment, ...] = Field(min_length=1)

    @property
    def stops(self) -> int:
        return len(self.segments) - 1


class FlightResult(_ResultBase):
    """Flight itinerary offer."""

    type: Literal["flight"] = "flight"
    trip_type: TripType = TripType.ONE_WAY
    slices: tuple[FlightSlice, ...] = Field(min_length=1)
    cabin_class: CabinClass = CabinClass.ECONOMY
    fare_brand: str | None = None
    is_refundable: bool = False
    is_changeable: bool = False
    checked_bags_included: int = 0
    seats_remaining: int | None = None

    @property
    def category(self) -> Category:
        return Category.FLIGHTS

    @property
    def outbound(self) -> FlightSlice:
        return self.slices[0]

    @property
    def origin(self) -> str:
        return self.outbound.origin

    @property
    def destination(self) -> str:
        return self.outbound.destination

    @property
    def departure_at(self) -> datetime:
        return self.outbound.departure_at

    @property
    def marketing_carrier(self) -> str:
        return self.outbound.segments[0].marketing_carrier

    @property
    def carriers(self) -> list[str]:
        seen: dict[str, None] = {}
        for slc in self.slices:
            for seg in slc.segments:
                seen.setdefault(seg.marketing_carrier, None)
        return list(seen)

    @property
    def flight_numbers(self) -> tuple[str, ...]:
        return tuple(
            seg.flight_number.replace(" ", "").upper()
            for slc in self.slices
            for seg in slc.segments
        )

    @property
    def booking_class(self) -> str | None:
        return self.outbound.segments[0].booking_class

    @property
    def total_stops(self) -> int:
        return sum(slc.stops for slc in self.slices)

    @property
    def max_stops(self) -> int:
        return max(slc.stops for slc in self.slices)

    @property
    def duration_minutes(self) -> int | None:
        return sum(slc.duration_minutes for slc in self.slices)

    @property
    def starts_at(self) -> datetime | None:
        return self.departure_at


class HotelResult(_ResultBase):
    """Lodging offer (cheapest room of a property)."""

    type: Literal["hotel"] = "hotel"
    name: str
    property_type: str = "hotel"
    star_rating: float | None = Field(default=None, ge=0, le=5)
    chain_code: str | None = None
    brand: str | None = None
    address: str | None = None
    city: str | None = None
    coordinates: Coordinates | None = None
    distance_from_center_km: float | None = Field(default=None, ge=0)
    guest_rating: float | None = Field(default=None, ge=0, le=10)
    guest_review_count: int = 0
    amenities: list[str] = Field(default_factory=list)
    room_name: str | None = None
    board_type: str | None = None
    free_cancellation: bool = False
    check_in: date
    check_out: date

    @property
    def category(self) -> Category:
        return Category.HOTELS

    @property
    def nights(self) -> int:
        return max((self.check_out - self.check_in).days, 1)

    @property
    def rating(self) -> float | None:
        if self.guest_rating is None:
            return None
        return self.guest_rating / 2

    @property
    def review_count(self) -> int:
        return self.guest_review_count

    @property
    def distance_km(self) -> float | None:
        return self.distance_from_center_km


class CarResult(_ResultBase):
    """Car rental offer."""

    type: Literal["car"] = "car"
    rental_company: str
    vehicle_name: str
    vehicle_type: str
    transmission: Literal["automatic", "manual"] = "automatic"
    seats: int = Field(default=5, ge=1)
    pickup_location: str
    dropoff_location: str
    pickup_at: datetime
    dropoff_at: datetime
    supplier_rating: float | None = Field(default=None, ge=0, le=5)
    supplier_review_count: int = 0
    unlimited_mileage: bool = False
    free_cancellation: bool = False

    @property
    def category(self) -> Category:
        return Category.CARS

    @property
    def rental_days(self) -> int:
        seconds = (self.dropoff_at - self.pickup_at).total_seconds()
        return max(int(-(-seconds // 86400)), 1)

    @property
    def rating(self) -> float | None:
        return self.supplier_rating

    @property
    def review_count(self) -> int:
        return self.supplier_review_count

    @property
    def starts_at(self) -> datetime | None:
        return self.pickup_at


class ExperienceResult(_ResultBase):
    """Tour, activity or attraction ticket."""

    type: Literal["experience"] = "experience"
    title: str
    category_name: str = "tour"
    city: str | None = None
    coordinates: Coordinates | None = None
    duration: int | None = Field(default=None, ge=0, description="Minutes")
    experience_rating: float | None = Field(default=None, ge=0, le=5)
    experience_review_count: int = 0
    booking_count: int = 0
    languages: list[str] = Field(default_factory=list)
    free_cancellation: bool = False
    is_bestseller: bool = False
    available_dates: list[date] = Field(default_factory=list)

    @property
    def category(self) -> Category:
        return Category.EXPERIENCES

    @property
    def duration_minutes(self) -> int | None:
        return self.duration

    @property
    def rating(self) -> float | None:
        return self.experience_rating

    @property
    def review_count(self) -> int:
        return self.experience_review_count


UnifiedResult = Annotated[
    FlightResult | HotelResult | CarResult | ExperienceResult,
    Field(discriminator="type"),
]

unified_results_adapter: TypeAdapter[list[UnifiedResult]] = TypeAdapter(
    list[UnifiedResult]
)
