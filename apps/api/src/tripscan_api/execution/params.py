"""Category search parameters derived from an enriched query."""

from __future__ import annotations

from datetime import UTC, datetime, time, timedelta
from typing import TYPE_CHECKING

from tripscan_core.schemas import (
    CarSearchParams,
    Category,
    ExperienceSearchParams,
    FlightSearchParams,
    HotelSearchParams,
    TripType,
)

if TYPE_CHECKING:
    from datetime import date

    from tripscan_core.schemas import EnrichedQuery, SearchParams

# Rental desks open at 10:00 local; pickup and return default to that hour.
CAR_HANDOVER = time(10, 0)


def build_params(category: Category, query: EnrichedQuery) -> SearchParams:
    """Adapter parameters for ``category``; raises ValueError if impossible."""
    dates = query.dates
    if dates is None:
        msg = "Query has no dates"
        raise ValueError(msg)
    start = dates.start_date
    end = dates.end_date
    destination = query.destination_location
    limit = query.options.limit

    match category:
        case Category.FLIGHTS:
            if query.origin_location is None:
                msg = "Flight searches need an origin"
                raise ValueError(msg)
            return FlightSearchParams(
                origin=query.origin_location.code,
                destination=destination.code,
                departure_date=start,
                return_date=end if query.trip_type is TripType.ROUND_TRIP else None,
                trip_type=query.trip_type,
                cabin_class=query.cabin_class,
                travelers=query.travelers,
                flexible_days=dates.flex_days if dates.flexible else 0,
                max_results=limit,
            )
        case Category.HOTELS:
            return HotelSearchParams(
                destination=destination.code,
                city=destination.name,
                coordinates=destination.coordinates,
                check_in=start,
                check_out=_after(start, end),
                travelers=query.travelers,
                rooms=query.rooms,
                max_results=limit,
            )
        case Category.CARS:
            return CarSearchParams(
                pickup_location=destination.code,
                dropoff_location=destination.code,
                pickup_at=datetime.combine(start, CAR_HANDOVER, tzinfo=UTC),
                dropoff_at=datetime.combine(
                    _after(start, end), CAR_HANDOVER, tzinfo=UTC
                ),
                max_results=limit,
            )
        case Category.EXPERIENCES:
            return ExperienceSearchParams(
                destination=destination.code,
                city=destination.name,
                coordinates=destination.coordinates,
                start_date=start,
                end_date=end or start,
                travelers=query.travelers,
                max_results=limit,
            )
    msg = f"Unknown category {category}"
    raise ValueError(msg)


def _after(start: date, end: date | None) -> date:
    """End of a stay or rental; at least one day after ``start``."""
    if end is None or end <= start:
        return start + timedelta(days=1)
    return end
