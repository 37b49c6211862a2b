"""Query normalizer - raw request to validated ``ParsedQuery``."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

import pydantic

from tripscan_core.errors import ValidationError
from tripscan_core.schemas import (
    CabinClass,
    Category,
    DateQuery,
    DateType,
    LocationQuery,
    ParsedQuery,
    SearchMode,
    SearchOptions,
    SortOption,
    TravelerCount,
    TripType,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from tripscan_api.schemas.search import (
        DatesInput,
        LocationInput,
        SearchRequest,
        TravelersInput,
    )

logger = logging.getLogger(__name__)

# Lead time used when the client sends no dates at all.
DEFAULT_LEAD_DAYS = 14


def determine_categories(mode: SearchMode, has_origin: bool) -> tuple[Category, ...]:
    """Categories searched for ``mode``; unified adds flights only with an origin."""
    match mode:
        case SearchMode.UNIFIED:
            if has_origin:
                return (Category.FLIGHTS, Category.HOTELS, Category.EXPERIENCES)
            return (Category.HOTELS, Category.EXPERIENCES)
        case SearchMode.FLIGHT:
            return (Category.FLIGHTS,)
        case SearchMode.HOTEL:
            return (Category.HOTELS,)
        case SearchMode.CAR:
            return (Category.CARS,)
        case SearchMode.EXPERIENCE:
            return (Category.EXPERIENCES,)
        case SearchMode.PACKAGE:
            return (
                Category.FLIGHTS,
                Category.HOTELS,
                Category.CARS,
                Category.EXPERIENCES,
            )
        case _:
            return (Category.FLIGHTS, Category.HOTELS)


class QueryNormalizer:
    """Validates a search request and fills defaults.

    Raises :class:`ValidationError` for anything that would make provider
    calls pointless, so no provider is ever contacted for a bad request.
    """

    def __init__(
        self,
        *,
        default_page_size: int = 20,
        max_page_size: int = 100,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._clock = clock or (lambda: datetime.now(UTC))

    def normalize(self, request: SearchRequest) -> ParsedQuery:
        now = self._clock()
        mode = request.mode or SearchMode.UNIFIED

        destination = self._location(request.destination)
        if destination is None:
            msg = "Destination is required"
            raise ValidationError(msg, field="destination")

        origin = self._location(request.origin)
        if mode is SearchMode.FLIGHT and origin is None:
            msg = "Origin is required for flight searches"
            raise ValidationError(msg, field="origin")

        dates = self._dates(request.dates, now.date())
        trip_type = request.trip_type or (
            TripType.ROUND_TRIP if dates.end_date else TripType.ONE_WAY
        )
        if trip_type is TripType.ROUND_TRIP and dates.end_date is None:
            msg = "Round trips need an end date"
            raise ValidationError(msg, field="dates.endDate")

        page = request.page if request.page is not None else 1
        if page < 1:
            msg = "Page must be 1 or greater"
            raise ValidationError(msg, field="page", value=page)

        options = self._options(request)
        page_size = (
            request.page_size
            if request.page_size is not None
            else min(options.limit, self._default_page_size)
        )
        if page_size < 1:
            msg = "Page size must be 1 or greater"
            raise ValidationError(msg, field="pageSize", value=page_size)
        page_size = min(page_size, self._max_page_size)

        try:
            parsed = ParsedQuery(
                mode=mode,
                categories=determine_categories(mode, origin is not None),
                destination=destination,
                origin=origin,
                dates=dates,
                travelers=self._travelers(request.travelers),
                rooms=request.rooms or 1,
                cabin_class=request.cabin_class or CabinClass.ECONOMY,
                trip_type=trip_type,
                filters=dict(request.filters or {}),
                sort_by=request.sort_by or SortOption.RECOMMENDED,
                page=page,
                page_size=page_size,
                options=options,
                user_id=request.user_id,
                search_time=now,
            )
        except pydantic.ValidationError as exc:
            raise ValidationError(
                "Invalid search request", errors=_error_list(exc)
            ) from exc

        logger.debug(
            "Normalized %s query for %s into categories %s",
            parsed.mode,
            destination.text,
            [c.value for c in parsed.categories],
        )
        return parsed

    @staticmethod
    def _location(raw: LocationInput | None) -> LocationQuery | None:
        if raw is None:
            return None
        location = LocationQuery(query=raw.query, code=raw.code, type=raw.type)
        return None if location.is_empty else location

    @staticmethod
    def _dates(raw: DatesInput | None, today: date) -> DateQuery:
        if raw is None or not raw.start_date:
            start = today + timedelta(days=DEFAULT_LEAD_DAYS)
            return DateQuery(start_date=start, flexible=True, type=DateType.FLEXIBLE)

        start = _parse_date(raw.start_date, "dates.startDate")
        end = _parse_date(raw.end_date, "dates.endDate") if raw.end_date else None
        if end is not None and end < start:
            msg = "End date cannot be before start date"
            raise ValidationError(msg, field="dates.endDate")
        if raw.type is not None:
            date_type = raw.type
        else:
            date_type = DateType.FLEXIBLE if raw.flexible else DateType.EXACT
        try:
            return DateQuery(
                start_date=start,
                end_date=end,
                flexible=raw.flexible,
                flex_days=raw.flex_days,
                type=date_type,
            )
        except pydantic.ValidationError as exc:
            raise ValidationError("Invalid dates", errors=_error_list(exc)) from exc

    @staticmethod
    def _travelers(raw: TravelersInput | None) -> TravelerCount:
        if raw is None:
            return TravelerCount()
        if raw.adults < 1:
            msg = "At least one adult traveler is required"
            raise ValidationError(msg, field="travelers.adults")
        try:
            return TravelerCount(
                adults=raw.adults,
                children=raw.children,
                children_ages=tuple(raw.children_ages),
                infants=raw.infants,
            )
        except pydantic.ValidationError as exc:
            raise ValidationError("Invalid travelers", errors=_error_list(exc)) from exc

    @staticmethod
    def _options(request: SearchRequest) -> SearchOptions:
        if request.options is None:
            return SearchOptions()
        try:
            return SearchOptions(
                currency=request.options.currency.upper(),
                language=request.options.language,
                strategy=request.options.strategy,
                limit=request.options.limit,
            )
        except pydantic.ValidationError as exc:
            raise ValidationError("Invalid options", errors=_error_list(exc)) from exc


def _parse_date(raw: str, field: str) -> date:
    try:
        return date.fromisoformat(raw[:10])
    except ValueError as exc:
        msg = f"Invalid date: {raw!r}"
        raise ValidationError(msg, field=field) from exc


def _error_list(exc: pydantic.ValidationError) -> list[dict[str, str]]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
