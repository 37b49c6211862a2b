"""Dynamic filter facets derived from the current unique result set.

Facets only appear when at least one result carries the underlying field.
Applying filters is a pure in-memory transform; unknown filter ids are
ignored and re-applying the same filters is a no-op.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from datetime import time
from typing import TYPE_CHECKING, Any

from tripscan_core.errors import ValidationError
from tripscan_core.schemas import (
    Category,
    FilterDefinition,
    FilterOption,
    FilterResult,
    FilterStats,
    FilterType,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from tripscan_core.schemas import AppliedFilters, UnifiedResult

_TIME_WINDOWS: tuple[tuple[str, str, time, time], ...] = (
    ("night", "Night (00-06)", time(0, 0), time(5, 59, 59)),
    ("morning", "Morning (06-12)", time(6, 0), time(11, 59, 59)),
    ("afternoon", "Afternoon (12-18)", time(12, 0), time(17, 59, 59)),
    ("evening", "Evening (18-24)", time(18, 0), time(23, 59, 59)),
)


@dataclass(frozen=True)
class _Facet:
    id: str
    label: str
    type: FilterType
    extract: Callable[[Any], Any]
    unit: str | None = None
    option_label: Callable[[str], str] = str


def _stops_value(result: Any) -> str:
    stops = result.max_stops
    return str(stops) if stops < 2 else "2+"


def _stops_label(value: str) -> str:
    return {"0": "Nonstop", "1": "1 stop"}.get(value, "2+ stops")


def _star_value(result: Any) -> str | None:
    if result.star_rating is None:
        return None
    return str(math.floor(result.star_rating))


def _chain_value(result: Any) -> str | None:
    return result.chain_code or result.brand


def _true_or_none(flag: bool) -> bool | None:
    return True if flag else None


_PRICE = _Facet("price", "Price", FilterType.RANGE, lambda r: r.price.amount)
_FREE_CANCEL = _Facet(
    "free_cancellation",
    "Free cancellation",
    FilterType.BOOLEAN,
    lambda r: _true_or_none(r.free_cancellation),
)

_FACETS: dict[Category, tuple[_Facet, ...]] = {
    Category.FLIGHTS: (
        _PRICE,
        _Facet(
            "stops",
            "Stops",
            FilterType.MULTI_SELECT,
            _stops_value,
            option_label=_stops_label,
        ),
        _Facet("airlines", "Airlines", FilterType.MULTI_SELECT, lambda r: r.carriers),
        _Facet(
            "duration",
            "Duration",
            FilterType.RANGE,
            lambda r: r.duration_minutes,
            unit="minutes",
        ),
        _Facet(
            "departure_time",
            "Departure time",
            FilterType.TIME_RANGE,
            lambda r: r.departure_at.time(),
        ),
        _Facet(
            "refundable",
            "Refundable",
            FilterType.BOOLEAN,
            lambda r: _true_or_none(r.is_refundable),
        ),
    ),
    Category.HOTELS: (
        _PRICE,
        _Facet(
            "star_rating",
            "Star rating",
            FilterType.MULTI_SELECT,
            _star_value,
            option_label=lambda v: f"{v} stars",
        ),
        _Facet(
            "guest_rating", "Guest rating", FilterType.RANGE, lambda r: r.guest_rating
        ),
        _Facet(
            "distance",
            "Distance from center",
            FilterType.RANGE,
            lambda r: r.distance_from_center_km,
            unit="km",
        ),
        _Facet(
            "amenities", "Amenities", FilterType.MULTI_SELECT, lambda r: r.amenities
        ),
        _Facet("chains", "Hotel chains", FilterType.MULTI_SELECT, _chain_value),
        _FREE_CANCEL,
    ),
    Category.CARS: (
        _PRICE,
        _Facet(
            "vehicle_type",
            "Vehicle type",
            FilterType.MULTI_SELECT,
            lambda r: r.vehicle_type,
        ),
        _Facet(
            "transmission",
            "Transmission",
            FilterType.SINGLE_SELECT,
            lambda r: r.transmission,
        ),
        _Facet(
            "rental_company",
            "Rental company",
            FilterType.MULTI_SELECT,
            lambda r: r.rental_company,
        ),
        _FREE_CANCEL,
    ),
    Category.EXPERIENCES: (
        _PRICE,
        _Facet(
            "category", "Category", FilterType.MULTI_SELECT, lambda r: r.category_name
        ),
        _Facet(
            "duration",
            "Duration",
            FilterType.RANGE,
            lambda r: r.duration_minutes,
            unit="minutes",
        ),
        _Facet("rating", "Rating", FilterType.RANGE, lambda r: r.rating),
        _FREE_CANCEL,
    ),
}

_FACET_INDEX: dict[Category, dict[str, _Facet]] = {
    category: {facet.id: facet for facet in facets}
    for category, facets in _FACETS.items()
}


# ----------------------------------------------------------------------
# Derivation
# ----------------------------------------------------------------------


def derive_filters(
    results: Sequence[UnifiedResult], category: Category
) -> list[FilterDefinition]:
    """Facets supported by the fields present in ``results``."""
    definitions: list[FilterDefinition] = []
    for facet in _FACETS[category]:
        values = [facet.extract(r) for r in results]
        values = [v for v in values if v is not None and v != []]
        if not values:
            continue
        definitions.append(_definition(facet, values))
    return definitions


def _definition(facet: _Facet, values: list[Any]) -> FilterDefinition:
    if facet.type is FilterType.RANGE:
        return FilterDefinition(
            id=facet.id,
            label=facet.label,
            type=facet.type,
            min=math.floor(min(values)),
            max=math.ceil(max(values)),
            unit=facet.unit,
        )
    if facet.type is FilterType.BOOLEAN:
        return FilterDefinition(
            id=facet.id,
            label=facet.label,
            type=facet.type,
            options=(FilterOption(value="true", label=facet.label, count=len(values)),),
        )
    if facet.type is FilterType.TIME_RANGE:
        counts = Counter(
            key
            for value in values
            for key, _, start, end in _TIME_WINDOWS
            if _time_in_range(start, end, value)
        )
        return FilterDefinition(
            id=facet.id,
            label=facet.label,
            type=facet.type,
            options=tuple(
                FilterOption(value=key, label=label, count=counts[key])
                for key, label, _, _ in _TIME_WINDOWS
                if counts[key]
            ),
            min=0,
            max=24,
            unit="hours",
        )

    # Select facets: count each result once per distinct value it carries.
    counts = Counter()
    for value in values:
        items = value if isinstance(value, list) else [value]
        counts.update({str(item) for item in items})
    return FilterDefinition(
        id=facet.id,
        label=facet.label,
        type=facet.type,
        options=tuple(
            FilterOption(value=v, label=facet.option_label(v), count=counts[v])
            for v in sorted(counts)
        ),
    )


# ----------------------------------------------------------------------
# Application
# ----------------------------------------------------------------------


def matches_filter(result: UnifiedResult, filter_id: str, value: Any) -> bool | None:
    """Whether ``result`` passes one filter; ``None`` if the id is unknown."""
    facet = _FACET_INDEX[result.category].get(filter_id)
    if facet is None or value is None:
        return None
    actual = facet.extract(result)

    if facet.type is FilterType.RANGE:
        if not isinstance(value, dict):
            return True
        low = _range_bound(value, "min", filter_id)
        high = _range_bound(value, "max", filter_id)
        if not isinstance(actual, int | float):
            return True
        if low is not None and actual < low:
            return False
        return not (high is not None and actual > high)

    if facet.type is FilterType.BOOLEAN:
        return actual is True or not _is_true(value)

    if facet.type is FilterType.TIME_RANGE:
        if actual is None or not isinstance(value, dict):
            return True
        start = _parse_time(value.get("start"), time(0, 0), filter_id)
        end = _parse_time(value.get("end"), time(23, 59, 59), filter_id)
        return _time_in_range(start, end, actual)

    selected = value if isinstance(value, list) else [value]
    if not selected:
        return True
    wanted = {str(v) for v in selected}
    if isinstance(actual, list):
        return any(str(item) in wanted for item in actual)
    return actual is not None and str(actual) in wanted


def normalize_filters(applied: AppliedFilters, category: Category) -> AppliedFilters:
    """Drop unknown ids and empty values, keeping a stable key order."""
    known = _FACET_INDEX[category]
    return {
        key: applied[key]
        for key in sorted(applied)
        if key in known and applied[key] is not None and applied[key] != []
    }


def validate_filters(applied: AppliedFilters, category: Category) -> AppliedFilters:
    """Normalize ``applied``; malformed range or time bounds raise."""
    active = normalize_filters(applied, category)
    for key, value in active.items():
        if not isinstance(value, dict):
            continue
        facet_type = _FACET_INDEX[category][key].type
        if facet_type is FilterType.RANGE:
            _range_bound(value, "min", key)
            _range_bound(value, "max", key)
        elif facet_type is FilterType.TIME_RANGE:
            _parse_time(value.get("start"), time(0, 0), key)
            _parse_time(value.get("end"), time(23, 59, 59), key)
    return active


def apply_filters(
    results: Sequence[UnifiedResult],
    category: Category,
    applied: AppliedFilters,
) -> FilterResult:
    """Filter ``results`` and report before/after counts."""
    active = normalize_filters(applied, category)
    filtered = [
        r
        for r in results
        if all(
            matches_filter(r, key, value) is not False for key, value in active.items()
        )
    ]
    return FilterResult(
        results=filtered,
        available_filters=derive_filters(results, category),
        applied_filters=active,
        filter_stats=FilterStats(
            total_before=len(results),
            total_after=len(filtered),
            removed_count=len(results) - len(filtered),
        ),
    )


def _is_true(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1"}
    return value is True


def _range_bound(value: dict[str, Any], key: str, filter_id: str) -> float | None:
    raw = value.get(key)
    if raw is None or raw == "":
        return None
    if isinstance(raw, int | float) and not isinstance(raw, bool):
        return raw
    try:
        bound = float(raw) if isinstance(raw, str) else math.nan
    except ValueError:
        bound = math.nan
    if math.isnan(bound):
        msg = f"Filter {filter_id} needs a numeric {key}, got {raw!r}"
        raise ValidationError(msg, field=f"{filter_id}.{key}", value=raw)
    return bound


def _parse_time(raw: Any, default: time, filter_id: str) -> time:
    """Parse ``H``, ``HH:MM`` or ``HH:MM:SS``; hours wrap at 24."""
    if raw is None or raw == "":
        return default
    if isinstance(raw, time):
        return raw
    if isinstance(raw, str) and 1 <= len(parts := raw.strip().split(":")) <= 3:
        try:
            hour, minute, second = (int(p) for p in (*parts, "0", "0")[:3])
            return time(hour % 24, minute, second)
        except ValueError:
            pass
    msg = f"Filter {filter_id} needs a time like HH:MM, got {raw!r}"
    raise ValidationError(msg, field=filter_id, value=raw)
    return default


def _time_in_range(start: time, end: time, t: time) -> bool:
    """Check if time t falls within [start, end], handling overnight ranges."""
    if start <= end:
        return start <= t <= end
    # Overnight range (e.g., 22:00 - 06:00)
    return t >= start or t <= end
