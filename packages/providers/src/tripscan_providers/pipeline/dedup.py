"""Cluster near-duplicate offers returned by different providers.

Offers are first put in a canonical order (price ascending, provider priority
descending, provider code, offer id) and filed under blocking keys (route and
departure window, grid cell, name, city) so that pairwise comparison only
happens between plausible duplicates.  Each offer not yet claimed becomes a
primary and absorbs later offers from *other* providers that share a key
with it, or sit in a neighbouring window or cell, and whose similarity
reaches the category threshold, at most one offer per provider.  Because the
canonical order is a total order, the outcome does not depend on input order.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field
from rapidfuzz import fuzz

from tripscan_core.schemas import (
    AlternativeOffer,
    Category,
    DeduplicationResult,
    DeduplicationStats,
    DuplicateGroup,
    DuplicateMember,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Mapping, Sequence

    from tripscan_core.schemas import (
        CarResult,
        Coordinates,
        ExperienceResult,
        FlightResult,
        HotelResult,
        UnifiedResult,
    )

    Keys = Callable[[UnifiedResult], list[Hashable]]

logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^\w\s]+")
_SPACES = re.compile(r"\s+")
_KM_PER_DEGREE = 111.32
_MAX_LON_REACH = 50


class DedupConfig(BaseModel):
    """Tunable thresholds, time windows and grid sizes."""

    thresholds: dict[Category, float] = Field(
        default_factory=lambda: {
            Category.FLIGHTS: 0.85,
            Category.HOTELS: 0.80,
            Category.CARS: 0.75,
            Category.EXPERIENCES: 0.70,
        }
    )
    flight_bucket_minutes: int = Field(default=60, gt=0)
    hotel_grid_degrees: float = Field(default=0.01, gt=0)
    hotel_max_distance_km: float = Field(default=0.5, gt=0)
    car_time_tolerance_minutes: int = Field(default=180, gt=0)

    def threshold(self, category: Category) -> float:
        return self.thresholds.get(category, 0.85)


def deduplicate(
    results: Sequence[UnifiedResult],
    category: Category,
    config: DedupConfig | None = None,
    provider_priorities: Mapping[str, int] | None = None,
) -> DeduplicationResult:
    """Collapse cross-provider duplicates of one category.

    Returns primaries (carrying ``alternatives``) in canonical order, the
    groups that were formed and summary stats.
    """
    config = config or DedupConfig()
    priorities = provider_priorities or {}
    for result in results:
        if result.category != category:
            msg = f"Expected only {category} results, got {result.category}"
            raise ValueError(msg)

    def canonical(r: UnifiedResult) -> tuple[float, int, str, str]:
        return (
            r.price.amount,
            -priorities.get(r.provider.code, 0),
            r.provider.code,
            r.id,
        )

    # Identical ids are the same provider offer seen twice: keep the cheapest.
    by_id: dict[str, UnifiedResult] = {}
    for result in sorted(results, key=canonical):
        by_id.setdefault(result.id, result)
    ordered = sorted(by_id.values(), key=canonical)

    index_keys, lookup_keys = _blocking_fns(category, config)
    similarity = _similarity_fn(category, config)
    threshold = config.threshold(category)

    blocks: dict[Hashable, list[int]] = {}
    for position, result in enumerate(ordered):
        for key in index_keys(result):
            blocks.setdefault(key, []).append(position)

    unique: list[UnifiedResult] = []
    groups: list[DuplicateGroup] = []
    claimed: set[int] = set()
    for i, primary in enumerate(ordered):
        if i in claimed:
            continue
        claimed.add(i)
        providers = {primary.provider.code}
        providers.update(alt.provider.code for alt in primary.alternatives)
        candidates = {
            p for key in lookup_keys(primary) for p in blocks.get(key, ()) if p > i
        }
        absorbed: list[tuple[UnifiedResult, float]] = []
        for position in sorted(candidates):
            candidate = ordered[position]
            if position in claimed or candidate.provider.code in providers:
                continue
            score = similarity(primary, candidate)
            if score >= threshold:
                claimed.add(position)
                providers.add(candidate.provider.code)
                absorbed.append((candidate, score))
        unique.append(_merge(primary, absorbed, providers))
        if absorbed:
            groups.append(_group(primary, absorbed))

    unique.sort(key=canonical)
    groups.sort(key=lambda g: (g.primary_price, g.primary_provider, g.primary_id))
    input_count = len(results)
    stats = DeduplicationStats(
        input_count=input_count,
        output_count=len(unique),
        duplicates_found=input_count - len(unique),
        dedup_rate=round((input_count - len(unique)) / input_count, 4)
        if input_count
        else 0.0,
    )
    logger.info(
        "Deduplicated %d %s results into %d unique (%d groups)",
        input_count,
        category,
        len(unique),
        len(groups),
    )
    return DeduplicationResult(unique_results=unique, groups=groups, stats=stats)


def _merge(
    primary: UnifiedResult,
    absorbed: list[tuple[UnifiedResult, float]],
    providers: set[str],
) -> UnifiedResult:
    if not absorbed:
        return primary
    alternatives = list(primary.alternatives)
    for candidate, score in absorbed:
        alternatives.append(_alternative(primary, candidate, score))
        # Offers already merged into the candidate follow it into the group.
        for alt in candidate.alternatives:
            if alt.provider.code not in providers:
                providers.add(alt.provider.code)
                alternatives.append(
                    alt.model_copy(
                        update={
                            "price_delta": round(
                                alt.price.amount - primary.price.amount, 2
                            ),
                            "similarity": round(min(score, alt.similarity), 4),
                        }
                    )
                )
    alternatives.sort(key=lambda a: (a.price_delta, a.provider.code, a.id))
    return primary.model_copy(update={"alternatives": alternatives})


def _alternative(
    primary: UnifiedResult, candidate: UnifiedResult, score: float
) -> AlternativeOffer:
    return AlternativeOffer(
        id=candidate.id,
        provider=candidate.provider,
        price=candidate.price,
        price_delta=round(candidate.price.amount - primary.price.amount, 2),
        similarity=round(score, 4),
        deep_link=candidate.deep_link,
    )


def _group(
    primary: UnifiedResult, absorbed: list[tuple[UnifiedResult, float]]
) -> DuplicateGroup:
    return DuplicateGroup(
        primary_id=primary.id,
        primary_provider=primary.provider.code,
        primary_price=primary.price.amount,
        duplicates=tuple(
            DuplicateMember(
                result_id=candidate.id,
                provider_code=candidate.provider.code,
                price=candidate.price.amount,
                price_delta=round(candidate.price.amount - primary.price.amount, 2),
                similarity=round(score, 4),
            )
            for candidate, score in absorbed
        ),
    )


# ----------------------------------------------------------------------
# Blocking
# ----------------------------------------------------------------------


def _blocking_fns(category: Category, config: DedupConfig) -> tuple[Keys, Keys]:
    """Keys each result is filed under, and keys searched from a primary.

    Lookups reach into neighbouring time windows and grid cells, so a pair
    split only by a window or cell edge is still compared.
    """
    if category is Category.FLIGHTS:
        size = config.flight_bucket_minutes * 60

        def flight_keys(r: FlightResult, spread: int) -> list[Hashable]:
            departure = int(r.departure_at.timestamp()) // size
            return [
                (r.origin, r.destination, departure + step, r.marketing_carrier)
                for step in range(-spread, spread + 1)
            ]

        return (lambda r: flight_keys(r, 0), lambda r: flight_keys(r, 1))

    if category is Category.HOTELS:
        return _hotel_blocking(config)

    if category is Category.CARS:

        def car_keys(r: CarResult, spread: int) -> list[Hashable]:
            day = r.pickup_at.date()
            return [
                (
                    r.pickup_location.upper(),
                    day + timedelta(days=step),
                    r.vehicle_type.casefold(),
                )
                for step in range(-spread, spread + 1)
            ]

        return (lambda r: car_keys(r, 0), lambda r: car_keys(r, 1))

    def experience_keys(r: ExperienceResult) -> list[Hashable]:
        return [((r.city or "").casefold(), r.category_name.casefold())]

    return (experience_keys, experience_keys)


def _hotel_blocking(config: DedupConfig) -> tuple[Keys, Keys]:
    grid = config.hotel_grid_degrees
    lat_reach = math.ceil(config.hotel_max_distance_km / (_KM_PER_DEGREE * grid))

    def cell(c: Coordinates) -> tuple[int, int]:
        return (round(c.latitude / grid), round(c.longitude / grid))

    def common(r: HotelResult) -> tuple[tuple[int, int], str, Hashable]:
        month = (r.check_in.year, r.check_in.month)
        return month, (r.city or "").casefold(), ("name", _name_key(r.name), month)

    def index(r: HotelResult) -> list[Hashable]:
        month, city, name = common(r)
        keys = [name, ("city", city, month)]
        if r.coordinates is None:
            keys.append(("bare", city, month))
        else:
            keys.append(("geo", cell(r.coordinates), month))
        return keys

    def lookup(r: HotelResult) -> list[Hashable]:
        month, city, name = common(r)
        keys = [name]
        if r.coordinates is None:
            # Without a position, any hotel in the same city may match.
            keys.append(("city", city, month))
            return keys
        keys.append(("bare", city, month))
        width = _KM_PER_DEGREE * grid * math.cos(math.radians(r.coordinates.latitude))
        lon_reach = min(
            _MAX_LON_REACH,
            math.ceil(config.hotel_max_distance_km / max(width, 1e-9)),
        )
        lat, lon = cell(r.coordinates)
        keys.extend(
            ("geo", (lat + dy, lon + dx), month)
            for dy in range(-lat_reach, lat_reach + 1)
            for dx in range(-lon_reach, lon_reach + 1)
        )
        return keys

    return (index, lookup)


# ----------------------------------------------------------------------
# Similarity
# ----------------------------------------------------------------------


def _similarity_fn(
    category: Category, config: DedupConfig
) -> Callable[[UnifiedResult, UnifiedResult], float]:
    if category is Category.FLIGHTS:
        return lambda a, b: flight_similarity(a, b, config.flight_bucket_minutes)
    if category is Category.HOTELS:
        return lambda a, b: hotel_similarity(a, b, config.hotel_max_distance_km)
    if category is Category.CARS:
        return lambda a, b: car_similarity(a, b, config.car_time_tolerance_minutes)
    return experience_similarity


def flight_similarity(a: FlightResult, b: FlightResult, window_minutes: int) -> float:
    """Weighted match of route, departure, carrier, flight numbers and fare.

    Different flight numbers or cabins mean a different product: score 0.
    """
    if a.flight_numbers != b.flight_numbers or a.cabin_class != b.cabin_class:
        return 0.0
    routes_a = [(s.origin, s.destination) for s in a.slices]
    routes_b = [(s.origin, s.destination) for s in b.slices]
    if routes_a == routes_b:
        route = 1.0
    elif routes_a[0] == routes_b[0]:
        route = 0.5
    else:
        route = 0.0

    gaps = [
        abs((sa.departure_at - sb.departure_at).total_seconds()) / 60
        for sa, sb in zip(a.slices, b.slices, strict=False)
    ]
    timing = sum(max(0.0, 1 - gap / window_minutes) for gap in gaps) / len(gaps)
    carrier = 1.0 if a.marketing_carrier == b.marketing_carrier else 0.0
    numbers = 1.0
    if a.booking_class and b.booking_class and a.booking_class != b.booking_class:
        fare = 0.5
    else:
        fare = 1.0
    return _clamp(
        0.25 * route + 0.25 * timing + 0.20 * carrier + 0.15 * numbers + 0.15 * fare
    )


def hotel_similarity(a: HotelResult, b: HotelResult, max_distance_km: float) -> float:
    """Fuzzy name, geographic proximity and stay overlap."""
    name = fuzz.token_sort_ratio(_normalize(a.name), _normalize(b.name)) / 100
    if a.coordinates is not None and b.coordinates is not None:
        distance = haversine_km(a.coordinates, b.coordinates)
        proximity = max(0.0, 1 - distance / max_distance_km)
    elif a.city and b.city:
        proximity = 1.0 if a.city.casefold() == b.city.casefold() else 0.0
    else:
        proximity = 0.5
    overlap = (min(a.check_out, b.check_out) - max(a.check_in, b.check_in)).days
    span = (max(a.check_out, b.check_out) - min(a.check_in, b.check_in)).days
    dates = max(overlap, 0) / span if span > 0 else 1.0
    return _clamp(0.5 * name + 0.3 * proximity + 0.2 * dates)


def car_similarity(a: CarResult, b: CarResult, tolerance_minutes: int) -> float:
    """Rental company, vehicle, transmission and pickup/dropoff times."""
    company = 1.0 if a.rental_company.casefold() == b.rental_company.casefold() else 0.0
    vehicle = fuzz.token_sort_ratio(
        _normalize(a.vehicle_name), _normalize(b.vehicle_name)
    ) / 100
    transmission = 1.0 if a.transmission == b.transmission else 0.0
    gap = (
        abs((a.pickup_at - b.pickup_at).total_seconds())
        + abs((a.dropoff_at - b.dropoff_at).total_seconds())
    ) / 120
    times = max(0.0, 1 - gap / tolerance_minutes)
    return _clamp(0.4 * company + 0.3 * vehicle + 0.15 * transmission + 0.15 * times)


def experience_similarity(a: ExperienceResult, b: ExperienceResult) -> float:
    """Fuzzy title, category and duration closeness."""
    title = fuzz.token_set_ratio(_normalize(a.title), _normalize(b.title)) / 100
    category = 1.0 if a.category_name.casefold() == b.category_name.casefold() else 0.0
    if a.duration and b.duration:
        duration = 1 - abs(a.duration - b.duration) / max(a.duration, b.duration)
    else:
        duration = 0.5
    return _clamp(0.6 * title + 0.2 * category + 0.2 * duration)


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    h = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
    )
    return 2 * 6371.0 * math.asin(math.sqrt(h))


def _normalize(text: str) -> str:
    return _SPACES.sub(" ", _NON_WORD.sub(" ", text.casefold())).strip()


def _name_key(name: str) -> str:
    return " ".join(sorted(_normalize(name).split()[:3]))


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))
