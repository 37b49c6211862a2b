"""Destination resolution, autocomplete and trending destinations."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel
from rapidfuzz import fuzz, process
from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from tripscan_core.errors import ResolutionError
from tripscan_core.schemas import (
    Coordinates,
    DestinationInsight,
    LocationType,
    ResolvedLocation,
)
from tripscan_db.models import DestinationIntelligence

from ..cache.cache_keys import autocomplete_key, location_key, trending_key
from ..cache.redis_client import cache_get, cache_set

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tripscan_core.schemas import LocationQuery

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^0-9A-Za-z]+")

FUZZY_MIN_SCORE = 80.0
AUTOCOMPLETE_MIN_LENGTH = 2


class LocationEntry(BaseModel):
    """One row of location intelligence as seen by the resolver."""

    code: str
    name: str
    type: LocationType = LocationType.CITY
    country_code: str
    country_name: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    timezone: str | None = None
    tagline: str | None = None
    best_months: list[int] = []
    good_for: list[str] = []
    avg_daily_cost: float | None = None
    popularity_score: float = 0.0

    @property
    def full_name(self) -> str:
        return f"{self.name}, {self.country_code}"

    def to_resolved(self) -> ResolvedLocation:
        coordinates = None
        if self.latitude is not None and self.longitude is not None:
            coordinates = Coordinates(latitude=self.latitude, longitude=self.longitude)
        return ResolvedLocation(
            code=self.code,
            name=self.name,
            full_name=self.full_name,
            type=self.type,
            country_code=self.country_code,
            country_name=self.country_name,
            coordinates=coordinates,
            timezone=self.timezone,
        )

    def to_insight(self) -> DestinationInsight:
        return DestinationInsight(
            code=self.code,
            name=self.name,
            country_code=self.country_code,
            description=self.tagline,
            popularity_score=self.popularity_score,
            best_months=tuple(self.best_months),
            average_daily_cost=self.avg_daily_cost,
            highlights=tuple(self.good_for),
        )


class LocationDirectory(Protocol):
    """Read-only source of location intelligence.

    Implementations raise :class:`ResolutionError` when the backing store
    is unavailable.
    """

    async def find_by_code(self, code: str) -> LocationEntry | None: ...

    async def search(self, term: str, limit: int) -> list[LocationEntry]: ...

    async def top(self, limit: int) -> list[LocationEntry]: ...


class DestinationService:
    """Maps free text or codes to canonical locations."""

    def __init__(
        self, directory: LocationDirectory, *, min_score: float = FUZZY_MIN_SCORE
    ) -> None:
        self._directory = directory
        self._min_score = min_score

    async def resolve(self, location: LocationQuery) -> ResolvedLocation:
        """Canonical location for ``location``, or a flagged fallback.

        Only input with no letters or digits at all is rejected.
        """
        text = location.text
        if not _NON_ALNUM.sub("", text):
            msg = "Location has no usable characters"
            raise ResolutionError(msg, input=text)

        try:
            entry = await self._lookup(location)
        except ResolutionError:
            logger.warning("Location directory unavailable resolving %r", text)
            entry = None

        if entry is not None:
            return entry.to_resolved()
        logger.info("No canonical match for %r; using fallback location", text)
        return fallback_location(location)

    async def insight(self, code: str) -> DestinationInsight | None:
        try:
            entry = await self._directory.find_by_code(code)
        except ResolutionError:
            logger.warning("Location directory unavailable for insight %s", code)
            return None
        return entry.to_insight() if entry is not None else None

    async def autocomplete(self, term: str, limit: int = 8) -> list[LocationEntry]:
        """Exact code first, then name prefix, then directory (popularity) order."""
        term = term.strip()
        if len(term) < AUTOCOMPLETE_MIN_LENGTH:
            return []
        try:
            candidates = await self._directory.search(term, limit * 3)
        except ResolutionError:
            logger.warning("Location directory unavailable for autocomplete %r", term)
            return []

        lowered = term.lower()
        upper = term.upper()

        def order(item: tuple[int, LocationEntry]) -> tuple[int, int]:
            position, entry = item
            if entry.code.upper() == upper:
                return (0, position)
            if entry.name.lower().startswith(lowered):
                return (1, position)
            return (2, position)

        ranked = sorted(enumerate(candidates), key=order)
        return [entry for _, entry in ranked[:limit]]

    async def trending(self, limit: int = 10) -> list[LocationEntry]:
        try:
            return await self._directory.top(limit)
        except ResolutionError:
            logger.warning("Location directory unavailable for trending")
            return []

    async def _lookup(self, location: LocationQuery) -> LocationEntry | None:
        if location.code:
            entry = await self._directory.find_by_code(location.code)
            if entry is not None:
                return entry
        query = location.query
        if not query:
            return None
        if len(query) <= 4 and query.isalpha():
            entry = await self._directory.find_by_code(query.upper())
            if entry is not None:
                return entry

        candidates = await self._directory.search(query, 25)
        if not candidates:
            return None
        match = process.extractOne(
            query,
            {i: c.name for i, c in enumerate(candidates)},
            scorer=fuzz.WRatio,
            processor=str.lower,
            score_cutoff=self._min_score,
        )
        if match is None:
            return None
        _, _, index = match
        return candidates[index]


def fallback_location(location: LocationQuery) -> ResolvedLocation:
    """Minimal location fabricated from raw input."""
    text = location.text
    code = location.code or _NON_ALNUM.sub("", text)[:3].upper()
    return ResolvedLocation(
        code=code,
        name=text,
        full_name=text,
        type=location.type or LocationType.CITY,
        country_code="XX",
        is_fallback=True,
    )


class SqlLocationDirectory:
    """``LocationDirectory`` backed by the ``destination_intelligence`` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        cache_ttl: int = 3600,
        trending_ttl: int = 900,
    ) -> None:
        self._session_factory = session_factory
        self._cache_ttl = cache_ttl
        self._trending_ttl = trending_ttl

    async def find_by_code(self, code: str) -> LocationEntry | None:
        key = location_key(f"code:{code}")
        cached = await cache_get(key)
        if cached is not None:
            return LocationEntry.model_validate(cached)

        stmt = select(DestinationIntelligence).where(
            func.upper(DestinationIntelligence.destination_code) == code.upper()
        )
        rows = await self._fetch(stmt)
        if not rows:
            return None
        entry = rows[0]
        await cache_set(key, entry.model_dump(mode="json"), self._cache_ttl)
        return entry

    async def search(self, term: str, limit: int) -> list[LocationEntry]:
        key = autocomplete_key(term, limit)
        cached = await cache_get(key)
        if cached is not None:
            return [LocationEntry.model_validate(item) for item in cached]

        pattern = f"%{term}%"
        prefix = f"{term[:3]}%"
        exact_code = case(
            (func.upper(DestinationIntelligence.destination_code) == term.upper(), 0),
            else_=1,
        )
        stmt = (
            select(DestinationIntelligence)
            .where(
                or_(
                    DestinationIntelligence.destination_code.ilike(f"{term}%"),
                    DestinationIntelligence.destination_name.ilike(pattern),
                    DestinationIntelligence.destination_name.ilike(prefix),
                )
            )
            .order_by(
                exact_code,
                DestinationIntelligence.popularity_score.desc(),
                DestinationIntelligence.destination_code,
            )
            .limit(limit)
        )
        entries = await self._fetch(stmt)
        await self._remember(key, entries, self._cache_ttl)
        return entries

    async def top(self, limit: int) -> list[LocationEntry]:
        key = trending_key(limit)
        cached = await cache_get(key)
        if cached is not None:
            return [LocationEntry.model_validate(item) for item in cached]

        stmt = (
            select(DestinationIntelligence)
            .order_by(
                DestinationIntelligence.popularity_score.desc(),
                DestinationIntelligence.destination_code,
            )
            .limit(limit)
        )
        entries = await self._fetch(stmt)
        await self._remember(key, entries, self._trending_ttl)
        return entries

    @staticmethod
    async def _remember(key: str, entries: list[LocationEntry], ttl: int) -> None:
        if entries:
            await cache_set(key, [e.model_dump(mode="json") for e in entries], ttl)

    async def _fetch(self, stmt) -> list[LocationEntry]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                rows = result.scalars().all()
        except SQLAlchemyError as exc:
            msg = "Location directory query failed"
            raise ResolutionError(msg) from exc
        return [_entry(row) for row in rows]


def _entry(row: DestinationIntelligence) -> LocationEntry:
    try:
        location_type = LocationType(row.destination_type)
    except ValueError:
        location_type = LocationType.CITY
    return LocationEntry(
        code=row.destination_code,
        name=row.destination_name,
        type=location_type,
        country_code=row.country_code,
        country_name=row.country_name,
        latitude=row.latitude,
        longitude=row.longitude,
        timezone=row.timezone,
        tagline=row.tagline,
        best_months=list(row.best_months or []),
        good_for=list(row.good_for or []),
        avg_daily_cost=row.avg_daily_cost,
        popularity_score=row.popularity_score or 0.0,
    )
