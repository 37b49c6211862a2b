"""Query enrichment - resolved locations, user context and intent."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from tripscan_core.schemas import (
    BudgetLevel,
    CabinClass,
    EnrichedQuery,
    SearchHistoryItem,
    SearchMode,
    UserPreferences,
)
from tripscan_db.models import SearchHistoryEntry, TravelPreference
from tripscan_ml.intent import detect_intent

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tripscan_core.schemas import ParsedQuery, ResolvedLocation

    from .destination_service import DestinationService

logger = logging.getLogger(__name__)

T = TypeVar("T")
E = TypeVar("E")


class PreferenceStore(Protocol):
    """Read access to personalization data, plus search history writes."""

    async def preferences(self, user_id: str) -> UserPreferences | None: ...

    async def history(self, user_id: str, limit: int) -> list[SearchHistoryItem]: ...

    async def record_search(
        self, user_id: str, query: EnrichedQuery, count: int
    ) -> None: ...


class SqlPreferenceStore:
    """``PreferenceStore`` on ``travel_preferences`` and ``search_history``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def preferences(self, user_id: str) -> UserPreferences | None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(TravelPreference).where(TravelPreference.user_id == user_id)
            )
            pref = result.scalar_one_or_none()
        if pref is None:
            return None
        return UserPreferences(
            budget_level=_enum_or_none(BudgetLevel, pref.budget_priority),
            preferred_airlines=tuple(pref.preferred_airlines or ()),
            preferred_hotel_chains=tuple(pref.preferred_hotel_chains or ()),
            required_amenities=tuple(pref.required_amenities or ()),
            preferred_cabin=_enum_or_none(CabinClass, pref.preferred_cabin_class),
            home_airport=pref.home_airport,
        )

    async def history(self, user_id: str, limit: int) -> list[SearchHistoryItem]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(SearchHistoryEntry)
                .where(SearchHistoryEntry.user_id == user_id)
                .order_by(SearchHistoryEntry.searched_at.desc())
                .limit(limit)
            )
            rows = result.scalars().all()
        return [
            SearchHistoryItem(
                mode=_enum_or_none(SearchMode, row.mode) or SearchMode.UNIFIED,
                origin_code=row.origin_code,
                destination_code=row.destination_code,
                start_date=row.start_date,
                searched_at=row.searched_at,
            )
            for row in rows
        ]

    async def record_search(
        self, user_id: str, query: EnrichedQuery, count: int
    ) -> None:
        origin = query.origin_location
        async with self._session_factory() as db:
            db.add(
                SearchHistoryEntry(
                    user_id=user_id,
                    mode=query.mode.value,
                    origin_code=origin.code if origin is not None else None,
                    destination_code=query.destination_location.code,
                    start_date=query.dates.start_date if query.dates else None,
                    results_count=count,
                    searched_at=query.search_time,
                )
            )
            await db.commit()


class QueryEnricher:
    """Turns a ``ParsedQuery`` into an ``EnrichedQuery``.

    Locations, preferences and history load concurrently.  Missing user
    context degrades to an anonymous query; it never fails the search.
    """

    def __init__(
        self,
        destinations: DestinationService,
        preferences: PreferenceStore | None = None,
        *,
        history_limit: int = 20,
    ) -> None:
        self._destinations = destinations
        self._preferences = preferences
        self._history_limit = history_limit

    async def enrich(
        self, parsed: ParsedQuery, user_id: str | None = None
    ) -> EnrichedQuery:
        user_id = user_id or parsed.user_id
        destination, origin, preferences, history = await asyncio.gather(
            self._destinations.resolve(parsed.destination),
            self._resolve_origin(parsed),
            self._optional(self._load_preferences(user_id), None, "preferences"),
            self._optional(self._load_history(user_id), [], "history"),
        )

        insight = None
        if not destination.is_fallback:
            insight = await self._destinations.insight(destination.code)

        intent = detect_intent(
            parsed, history, destination.code, parsed.search_time.date()
        )
        logger.debug(
            "Intent for %s: %s (%.2f)",
            destination.code,
            intent.primary,
            intent.confidence,
        )
        return EnrichedQuery(
            **dict(parsed),
            destination_location=destination,
            origin_location=origin,
            currency=parsed.options.currency,
            intent=intent,
            preferences=preferences,
            history=tuple(history),
            destination_insight=insight,
        )

    async def _resolve_origin(self, parsed: ParsedQuery) -> ResolvedLocation | None:
        if parsed.origin is None:
            return None
        return await self._destinations.resolve(parsed.origin)

    async def _load_preferences(self, user_id: str | None) -> UserPreferences | None:
        if user_id is None or self._preferences is None:
            return None
        return await self._preferences.preferences(user_id)

    async def _load_history(self, user_id: str | None) -> list[SearchHistoryItem]:
        if user_id is None or self._preferences is None:
            return []
        return await self._preferences.history(user_id, self._history_limit)

    @staticmethod
    async def _optional(awaitable: Awaitable[T], default: T, what: str) -> T:
        try:
            return await awaitable
        except SQLAlchemyError:
            logger.warning(
                "Could not load user %s; continuing without", what, exc_info=True
            )
            return default


def _enum_or_none(enum_type: type[E], value: str | None) -> E | None:
    if value is None:
        return None
    try:
        return enum_type(value.lower())
    except ValueError:
        return None
