"""Session manager - resumable search state, paging and analytics."""

from __future__ import annotations

import logging
import math
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from tripscan_core.errors import SessionNotFoundError
from tripscan_core.schemas import (
    Category,
    CategoryResults,
    SearchSession,
    SearchStatus,
    SortOption,
)
from tripscan_ml.facets import apply_filters, validate_filters
from tripscan_ml.insights import snapshot
from tripscan_ml.ranking import available_sorts, sort_results

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Mapping

    from tripscan_core.schemas import (
        EnrichedQuery,
        FilterDefinition,
        FilterStats,
        ProviderSummary,
        UnifiedResult,
    )

    from ..cache.session_store import SessionStore

    Refresh = Callable[[EnrichedQuery], Awaitable[RefreshResult]]

logger = logging.getLogger(__name__)

TOKEN_BYTES = 24
MAX_TOKEN_ATTEMPTS = 5


class ContinueRequest(BaseModel):
    """View changes and interaction events sent with a continuation."""

    category: Category | None = None
    filters: dict[str, Any] | None = None
    sort_by: SortOption | None = None
    page: int | None = Field(default=None, ge=1)
    page_size: int | None = Field(default=None, ge=1)
    clicked_offer_id: str | None = None
    saved_offer_id: str | None = None
    time_spent_seconds: float | None = Field(default=None, ge=0)


@dataclass
class RefreshResult:
    """Per-category results of a re-fetch and the warnings it produced."""

    results: Mapping[Category, CategoryResults]
    warnings: list[str] = field(default_factory=list)


@dataclass
class PageView:
    """One category's filtered, sorted, paged view."""

    category: Category
    items: list[UnifiedResult]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_more: bool
    sort_by: SortOption
    applied_filters: dict[str, Any]
    available_filters: list[FilterDefinition]
    filter_stats: FilterStats
    providers: list[ProviderSummary] = field(default_factory=list)


class SessionManager:
    """Creates, loads and mutates :class:`SearchSession` records.

    Every mutation is a read-modify-write under ``store.lock(token)``.
    Expiry is measured from ``last_activity``; expired records are deleted
    on access and reported as :class:`SessionNotFoundError`.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        ttl_seconds: int = 1800,
        freshness_seconds: int = 300,
        max_page_size: int = 100,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._ttl = timedelta(seconds=ttl_seconds)
        self._ttl_seconds = ttl_seconds
        self._freshness = timedelta(seconds=freshness_seconds)
        self._max_page_size = max_page_size
        self._clock = clock or (lambda: datetime.now(UTC))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create(
        self,
        query: EnrichedQuery,
        results: Mapping[Category, CategoryResults] | None = None,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> SearchSession:
        token = await self._new_token()
        now = self._clock()
        session = SearchSession(
            id=uuid.uuid4().hex,
            token=token,
            user_id=user_id or query.user_id,
            anonymous_id=anonymous_id,
            query=query,
            created_at=now,
            last_activity=now,
        )
        if results:
            self._apply_results(session, results, now)
        await self._store.put(session, self._ttl_seconds)
        logger.info("Created search session %s", session.id)
        return session

    async def get(self, token: str) -> SearchSession:
        session = await self._store.get(token)
        if session is None:
            raise SessionNotFoundError(token)
        if session.is_expired(self._clock(), self._ttl):
            logger.info("Search session %s expired", session.id)
            await self._store.delete(token)
            raise SessionNotFoundError(token)
        return session

    async def mark_searching(self, token: str) -> SearchSession:
        async with self._store.lock(token):
            session = await self.get(token)
            session.advance_status(SearchStatus.SEARCHING)
            return await self._save(session)

    async def record_results(
        self,
        token: str,
        results: Mapping[Category, CategoryResults],
        status: SearchStatus,
        warnings: Iterable[str] = (),
    ) -> SearchSession:
        """Store unique ranked results and move to a terminal status."""
        async with self._store.lock(token):
            session = await self.get(token)
            self._apply_results(session, results, self._clock())
            session.warnings.extend(warnings)
            session.advance_status(status)
            return await self._save(session)

    async def continue_session(
        self,
        token: str,
        request: ContinueRequest,
        refresh: Refresh | None = None,
    ) -> tuple[SearchSession, dict[Category, PageView]]:
        """Apply view changes and return every category's current page.

        Providers are only contacted, through ``refresh``, when the stored
        results are older than the freshness window.  The re-fetch runs
        outside the token lock; its results are applied under the lock only
        if no other continuation refreshed the session in the meantime.
        """
        fresh: RefreshResult | None = None
        if refresh is not None:
            current = await self.get(token)
            if current.results_stale(self._clock(), self._freshness):
                logger.info("Refreshing stale results for session %s", current.id)
                fresh = await refresh(current.query)

        async with self._store.lock(token):
            session = await self.get(token)
            now = self._clock()

            if fresh is not None and session.results_stale(now, self._freshness):
                self._apply_refresh(session, fresh, now)

            targets = (
                [request.category]
                if request.category is not None
                else list(session.categories)
            )
            analytics = session.analytics
            for category in targets:
                stored = session.categories.get(category)
                if stored is None:
                    continue
                if request.filters is not None:
                    applied = validate_filters(request.filters, category)
                    if applied != stored.applied_filters:
                        analytics.filters_applied += 1
                    stored.applied_filters = applied
                    stored.page = 1
                if request.sort_by is not None and request.sort_by != stored.sort_by:
                    if _sort_supported(category, request.sort_by):
                        analytics.sorts_applied += 1
                        stored.sort_by = request.sort_by
                        stored.page = 1
                if request.page_size is not None:
                    stored.page_size = min(request.page_size, self._max_page_size)
                if request.page is not None:
                    stored.page = request.page

            views = {
                category: self.page_view(session, category)
                for category in session.categories
            }
            for category in targets:
                if category in views:
                    analytics.pages_viewed += 1
                    analytics.results_viewed += len(views[category].items)

            analytics.continuations += 1
            if request.clicked_offer_id and (
                request.clicked_offer_id not in analytics.clicked_offer_ids
            ):
                analytics.clicked_offer_ids.append(request.clicked_offer_id)
            if request.saved_offer_id and (
                request.saved_offer_id not in analytics.saved_offer_ids
            ):
                analytics.saved_offer_ids.append(request.saved_offer_id)
            if request.time_spent_seconds:
                analytics.time_spent_seconds += request.time_spent_seconds

            session = await self._save(session)
            return session, views

    def page_view(self, session: SearchSession, category: Category) -> PageView:
        """Filtered, sorted and paged view of one stored category."""
        stored = session.categories[category]
        filtered = apply_filters(stored.results, category, stored.applied_filters)
        ordered = sort_results(filtered.results, stored.sort_by)

        size = stored.page_size
        total = len(ordered)
        total_pages = max(1, math.ceil(total / size))
        offset = (stored.page - 1) * size
        return PageView(
            category=category,
            items=ordered[offset : offset + size],
            total_count=total,
            page=stored.page,
            page_size=size,
            total_pages=total_pages,
            has_more=stored.page < total_pages,
            sort_by=stored.sort_by,
            applied_filters=filtered.applied_filters,
            available_filters=filtered.available_filters,
            filter_stats=filtered.filter_stats,
            providers=list(stored.providers),
        )

    # ------------------------------------------------------------------

    async def _new_token(self) -> str:
        for _ in range(MAX_TOKEN_ATTEMPTS):
            token = secrets.token_urlsafe(TOKEN_BYTES)
            if not await self._store.exists(token):
                return token
        msg = "Could not allocate a unique session token"
        raise RuntimeError(msg)

    async def _save(self, session: SearchSession) -> SearchSession:
        session.last_activity = self._clock()
        await self._store.put(session, self._ttl_seconds)
        return session

    def _apply_results(
        self,
        session: SearchSession,
        results: Mapping[Category, CategoryResults],
        now: datetime,
    ) -> None:
        for category, fresh in results.items():
            previous = session.categories.get(category)
            if previous is not None:
                # Keep the caller's view state across a refresh.
                fresh = fresh.model_copy(
                    update={
                        "applied_filters": previous.applied_filters,
                        "sort_by": previous.sort_by,
                        "page": previous.page,
                        "page_size": previous.page_size,
                    }
                )
            session.categories[category] = fresh
            point = snapshot(category, fresh.results, now)
            if point is None:
                continue
            try:
                session.add_price_snapshot(point)
            except ValueError:
                logger.warning(
                    "Dropped out-of-order %s price snapshot for session %s",
                    category,
                    session.id,
                    exc_info=True,
                )
        session.results_fetched_at = now

    def _apply_refresh(
        self, session: SearchSession, fresh: RefreshResult, now: datetime
    ) -> None:
        """Apply re-fetched results, keeping categories whose calls all failed."""
        replaced: dict[Category, CategoryResults] = {}
        for category, update in fresh.results.items():
            succeeded = any(p.success for p in update.providers)
            if update.providers and not succeeded and category in session.categories:
                logger.warning(
                    "All %s providers failed during refresh of session %s; "
                    "keeping earlier results",
                    category,
                    session.id,
                )
                continue
            replaced[category] = update
        self._apply_results(session, replaced, now)
        for warning in fresh.warnings:
            if warning not in session.warnings:
                session.warnings.append(warning)


def _sort_supported(category: Category, sort_by: SortOption) -> bool:
    return any(option.id == sort_by for option in available_sorts(category))
