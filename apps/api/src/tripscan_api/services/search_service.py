"""Search engine - wires normalization, execution and post-processing."""

from __future__ import annotations

import logging
import time
import uuid
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from tripscan_core.errors import ValidationError
from tripscan_core.schemas import (
    AdapterContext,
    CategoryResults,
    ProviderSummary,
    SearchStatus,
    SortOption,
)
from tripscan_ml.facets import normalize_filters, validate_filters
from tripscan_ml.insights import price_insight
from tripscan_ml.intent import build_recommendations
from tripscan_ml.ranking import available_sorts
from tripscan_providers.pipeline.dedup import deduplicate

from ..schemas.common import camelize
from ..schemas.search import (
    CategoryPayload,
    DestinationItem,
    PageInfo,
    ProviderInfo,
    ResultSources,
    SearchData,
    SearchMeta,
)
from .session_service import ContinueRequest, RefreshResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tripscan_core.schemas import (
        Category,
        EnrichedQuery,
        ExecutionResult,
        SearchSession,
    )
    from tripscan_ml.ranking import RankingEngine
    from tripscan_providers.pipeline.dedup import DedupConfig
    from tripscan_providers.registry import AdapterRegistry

    from ..execution import ExecutionPlanner, PlanExecutor
    from ..schemas.search import SearchRequest
    from .destination_service import DestinationService, LocationEntry
    from .personalization_service import PreferenceStore, QueryEnricher
    from .query_service import QueryNormalizer
    from .session_service import PageView, SessionManager

logger = logging.getLogger(__name__)

_QUERY_ECHO_FIELDS = {
    "mode",
    "categories",
    "destination_location",
    "origin_location",
    "dates",
    "travelers",
    "rooms",
    "cabin_class",
    "trip_type",
    "sort_by",
    "currency",
    "intent",
}


class SearchEngine:
    """Entry point for the four endpoint actions.

    A search runs normalize -> enrich -> plan -> execute -> deduplicate ->
    rank and persists the unique ranked results in a session; continuation
    works from that stored state.
    """

    def __init__(
        self,
        *,
        registry: AdapterRegistry,
        normalizer: QueryNormalizer,
        enricher: QueryEnricher,
        planner: ExecutionPlanner,
        executor: PlanExecutor,
        sessions: SessionManager,
        destinations: DestinationService,
        ranking: RankingEngine,
        dedup_config: DedupConfig | None = None,
        preference_store: PreferenceStore | None = None,
    ) -> None:
        self._registry = registry
        self._normalizer = normalizer
        self._enricher = enricher
        self._planner = planner
        self._executor = executor
        self._sessions = sessions
        self._destinations = destinations
        self._ranking = ranking
        self._dedup_config = dedup_config
        self._preference_store = preference_store

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def search(self, request: SearchRequest) -> SearchData:
        started = time.monotonic()
        parsed = self._normalizer.normalize(request)
        for category in parsed.categories:
            validate_filters(parsed.filters, category)
        query = await self._enricher.enrich(parsed, request.user_id)

        session = await self._sessions.create(query, user_id=request.user_id)
        await self._sessions.mark_searching(session.token)

        try:
            collected = await self._collect(query, session.id)
        except Exception:
            logger.exception("Search %s failed; marking the session failed", session.id)
            await self._sessions.record_results(
                session.token, {}, SearchStatus.FAILED, ["Search failed unexpectedly"]
            )
            raise
        categories, outcomes, status, warnings = collected
        session = await self._sessions.record_results(
            session.token, categories, status, warnings
        )
        unique_count = sum(len(c.results) for c in categories.values())
        logger.info(
            "Search %s finished %s with %d unique results from %d calls",
            session.id,
            status,
            unique_count,
            len(outcomes),
        )
        await self._record_history(query, unique_count)

        views = {c: self._sessions.page_view(session, c) for c in session.categories}
        return self._build_data(session, views, started)

    async def continue_search(self, request: SearchRequest) -> SearchData:
        started = time.monotonic()
        if not request.session_token:
            msg = "sessionToken is required to continue a search"
            raise ValidationError(msg, field="sessionToken")

        update = ContinueRequest(
            category=request.category,
            filters=request.filters,
            sort_by=request.sort_by,
            page=request.page,
            page_size=request.page_size,
            clicked_offer_id=request.clicked_offer_id,
            saved_offer_id=request.saved_offer_id,
            time_spent_seconds=request.time_spent_seconds,
        )

        async def refresh(query: EnrichedQuery) -> RefreshResult:
            categories, _, _, warnings = await self._collect(query, None)
            return RefreshResult(categories, warnings)

        session, views = await self._sessions.continue_session(
            request.session_token, update, refresh
        )
        return self._build_data(session, views, started)

    async def autocomplete(
        self, term: str | None, limit: int = 8
    ) -> list[DestinationItem]:
        entries = await self._destinations.autocomplete(term or "", limit)
        return [_destination_item(e) for e in entries]

    async def trending(self, limit: int = 10) -> list[DestinationItem]:
        entries = await self._destinations.trending(limit)
        return [_destination_item(e) for e in entries]

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _collect(
        self, query: EnrichedQuery, session_id: str | None
    ) -> tuple[
        dict[Category, CategoryResults],
        list[ExecutionResult],
        SearchStatus,
        list[str],
    ]:
        plan = self._planner.plan(query)
        if not plan.phases:
            warning = "No providers available for the requested categories"
            return {}, [], SearchStatus.FAILED, [warning]

        context = AdapterContext(
            request_id=uuid.uuid4().hex,
            session_id=session_id,
            user_id=query.user_id,
            currency=query.currency,
            language=query.options.language,
            timeout_ms=plan.total_timeout_ms,
        )
        outcomes = await self._executor.execute(plan, query, context)

        by_category: dict[Category, list[ExecutionResult]] = defaultdict(list)
        for outcome in outcomes:
            by_category[outcome.category].append(outcome)

        priorities = self._registry.priorities()
        categories: dict[Category, CategoryResults] = {}
        for category in plan.categories:
            calls = by_category.get(category, [])
            raw = [r for call in calls if call.success for r in call.results]
            dedup = deduplicate(raw, category, self._dedup_config, priorities)
            ranked = self._ranking.rank(dedup.unique_results, query)
            sort_by = query.sort_by
            if all(option.id != sort_by for option in available_sorts(category)):
                sort_by = SortOption.RECOMMENDED
            categories[category] = CategoryResults(
                category=category,
                results=ranked,
                groups=dedup.groups,
                providers=[_summary(call) for call in calls],
                applied_filters=normalize_filters(query.filters, category),
                sort_by=sort_by,
                page=query.page,
                page_size=query.page_size,
            )

        status, warnings = _status(outcomes, categories, plan.min_results_required)
        return categories, outcomes, status, warnings

    async def _record_history(self, query: EnrichedQuery, count: int) -> None:
        if self._preference_store is None or query.user_id is None:
            return
        try:
            await self._preference_store.record_search(query.user_id, query, count)
        except SQLAlchemyError:
            logger.warning("Could not record search history", exc_info=True)

    # ------------------------------------------------------------------
    # Response building
    # ------------------------------------------------------------------

    def _build_data(
        self,
        session: SearchSession,
        views: dict[Category, PageView],
        started: float,
    ) -> SearchData:
        query = session.query
        results: dict[Category, CategoryPayload] = {}
        filters: dict[Category, list[dict[str, Any]]] = {}
        sorts: dict[Category, list[dict[str, Any]]] = {}
        insights: dict[Category, dict[str, Any]] = {}
        providers: list[dict[str, Any]] = []
        sources = ResultSources()

        for category, view in views.items():
            results[category] = CategoryPayload(
                items=[camelize(r.model_dump(mode="json")) for r in view.items],
                total_count=view.total_count,
                page_info=PageInfo(
                    page=view.page,
                    page_size=view.page_size,
                    total_pages=view.total_pages,
                    has_more=view.has_more,
                ),
                providers=[_provider_info(p) for p in view.providers],
                filter_stats=camelize(view.filter_stats.model_dump(mode="json")),
                applied_filters=view.applied_filters,
                sort_by=view.sort_by,
            )
            filters[category] = [
                camelize(f.model_dump(mode="json")) for f in view.available_filters
            ]
            sorts[category] = [
                s.model_dump(mode="json") for s in available_sorts(category)
            ]

            stored = session.categories[category].results
            insight = price_insight(category, stored, session.price_history)
            if insight is not None:
                insights[category] = camelize(insight.model_dump(mode="json"))

            for summary in view.providers:
                info = _provider_info(summary).model_dump(by_alias=True)
                providers.append({"category": category.value, **info})
                if summary.from_cache:
                    sources.cached += summary.result_count
                else:
                    sources.live += summary.result_count

        counts = {c: session.categories[c].total_count for c in session.categories}
        groups = sum(len(c.groups) for c in session.categories.values())
        suggestions = build_recommendations(query, counts, groups)

        destination_info = None
        if query.destination_insight is not None:
            insight_dump = query.destination_insight.model_dump(mode="json")
            destination_info = camelize(insight_dump)

        return SearchData(
            session_token=session.token,
            status=session.status,
            results=results,
            query=camelize(query.model_dump(mode="json", include=_QUERY_ECHO_FIELDS)),
            filters=filters,
            sorts=sorts,
            suggestions=[camelize(s.model_dump(mode="json")) for s in suggestions],
            destination_info=destination_info,
            price_insights=insights,
            warnings=list(session.warnings),
            meta=SearchMeta(
                search_duration=int((time.monotonic() - started) * 1000),
                providers=providers,
                cache_hits=sum(1 for p in providers if p["fromCache"]),
                result_sources=sources,
                fallback_locations=query.fallback_locations,
            ),
        )


def _status(
    outcomes: Sequence[ExecutionResult],
    categories: dict[Category, CategoryResults],
    min_results_required: int,
) -> tuple[SearchStatus, list[str]]:
    """Completed without failures; partial with enough results; else failed."""
    failures = [o for o in outcomes if not o.success]
    warnings = [
        f"{o.provider_code} ({o.category}): {o.failure_kind}: {o.error}"
        for o in failures
    ]
    if not failures:
        return SearchStatus.COMPLETED, warnings

    unique = sum(len(c.results) for c in categories.values())
    any_success = any(o.success for o in outcomes)
    if any_success and unique >= min_results_required:
        summary = f"{len(failures)} of {len(outcomes)} provider calls failed"
        return SearchStatus.PARTIAL, [summary, *warnings]
    return SearchStatus.FAILED, warnings


def _summary(call: ExecutionResult) -> ProviderSummary:
    return ProviderSummary(
        code=call.provider_code,
        success=call.success,
        response_time_ms=call.response_time_ms,
        from_cache=call.from_cache,
        result_count=len(call.results),
        failure_kind=call.failure_kind,
        error=call.error,
    )


def _provider_info(summary: ProviderSummary) -> ProviderInfo:
    return ProviderInfo(
        code=summary.code,
        response_time=summary.response_time_ms,
        from_cache=summary.from_cache,
        result_count=summary.result_count,
        success=summary.success,
        error=summary.error,
    )


def _destination_item(entry: LocationEntry) -> DestinationItem:
    return DestinationItem(
        code=entry.code,
        name=entry.name,
        full_name=entry.full_name,
        type=entry.type,
        country_code=entry.country_code,
        tagline=entry.tagline,
        best_months=entry.best_months,
        popularity_score=entry.popularity_score,
    )
