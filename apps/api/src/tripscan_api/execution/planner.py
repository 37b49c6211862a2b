"""Execution planner - which providers to call, in which phases."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tripscan_core.schemas import (
    Category,
    ExecutionPhase,
    ExecutionPlan,
    ExecutionStrategy,
    SearchMode,
)

if TYPE_CHECKING:
    from tripscan_core.schemas import EnrichedQuery
    from tripscan_providers.registry import AdapterRegistry

logger = logging.getLogger(__name__)


class ExecutionPlanner:
    """Builds an :class:`ExecutionPlan` from a query and the registry.

    * ``sequential`` for package mode: one stage per category, in order.
    * ``hybrid`` for the fast strategy across several categories: the
      primary category waits for every provider, the others return once
      ``fast_min_results`` results have arrived.
    * ``parallel`` otherwise: every phase in one concurrent stage.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        *,
        total_timeout_ms: int = 12000,
        phase_timeout_ms: int = 10000,
        min_results_required: int = 1,
        fast_min_results: int = 10,
    ) -> None:
        self._registry = registry
        self._total_timeout_ms = total_timeout_ms
        self._phase_timeout_ms = min(phase_timeout_ms, total_timeout_ms)
        self._min_results_required = min_results_required
        self._fast_min_results = fast_min_results

    def plan(self, query: EnrichedQuery) -> ExecutionPlan:
        searchable: list[tuple[Category, tuple[str, ...]]] = []
        for category in query.categories:
            if category is Category.FLIGHTS and query.origin_location is None:
                logger.info("Skipping flights: no origin in %s search", query.mode)
                continue
            adapters = self._registry.for_category(category)
            if not adapters:
                logger.warning("No providers support %s; skipping category", category)
                continue
            searchable.append((category, tuple(a.code for a in adapters)))

        fast = query.options.strategy == "fast"
        phase_timeout = self._phase_timeout_ms
        if query.options.strategy == "comprehensive":
            phase_timeout = self._total_timeout_ms

        if query.mode is SearchMode.PACKAGE:
            strategy = ExecutionStrategy.SEQUENTIAL
        elif fast and len(searchable) > 1:
            strategy = ExecutionStrategy.HYBRID
        else:
            strategy = ExecutionStrategy.PARALLEL

        phases: list[ExecutionPhase] = []
        for index, (category, providers) in enumerate(searchable):
            if strategy is ExecutionStrategy.SEQUENTIAL:
                stage, wait_for_all = index, True
            elif strategy is ExecutionStrategy.HYBRID:
                stage, wait_for_all = 0, index == 0
            else:
                stage, wait_for_all = 0, not fast
            phases.append(
                ExecutionPhase(
                    stage=stage,
                    category=category,
                    providers=providers,
                    timeout_ms=phase_timeout,
                    wait_for_all=wait_for_all,
                    min_results=0 if wait_for_all else self._fast_min_results,
                )
            )

        plan = ExecutionPlan(
            strategy=strategy,
            phases=tuple(phases),
            total_timeout_ms=self._total_timeout_ms,
            min_results_required=self._min_results_required,
        )
        logger.info(
            "Planned %s search: %s",
            plan.strategy,
            ", ".join(f"{p.category}[{len(p.providers)}]" for p in plan.phases) or "-",
        )
        return plan
