"""Runs an execution plan against the adapter registry."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tripscan_core.schemas import AdapterFailure, ExecutionResult, FailureKind

from .params import build_params

if TYPE_CHECKING:
    from tripscan_core.schemas import (
        AdapterContext,
        Category,
        EnrichedQuery,
        ExecutionPhase,
        ExecutionPlan,
        SearchParams,
    )
    from tripscan_providers.base import ProviderAdapter
    from tripscan_providers.registry import AdapterRegistry

logger = logging.getLogger(__name__)


class PlanExecutor:
    """Concurrent, deadline-bounded fan-out over the providers of a plan.

    Every planned provider yields exactly one :class:`ExecutionResult`,
    in plan order.  Calls are never retried here; stragglers past a
    deadline or an early return are cancelled and never awaited again.
    """

    def __init__(self, registry: AdapterRegistry) -> None:
        self._registry = registry

    async def execute(
        self,
        plan: ExecutionPlan,
        query: EnrichedQuery,
        context: AdapterContext,
    ) -> list[ExecutionResult]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + plan.total_timeout_ms / 1000
        results: list[ExecutionResult] = []

        for stage in plan.stages:
            if loop.time() >= deadline:
                for phase in stage:
                    results.extend(
                        _failure(
                            code, phase.category, FailureKind.TIMEOUT, "Out of time"
                        )
                        for code in phase.providers
                    )
                continue
            stage_results = await asyncio.gather(
                *(self._run_phase(phase, query, context, deadline) for phase in stage)
            )
            for phase_results in stage_results:
                results.extend(phase_results)

        failed = sum(1 for r in results if not r.success)
        logger.info(
            "Executed %s plan: %d calls, %d failed", plan.strategy, len(results), failed
        )
        return results

    async def _run_phase(
        self,
        phase: ExecutionPhase,
        query: EnrichedQuery,
        context: AdapterContext,
        deadline: float,
    ) -> list[ExecutionResult]:
        loop = asyncio.get_running_loop()
        started = loop.time()
        phase_deadline = min(deadline, started + phase.timeout_ms / 1000)

        try:
            params = build_params(phase.category, query)
        except ValueError as exc:
            return [
                _failure(code, phase.category, FailureKind.INVALID_REQUEST, str(exc))
                for code in phase.providers
            ]

        tasks = {
            code: asyncio.create_task(
                self._call(
                    self._registry.get(code),
                    phase.category,
                    params,
                    context,
                    phase_deadline,
                ),
                name=f"{phase.category}:{code}",
            )
            for code in phase.providers
        }
        finished: dict[str, ExecutionResult] = {}
        pending: set[asyncio.Task[ExecutionResult]] = set(tasks.values())
        collected = 0

        while pending:
            done, pending = await asyncio.wait(
                pending, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                result = task.result()
                finished[result.provider_code] = result
                if result.success:
                    collected += len(result.results)

            early_exit = not phase.wait_for_all and phase.min_results > 0
            if early_exit and pending and collected >= phase.min_results:
                elapsed = int((loop.time() - started) * 1000)
                for code, task in tasks.items():
                    if task in pending:
                        task.cancel()
                        finished[code] = _failure(
                            code,
                            phase.category,
                            FailureKind.ABANDONED,
                            "Abandoned after enough results arrived",
                            elapsed,
                        )
                logger.info(
                    "%s phase returned early with %d results; abandoned %d providers",
                    phase.category,
                    collected,
                    len(pending),
                )
                break

        return [finished[code] for code in phase.providers]

    async def _call(
        self,
        adapter: ProviderAdapter,
        category: Category,
        params: SearchParams,
        context: AdapterContext,
        deadline: float,
    ) -> ExecutionResult:
        loop = asyncio.get_running_loop()
        start = loop.time()
        budget = min(adapter.timeout_ms / 1000, deadline - start)
        if budget <= 0:
            return _failure(adapter.code, category, FailureKind.TIMEOUT, "No time left")
        call_context = context.model_copy(update={"timeout_ms": int(budget * 1000)})

        try:
            async with asyncio.timeout(budget):
                outcome = await adapter.search(category, params, call_context)
        except TimeoutError:
            elapsed = int((loop.time() - start) * 1000)
            logger.warning(
                "Provider %s timed out on %s after %dms",
                adapter.code,
                category,
                elapsed,
            )
            return _failure(
                adapter.code,
                category,
                FailureKind.TIMEOUT,
                f"Timed out after {elapsed}ms",
                elapsed,
            )
        except Exception as exc:
            elapsed = int((loop.time() - start) * 1000)
            logger.exception(
                "Provider %s raised during %s search", adapter.code, category
            )
            return _failure(
                adapter.code,
                category,
                FailureKind.ERROR,
                str(exc) or type(exc).__name__,
                elapsed,
            )

        elapsed = int((loop.time() - start) * 1000)
        if isinstance(outcome, AdapterFailure):
            result = _failure(
                adapter.code, category, outcome.kind, outcome.message, elapsed
            )
        elif stray := {r.category for r in outcome.results if r.category != category}:
            logger.warning(
                "Provider %s returned %s results for a %s search",
                adapter.code,
                ", ".join(sorted(stray)),
                category,
            )
            result = _failure(
                adapter.code,
                category,
                FailureKind.BAD_RESPONSE,
                f"Returned {', '.join(sorted(stray))} results for a {category} search",
                elapsed,
            )
        else:
            result = ExecutionResult(
                provider_code=adapter.code,
                category=category,
                success=True,
                results=outcome.results,
                response_time_ms=elapsed,
                from_cache=outcome.from_cache,
                total_count=outcome.total_count or len(outcome.results),
                has_more=outcome.has_more,
            )
        logger.debug("Provider call finished: %s", result.summary())
        return result


def _failure(
    code: str,
    category: Category,
    kind: FailureKind,
    message: str,
    elapsed_ms: int = 0,
) -> ExecutionResult:
    return ExecutionResult(
        provider_code=code,
        category=category,
        success=False,
        failure_kind=kind,
        error=message,
        response_time_ms=elapsed_ms,
    )
