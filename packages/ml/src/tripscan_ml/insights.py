"""Price statistics and trends over a category's unique results."""

from __future__ import annotations

import statistics
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel

from tripscan_core.schemas import PriceSnapshot

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from tripscan_core.schemas import Category, UnifiedResult

# Relative change between snapshots below which the trend is "stable".
TREND_TOLERANCE = 0.02


class PriceInsight(BaseModel):
    """Summary of prices in one category."""

    currency: str
    min_price: float
    max_price: float
    avg_price: float
    median_price: float
    cheapest_id: str
    trend: Literal["rising", "falling", "stable"] | None = None
    change_pct: float | None = None


def snapshot(
    category: Category, results: Sequence[UnifiedResult], captured_at: datetime
) -> PriceSnapshot | None:
    """Price distribution of ``results`` at ``captured_at``; None when empty."""
    if not results:
        return None
    prices = [r.price.amount for r in results]
    return PriceSnapshot(
        category=category,
        captured_at=captured_at,
        currency=results[0].price.currency,
        min_price=min(prices),
        max_price=max(prices),
        avg_price=round(statistics.fmean(prices), 2),
        result_count=len(prices),
    )


def price_insight(
    category: Category,
    results: Sequence[UnifiedResult],
    history: Sequence[PriceSnapshot] = (),
) -> PriceInsight | None:
    """Current price summary, with a trend against the latest earlier snapshot."""
    if not results:
        return None
    prices = [r.price.amount for r in results]
    cheapest = min(results, key=lambda r: (r.price.amount, r.id))
    avg = round(statistics.fmean(prices), 2)

    trend = None
    change = None
    previous = [s for s in history if s.category == category]
    if len(previous) >= 2:
        before, after = previous[-2].avg_price, previous[-1].avg_price
        if before > 0:
            change = round((after - before) / before * 100, 2)
            if abs(change) / 100 < TREND_TOLERANCE:
                trend = "stable"
            else:
                trend = "rising" if change > 0 else "falling"

    return PriceInsight(
        currency=cheapest.price.currency,
        min_price=min(prices),
        max_price=max(prices),
        avg_price=avg,
        median_price=round(statistics.median(prices), 2),
        cheapest_id=cheapest.id,
        trend=trend,
        change_pct=change,
    )
