"""Parse a gateway search response into unified results."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from tripscan_providers.normalizer import NormalizationError

if TYPE_CHECKING:
    from tripscan_core.schemas import Category, UnifiedResult
    from tripscan_providers.normalizer import ResultNormalizer


def parse_gateway_response(
    raw: Any,
    category: Category,
    normalizer: ResultNormalizer,
    *,
    currency: str | None = None,
) -> tuple[list[UnifiedResult], int, bool]:
    """Convert ``{"data": [...], "meta": {...}}`` into results.

    Returns ``(results, total_count, has_more)``.  ``total_count`` falls back
    to the number of offers when the gateway does not report one.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("data"), list):
        msg = "gateway response has no 'data' list"
        raise NormalizationError(msg)

    offers = [item for item in raw["data"] if isinstance(item, dict)]
    results = normalizer.normalize_many(category, offers, currency=currency)

    meta = raw.get("meta") if isinstance(raw.get("meta"), dict) else {}
    total = meta.get("total", len(offers))
    has_more = bool(meta.get("hasMore", meta.get("has_more", False)))
    try:
        total_count = max(int(total), len(results))
    except (TypeError, ValueError):
        total_count = len(results)
    return results, total_count, has_more
