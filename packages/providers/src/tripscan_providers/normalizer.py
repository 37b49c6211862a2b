"""Map provider-native offer payloads into unified results.

Adapters hand every native offer to a :class:`ResultNormalizer` bound to
their provider.  The normalizer assigns the stable offer id, stamps the
provider descriptor and retrieval time, and validates the category payload.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from tripscan_core.ids import offer_id
from tripscan_core.schemas import (
    CarResult,
    Category,
    ExperienceResult,
    FlightResult,
    HotelResult,
    ProviderStamp,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from tripscan_core.schemas import UnifiedResult

logger = logging.getLogger(__name__)

_MODEL_BY_CATEGORY: dict[Category, type] = {
    Category.FLIGHTS: FlightResult,
    Category.HOTELS: HotelResult,
    Category.CARS: CarResult,
    Category.EXPERIENCES: ExperienceResult,
}

# Envelope fields owned by the normalizer, never taken from the payload.
_ENVELOPE_FIELDS = frozenset({"id", "provider", "ranking", "alternatives", "type"})


class NormalizationError(ValueError):
    """A native payload could not be mapped to a unified result."""


class ResultNormalizer:
    """Builds stamped unified results for one provider."""

    def __init__(
        self,
        provider_code: str,
        provider_name: str,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._code = provider_code
        self._name = provider_name
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def stamp(self) -> ProviderStamp:
        return ProviderStamp(
            code=self._code, name=self._name, retrieved_at=self._clock()
        )

    def normalize(
        self,
        category: Category,
        native_id: str,
        payload: dict[str, Any],
        *,
        stamp: ProviderStamp | None = None,
        currency: str | None = None,
    ) -> UnifiedResult:
        """Validate one payload and wrap it in the unified envelope."""
        model = _MODEL_BY_CATEGORY[category]
        data = {k: v for k, v in payload.items() if k not in _ENVELOPE_FIELDS}
        data.pop("offer_id", None)
        if currency is not None and isinstance(data.get("price"), dict):
            data["price"] = {"currency": currency, **data["price"]}
        data["id"] = offer_id(self._code, native_id)
        data["provider_offer_id"] = str(native_id)
        data["provider"] = stamp or self.stamp()
        try:
            return model.model_validate(data)
        except PydanticValidationError as exc:
            msg = f"{self._code}: invalid {category} offer {native_id}"
            raise NormalizationError(msg) from exc

    def normalize_many(
        self,
        category: Category,
        payloads: Iterable[dict[str, Any]],
        *,
        currency: str | None = None,
    ) -> list[UnifiedResult]:
        """Normalize a batch, skipping malformed offers.

        All results of one batch share the same retrieval stamp.
        """
        stamp = self.stamp()
        results: list[UnifiedResult] = []
        skipped = 0
        for payload in payloads:
            native_id = payload.get("offer_id") or payload.get("id")
            if not native_id:
                skipped += 1
                continue
            try:
                results.append(
                    self.normalize(
                        category,
                        str(native_id),
                        payload,
                        stamp=stamp,
                        currency=currency,
                    )
                )
            except NormalizationError as exc:
                skipped += 1
                logger.warning("Skipping offer: %s (%s)", exc, exc.__cause__)
        if skipped:
            logger.warning(
                "%s: skipped %d malformed %s offers", self._code, skipped, category
            )
        return results
