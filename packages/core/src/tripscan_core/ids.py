"""Stable identifiers for provider offers."""

from __future__ import annotations

import hashlib

_ID_DIGEST_CHARS = 20


def offer_id(provider_code: str, provider_offer_id: str) -> str:
    """Return the unified id for a provider-native offer.

    The id only depends on the provider code (case-insensitive) and the
    native offer id, so the same offer maps to the same id in every process.
    """
    code = provider_code.strip().lower()
    if not code:
        msg = "provider_code must not be empty"
        raise ValueError(msg)
    native = str(provider_offer_id).strip()
    if not native:
        msg = "provider_offer_id must not be empty"
        raise ValueError(msg)
    digest = hashlib.sha1(f"{code}:{native}".encode()).hexdigest()
    return f"{code}_{digest[:_ID_DIGEST_CHARS]}"
