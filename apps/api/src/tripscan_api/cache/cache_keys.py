"""Cache key builders for consistent namespacing."""

from __future__ import annotations


def session_key(token: str) -> str:
    """Build key for a persisted search session."""
    return f"session:{token}"


def session_lock_key(token: str) -> str:
    """Build key for the per-token session write lock."""
    return f"session:{token}:lock"


def location_key(term: str) -> str:
    """Build cache key for a location lookup by code or name."""
    return f"locations:lookup:{term.strip().lower()}"


def autocomplete_key(term: str, limit: int) -> str:
    """Build cache key for destination autocomplete."""
    return f"locations:autocomplete:{term.strip().lower()}:{limit}"


def trending_key(limit: int) -> str:
    """Build cache key for trending destinations."""
    return f"locations:trending:{limit}"
