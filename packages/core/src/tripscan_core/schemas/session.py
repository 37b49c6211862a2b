"""Persisted search session record."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field

from .enums import Category, FailureKind, SearchStatus, SortOption
from .filters import DuplicateGroup  # noqa: TC001
from .query import EnrichedQuery  # noqa: TC001
from .results import UnifiedResult  # noqa: TC001


class SessionAnalytics(BaseModel):
    """Interaction counters, updated atomically with each continuation."""

    results_viewed: int = 0
    filters_applied: int = 0
    sorts_applied: int = 0
    pages_viewed: int = 0
    continuations: int = 0
    clicked_offer_ids: list[str] = Field(default_factory=list)
    saved_offer_ids: list[str] = Field(default_factory=list)
    time_spent_seconds: float = 0.0


class PriceSnapshot(BaseModel):
    """Price distribution of one category at one point in time."""

    category: Category
    captured_at: datetime
    currency: str
    min_price: float
    max_price: float
    avg_price: float
    result_count: int


class ProviderSummary(BaseModel):
    """Per-provider outcome kept with the session and echoed in responses."""

    code: str
    success: bool
    response_time_ms: int = 0
    from_cache: bool = False
    result_count: int = 0
    failure_kind: FailureKind | None = None
    error: str | None = None


class CategoryResults(BaseModel):
    """Stored unique, ranked results of one category plus its view state."""

    category: Category
    results: list[UnifiedResult] = Field(default_factory=list)
    groups: list[DuplicateGroup] = Field(default_factory=list)
    providers: list[ProviderSummary] = Field(default_factory=list)
    applied_filters: dict[str, Any] = Field(default_factory=dict)
    sort_by: SortOption = SortOption.RECOMMENDED
    page: int = 1
    page_size: int = 50

    @property
    def total_count(self) -> int:
        return len(self.results)


class SearchSession(BaseModel):
    """Resumable state of one logical search, keyed by ``token``."""

    id: str
    token: str
    user_id: str | None = None
    anonymous_id: str | None = None
    query: EnrichedQuery
    status: SearchStatus = SearchStatus.PENDING
    categories: dict[Category, CategoryResults] = Field(default_factory=dict)
    created_at: datetime
    last_activity: datetime
    results_fetched_at: datetime | None = None
    analytics: SessionAnalytics = Field(default_factory=SessionAnalytics)
    price_history: list[PriceSnapshot] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def advance_status(self, status: SearchStatus) -> None:
        """Move the status forward; backward or sideways moves raise."""
        if status == self.status:
            return
        if self.status.is_terminal or status.stage < self.status.stage:
            msg = f"Cannot move session status from {self.status} to {status}"
            raise ValueError(msg)
        self.status = status

    def add_price_snapshot(self, snapshot: PriceSnapshot) -> PriceSnapshot:
        """Append a snapshot; out-of-order snapshots raise ``ValueError``.

        History is strictly ordered per category and never goes back in
        time overall.  Snapshots of different categories taken by the same
        fetch share its instant.
        """
        for previous in reversed(self.price_history):
            if snapshot.captured_at < previous.captured_at or (
                previous.category == snapshot.category
                and snapshot.captured_at == previous.captured_at
            ):
                msg = (
                    f"{snapshot.category} snapshot at {snapshot.captured_at} "
                    f"is not after {previous.captured_at}"
                )
                raise ValueError(msg)
            if previous.category == snapshot.category:
                break
        self.price_history.append(snapshot)
        return snapshot

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.last_activity > ttl

    def results_stale(self, now: datetime, window: timedelta) -> bool:
        if self.results_fetched_at is None:
            return True
        return now - self.results_fetched_at > window
