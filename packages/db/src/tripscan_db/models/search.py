"""Search history model."""

from __future__ import annotations

from datetime import date, datetime  # noqa: TC003

from sqlalchemy import Date, DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDPrimaryKeyMixin


class SearchHistoryEntry(UUIDPrimaryKeyMixin, Base):
    """Search history table - one row per executed search."""

    __tablename__ = "search_history"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    mode: Mapped[str] = mapped_column(String(20), default="unified")
    origin_code: Mapped[str | None] = mapped_column(String(8))
    destination_code: Mapped[str] = mapped_column(String(8), nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date)
    results_count: Mapped[int] = mapped_column(Integer, default=0)
    searched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_search_history_user_id", "user_id"),
        Index("ix_search_history_destination", "destination_code"),
        Index("ix_search_history_searched_at", "searched_at"),
    )

    def __repr__(self) -> str:
        origin = self.origin_code or "*"
        return f"<SearchHistoryEntry {origin}-{self.destination_code}>"
