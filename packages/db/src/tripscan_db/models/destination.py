"""Destination intelligence model."""

from __future__ import annotations

from sqlalchemy import Float, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class DestinationIntelligence(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Destination reference data - canonical codes, names and popularity."""

    __tablename__ = "destination_intelligence"

    destination_code: Mapped[str] = mapped_column(
        String(8), unique=True, nullable=False
    )
    destination_name: Mapped[str] = mapped_column(String(255), nullable=False)
    destination_type: Mapped[str] = mapped_column(String(20), default="city")
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    country_name: Mapped[str | None] = mapped_column(String(100))
    timezone: Mapped[str | None] = mapped_column(String(50))
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)
    tagline: Mapped[str | None] = mapped_column(Text)
    best_months: Mapped[list | None] = mapped_column(JSONB)
    good_for: Mapped[list | None] = mapped_column(JSONB)
    avg_daily_cost: Mapped[float | None] = mapped_column(Float)
    popularity_score: Mapped[float] = mapped_column(Float, default=0.0)

    __table_args__ = (
        Index("ix_destination_intelligence_code", "destination_code"),
        Index("ix_destination_intelligence_name", "destination_name"),
        Index("ix_destination_intelligence_popularity", "popularity_score"),
    )

    def __repr__(self) -> str:
        return f"<DestinationIntelligence {self.destination_code}>"
