"""Travel preference model."""

from __future__ import annotations

from sqlalchemy import Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class TravelPreference(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Travel preferences table - personalization profile keyed by user."""

    __tablename__ = "travel_preferences"

    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    budget_priority: Mapped[str | None] = mapped_column(String(20))
    preferred_airlines: Mapped[list | None] = mapped_column(JSONB)
    preferred_hotel_chains: Mapped[list | None] = mapped_column(JSONB)
    required_amenities: Mapped[list | None] = mapped_column(JSONB)
    preferred_cabin_class: Mapped[str | None] = mapped_column(String(20))
    home_airport: Mapped[str | None] = mapped_column(String(3))

    __table_args__ = (Index("ix_travel_preferences_user_id", "user_id"),)

    def __repr__(self) -> str:
        return f"<TravelPreference user_id={self.user_id}>"
