"""SQLAlchemy ORM models for TripScan."""

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from .destination import DestinationIntelligence
from .preference import TravelPreference
from .search import SearchHistoryEntry

__all__ = [
    "Base",
    "DestinationIntelligence",
    "SearchHistoryEntry",
    "TimestampMixin",
    "TravelPreference",
    "UUIDPrimaryKeyMixin",
]
