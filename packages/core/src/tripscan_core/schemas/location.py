"""Location query and resolved location schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import LocationType


class Coordinates(BaseModel):
    """WGS84 point."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class LocationQuery(BaseModel):
    """Raw location input: free text, a code, or both."""

    model_config = ConfigDict(frozen=True)

    query: str | None = None
    code: str | None = None
    type: LocationType | None = None

    @field_validator("query")
    @classmethod
    def _strip_query(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().upper() or None

    @property
    def is_empty(self) -> bool:
        return not self.query and not self.code

    @property
    def text(self) -> str:
        """Best human-readable form of the input."""
        return self.query or self.code or ""


class ResolvedLocation(BaseModel):
    """Canonical location entity."""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    full_name: str | None = None
    type: LocationType = LocationType.CITY
    country_code: str = "XX"
    country_name: str | None = None
    coordinates: Coordinates | None = None
    timezone: str | None = None
    is_fallback: bool = False
