"""Error taxonomy shared by the search engine and the API layer."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorInfo(BaseModel):
    """Structured ``{code, message, details}`` error payload."""

    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class TripScanError(Exception):
    """Base class for all domain errors."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(code=self.code, message=self.message, details=self.details)


class ValidationError(TripScanError):
    """Malformed or incomplete query, rejected before any provider call."""

    code = "VALIDATION_ERROR"


class ResolutionError(TripScanError):
    """A location could not be resolved to anything usable."""

    code = "RESOLUTION_ERROR"


class ProviderError(TripScanError):
    """One adapter failed; never crosses the engine boundary."""

    code = "PROVIDER_ERROR"

    def __init__(self, provider_code: str, message: str, **details: Any) -> None:
        super().__init__(message, provider=provider_code, **details)
        self.provider_code = provider_code


class UnsupportedCategoryError(ProviderError):
    """An adapter was asked for a category it does not declare."""

    code = "UNSUPPORTED_CATEGORY"


class PartialResultsError(TripScanError):
    """Some providers failed but enough results were collected."""

    code = "PARTIAL_RESULTS"


class SessionNotFoundError(TripScanError):
    """Continuation token is unknown or expired."""

    code = "SESSION_NOT_FOUND"

    def __init__(self, token: str) -> None:
        super().__init__("Search session not found or expired")
        self.token = token


class InternalError(TripScanError):
    """Unexpected fault, surfaced generically."""

    code = "INTERNAL_ERROR"
