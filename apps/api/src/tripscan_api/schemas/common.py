"""Shared response schemas."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def camelize(value: Any) -> Any:
    """Recursively convert dict keys of a JSON-ready value to camelCase."""
    if isinstance(value, dict):
        return {
            to_camel(k) if isinstance(k, str) else k: camelize(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [camelize(v) for v in value]
    return value


class ApiError(CamelModel):
    """Standard error payload."""

    code: str
    message: str
    details: dict[str, Any] = {}


class ApiResponse(CamelModel, Generic[T]):
    """``{success, data | error}`` envelope used by every endpoint."""

    success: bool = True
    data: T | None = None
    error: ApiError | None = None
