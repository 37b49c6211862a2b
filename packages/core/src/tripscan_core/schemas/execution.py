"""Adapter contract and execution plan/result schemas."""

from __future__ import annotations

from datetime import date, datetime  # noqa: TC003
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .enums import CabinClass, Category, ExecutionStrategy, FailureKind, TripType
from .location import Coordinates  # noqa: TC001
from .query import TravelerCount
from .results import UnifiedResult  # noqa: TC001


class AdapterContext(BaseModel):
    """Per-request context shared by every adapter call."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    session_id: str | None = None
    user_id: str | None = None
    currency: str = "USD"
    language: str = "en"
    timeout_ms: int = 8000
    credentials: dict[str, str] = Field(default_factory=dict, repr=False)


class FlightSearchParams(BaseModel):
    """Category parameters for a flight search."""

    model_config = ConfigDict(frozen=True)

    origin: str
    destination: str
    departure_date: date
    return_date: date | None = None
    trip_type: TripType = TripType.ONE_WAY
    cabin_class: CabinClass = CabinClass.ECONOMY
    travelers: TravelerCount = Field(default_factory=TravelerCount)
    flexible_days: int = 0
    max_results: int = 50


class HotelSearchParams(BaseModel):
    """Category parameters for a lodging search."""

    model_config = ConfigDict(frozen=True)

    destination: str
    city: str
    coordinates: Coordinates | None = None
    check_in: date
    check_out: date
    travelers: TravelerCount = Field(default_factory=TravelerCount)
    rooms: int = 1
    max_results: int = 50


class CarSearchParams(BaseModel):
    """Category parameters for a car rental search."""

    model_config = ConfigDict(frozen=True)

    pickup_location: str
    dropoff_location: str
    pickup_at: datetime
    dropoff_at: datetime
    driver_age: int = 30
    max_results: int = 50


class ExperienceSearchParams(BaseModel):
    """Category parameters for an experience search."""

    model_config = ConfigDict(frozen=True)

    destination: str
    city: str
    coordinates: Coordinates | None = None
    start_date: date
    end_date: date
    travelers: TravelerCount = Field(default_factory=TravelerCount)
    max_results: int = 50


SearchParams = (
    FlightSearchParams | HotelSearchParams | CarSearchParams | ExperienceSearchParams
)


class AdapterSuccess(BaseModel):
    """A provider answered; ``results`` may legitimately be empty."""

    ok: Literal[True] = True
    results: list[UnifiedResult] = Field(default_factory=list)
    total_count: int = 0
    has_more: bool = False
    from_cache: bool = False


class AdapterFailure(BaseModel):
    """A provider could not answer for a recoverable reason."""

    ok: Literal[False] = False
    kind: FailureKind
    message: str
    retryable: bool = False
    status_code: int | None = None


AdapterOutcome = AdapterSuccess | AdapterFailure


class HealthCheckResult(BaseModel):
    """Result of probing one provider."""

    provider_code: str
    healthy: bool
    response_time_ms: int = 0
    error: str | None = None
    checked_at: datetime


class ExecutionPhase(BaseModel):
    """One timed, provider-scoped unit of a search plan."""

    model_config = ConfigDict(frozen=True)

    stage: int = Field(ge=0)
    category: Category
    providers: tuple[str, ...]
    timeout_ms: int = Field(gt=0)
    wait_for_all: bool = True
    min_results: int = Field(default=0, ge=0)


class ExecutionPlan(BaseModel):
    """Ordered phases plus the overall budget."""

    model_config = ConfigDict(frozen=True)

    strategy: ExecutionStrategy = ExecutionStrategy.PARALLEL
    phases: tuple[ExecutionPhase, ...] = ()
    total_timeout_ms: int = Field(gt=0)
    min_results_required: int = Field(default=1, ge=0)

    @property
    def categories(self) -> list[Category]:
        return [phase.category for phase in self.phases]

    @property
    def stages(self) -> list[list[ExecutionPhase]]:
        """Phases grouped by stage number, in stage order."""
        grouped: dict[int, list[ExecutionPhase]] = {}
        for phase in self.phases:
            grouped.setdefault(phase.stage, []).append(phase)
        return [grouped[stage] for stage in sorted(grouped)]


class ExecutionResult(BaseModel):
    """Outcome of one provider call within a phase."""

    provider_code: str
    category: Category
    success: bool
    results: list[UnifiedResult] = Field(default_factory=list)
    failure_kind: FailureKind | None = None
    error: str | None = None
    response_time_ms: int = 0
    from_cache: bool = False
    total_count: int = 0
    has_more: bool = False

    def summary(self) -> dict[str, Any]:
        """Compact form for logs and response metadata."""
        return {
            "code": self.provider_code,
            "category": self.category.value,
            "success": self.success,
            "response_time": self.response_time_ms,
            "result_count": len(self.results),
            "error": self.error,
        }
