"""API configuration via environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Application settings loaded from environment / .env file."""

    database_url: str = "postgresql+asyncpg://localhost:5432/tripscan"
    redis_url: str = "redis://localhost:6379/0"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Sessions
    session_store: Literal["redis", "memory"] = "redis"
    session_ttl: int = 1800  # 30 min of inactivity
    results_freshness: int = 300  # 5 min before continue refetches
    session_lock_timeout: float = 10.0

    # Paging
    default_page_size: int = 20
    max_page_size: int = 100

    # Execution
    search_timeout_ms: int = 12000
    phase_timeout_ms: int = 10000
    min_results_required: int = 1
    fast_min_results: int = 10

    # Deduplication thresholds
    dedup_flight_threshold: float = 0.85
    dedup_hotel_threshold: float = 0.80
    dedup_car_threshold: float = 0.75
    dedup_experience_threshold: float = 0.70

    # Ranking
    ranking_profile: Literal["balanced", "price", "quality"] = "balanced"

    # Cache TTLs in seconds
    location_cache_ttl: int = 3600  # 1 hour
    trending_cache_ttl: int = 900  # 15 min

    model_config = SettingsConfigDict(
        env_prefix="API_", env_file=".env", extra="ignore"
    )


settings = ApiSettings()
