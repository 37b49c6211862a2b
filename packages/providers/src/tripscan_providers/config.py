"""Provider configuration via environment variables."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tripscan_core.schemas import Category


class GatewayConfig(BaseModel):
    """One HTTP JSON gateway provider."""

    code: str
    name: str
    base_url: str
    api_key: str = ""
    priority: int = Field(default=50, ge=0, le=100)
    categories: list[Category] = Field(default_factory=lambda: [Category.FLIGHTS])
    timeout_ms: int = 8000
    enabled: bool = True


class ProviderSettings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PROVIDERS_", env_file=".env", extra="ignore"
    )

    # JSON list of GatewayConfig objects
    gateways: list[GatewayConfig] = Field(default_factory=list)

    # Fixture-backed providers (JSON file, see StaticAdapter.from_file)
    static_fixture_path: str = ""

    # Per-call timeout when a provider does not declare its own
    default_timeout_ms: int = 8000

    # Adapter-internal retry policy
    max_retries: int = 2
    retry_base_delay: float = 0.25
    retry_max_delay: float = 2.0

    health_check_timeout: float = 5.0


settings = ProviderSettings()
