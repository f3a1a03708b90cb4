"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process-level configuration for sqs-listener.

    All settings can be overridden via environment variables.
    Prefix is not used to allow standard env var names (e.g., AWS_REGION).
    Engine knobs (polling interval, parallelism, ...) live in ListenerConfig.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False

    # Queue backend
    queue_backend: Literal["sqs", "memory"] = "sqs"
    aws_region: str = "us-east-1"
    sqs_endpoint_url: str | None = Field(
        default=None,
        description="Override SQS endpoint (e.g. LocalStack at http://localhost:4566)",
    )

    # Observability
    metrics_port: int = 8000
    tracing_enabled: bool = False
    otel_exporter_otlp_endpoint: str | None = None
    otel_service_name: str = "sqs-listener"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
