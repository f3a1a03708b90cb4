"""
Listener engine configuration.

Provides Pydantic settings for the poll/delete cadence, the per-cycle
worker pool, the pending-delete buffer and the visibility-extension pool.
The config is frozen once built and passed explicitly to every component.
"""

from typing import Any

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from sqs_listener.listener.exceptions import ConfigurationError

# Hard limits imposed by the SQS API
MAX_RECEIVE_BATCH = 10
MAX_DELETE_BATCH = 10
MAX_WAIT_SECONDS = 20
MAX_VISIBILITY_TIMEOUT_SECONDS = 43_200  # 12 hours


class ListenerConfig(BaseSettings):
    """
    Configuration for the listener engine.

    Settings can be overridden via environment variables prefixed with SQS_LISTENER_.
    """

    model_config = SettingsConfigDict(
        env_prefix="SQS_LISTENER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Cadence
    polling_interval_seconds: int = Field(
        default=10,
        ge=1,
        description="Seconds between poll cycles; deletes run offset by half of this",
    )
    visibility_timeout_seconds: int = Field(
        default=30,
        ge=0,
        le=MAX_VISIBILITY_TIMEOUT_SECONDS,
        description="Base visibility timeout for received messages",
    )

    # Processing
    parallelism: int = Field(
        default=1,
        ge=1,
        le=MAX_RECEIVE_BATCH,
        description="Maximum concurrent handler invocations per cycle",
    )

    # Acknowledgement buffer
    delete_queue_capacity: int = Field(
        default=1000,
        ge=1,
        description="Receipt handles buffered for deletion before new ones are dropped",
    )

    # Visibility extension pool
    retry_workers: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Worker tasks issuing visibility extensions for failed messages",
    )
    retry_queue_capacity: int = Field(
        default=1000,
        ge=1,
        description="Pending extension requests before new ones are shed",
    )

    # Scheduling
    allow_overlapping_cycles: bool = Field(
        default=False,
        description="Let a poll tick start while the previous cycle is still draining",
    )
    shutdown_timeout_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="Time to wait for in-flight cycles on stop()",
    )

    def __init__(self, **values: Any) -> None:
        """
        Raises:
            ConfigurationError: If any value is out of range (e.g. parallelism
                outside 1-10), from keyword arguments or the environment.
        """
        try:
            super().__init__(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid listener configuration: {e}") from e

    @property
    def receive_batch_size(self) -> int:
        """Messages requested per receive call."""
        return min(self.parallelism, MAX_RECEIVE_BATCH)

    @property
    def receive_wait_seconds(self) -> int:
        """Long-poll wait per receive call."""
        return min(self.polling_interval_seconds, MAX_WAIT_SECONDS)

    @property
    def delete_offset_seconds(self) -> float:
        """Delay before the first delete tick."""
        return self.polling_interval_seconds / 2


def load_listener_config(**overrides) -> ListenerConfig:
    """
    Build a ListenerConfig from environment defaults plus explicit overrides.

    Raises:
        ConfigurationError: If any value is out of range (e.g. parallelism
            outside 1-10).
    """
    return ListenerConfig(**overrides)
