"""Realtime subscription manager settings."""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RealtimeSettings(BaseSettings):
    """Realtime manager configuration.

    Environment variables use REALTIME_ prefix.
    Example: REALTIME_MAX_RECONNECT_ATTEMPTS=3, REALTIME_HEARTBEAT_INTERVAL=15
    """

    enabled: bool = Field(
        default=True,
        description="Build the realtime manager at application startup",
    )
    default_schema: str = Field(
        default="public",
        min_length=1,
        description="Database schema used by the subscription helpers",
    )
    identity_field: str = Field(
        default="id",
        min_length=1,
        description="Row field used to match change events to optimistic updates",
    )

    # Optimistic updates
    optimistic_update_timeout: float = Field(
        default=10.0,
        gt=0.0,
        le=3600.0,
        description="Seconds after which an optimistic update is evicted",
    )
    rollback_timeout: float = Field(
        default=5.0,
        gt=0.0,
        le=3600.0,
        description="Default rollback window for optimistic updates with rollback",
    )

    # Reconnection
    max_reconnect_attempts: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Resubscription attempts before a subscription is abandoned",
    )
    reconnect_base_delay: float = Field(
        default=1.0,
        gt=0.0,
        le=300.0,
        description="Delay before the first resubscription attempt, doubled each time",
    )
    reconnect_max_delay: float = Field(
        default=60.0,
        gt=0.0,
        le=3600.0,
        description="Upper bound on the resubscription delay",
    )
    reconnect_jitter: bool = Field(
        default=False,
        description="Randomise resubscription delays",
    )

    # Health monitor
    heartbeat_interval: float = Field(
        default=30.0,
        ge=0.0,
        le=3600.0,
        description="Seconds between staleness checks (0 disables the heartbeat)",
    )
    stale_threshold: float = Field(
        default=120.0,
        gt=0.0,
        le=86400.0,
        description="Seconds without activity before the connection is considered stale",
    )

    @model_validator(mode="after")
    def validate_delays(self) -> RealtimeSettings:
        if self.reconnect_max_delay < self.reconnect_base_delay:
            msg = "reconnect_max_delay must be >= reconnect_base_delay"
            raise ValueError(msg)
        return self

    model_config = SettingsConfigDict(
        env_prefix="REALTIME_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
