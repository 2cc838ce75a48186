"""Application settings loaded from environment variables.

Hey future me - everything the sync engine can be tuned with lives here!
Env vars use the REELSYNC_ prefix and "__" for nesting, e.g.:

    REELSYNC_SYNC__AUTO_SYNC_ENABLED=true
    REELSYNC_SYNC__REQUESTS_PER_SECOND=3
    REELSYNC_DATABASE__URL=sqlite+aiosqlite:////data/reelsync.db

Out-of-range values are NOT silently clamped. get_settings() turns pydantic's
ValidationError into our ConfigurationError so the scheduler refuses to start
with a broken config instead of hammering the metadata API.
"""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from reelsync.domain.exceptions import ConfigurationError


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///./reelsync.db"
    echo: bool = False
    pool_pre_ping: bool = True
    # PostgreSQL only - ignored for SQLite
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600


class ObservabilitySettings(BaseModel):
    """Logging output settings."""

    log_json_format: bool = False


class SyncSettings(BaseModel):
    """Background sync engine settings.

    Hey future me - auto_sync_enabled defaults to OFF on purpose. A fresh install
    must not start pulling thousands of titles before the operator has looked at
    the rate limit.
    """

    auto_sync_enabled: bool = False
    requests_per_second: int = Field(default=4, ge=1, le=5)

    # Default option flags for triggers that do a full refresh
    sync_images: bool = True
    sync_videos: bool = True
    sync_credits: bool = True

    # Worker pacing
    max_batch: int = Field(default=10, ge=1)
    job_cooldown_seconds: float = Field(default=2.0, ge=1.0, le=5.0)
    worker_interval_minutes: int = Field(default=15, ge=1)
    executor_timeout_seconds: float = Field(default=30.0, gt=0)
    processing_timeout_seconds: int = Field(default=600, ge=1)

    # Trigger windows
    recent_window_minutes: int = Field(default=60, ge=1)
    stale_after_days: int = Field(default=7, ge=1)
    status_retention_days: int = Field(default=30, ge=1)

    # Per-trigger enqueue caps
    recent_batch_size: int = Field(default=25, ge=1)
    image_batch_size: int = Field(default=10, ge=1)
    stale_batch_size: int = Field(default=50, ge=1)
    popularity_batch_size: int = Field(default=100, ge=1)

    # Optional host callback that performs fetch + upsert for a job
    executor_webhook_url: str | None = None
    # Successful webhook results are reused for this long (0 = never cached)
    webhook_cache_ttl_seconds: int = Field(default=3600, ge=0)

    @property
    def min_request_interval(self) -> float:
        """Seconds between two outbound API calls."""
        return 1.0 / self.requests_per_second


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="REELSYNC_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "reelsync"
    app_env: Literal["development", "production", "test"] = "production"
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process.

    Raises:
        ConfigurationError: If any value is missing or out of range
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid sync configuration: {e}") from e
