from __future__ import annotations

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class InvalidationStrategy(str, Enum):
    """How cached query results are invalidated when records change."""

    RECORD = "record"  # Only entries known to contain the changed records
    OBJECT = "object"  # Every entry tagged for the entity


class CacheDriver(str, Enum):
    """Cache store backend selector."""

    MEMORY = "memory"
    MEMORY_UNTAGGED = "memory_untagged"
    REDIS = "redis"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QUERYCACHE_", env_file=".env", extra="ignore", frozen=True
    )

    app_name: str = "querycache"
    env: str = "dev"
    host: str = "0.0.0.0"  # nosec B104 - intentional for container deployments
    port: int = 8080

    # Query cache
    cache_enabled: bool = True
    default_ttl: int = Field(default=3600, ge=1)
    ttl_overrides: dict[str, int] = Field(default_factory=dict)
    invalidation_strategy: InvalidationStrategy = InvalidationStrategy.RECORD
    auto_invalidate_on_local_changes: bool = True
    analytics_enabled: bool = False
    record_id_field: str = "Id"
    key_prefix: str = "qc:"

    # Full-store flush is only allowed when the store cannot scope by tag
    # and the operator opted in.
    allow_full_flush: bool = False

    # Cache store
    cache_driver: CacheDriver = CacheDriver.MEMORY
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")

    # Change notification webhook
    webhook_invalidation: bool = False
    webhook_secret: str | None = None
    webhook_require_validation: bool = True

    # Observability
    enable_metrics: bool = True
    log_level: str = "INFO"
    log_json: bool = False


settings = Settings()
