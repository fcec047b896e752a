"""Settings for the page loader.

Every value has a default and can be overridden from the environment or a
`.env` file, for example `PAGE_LOADER_SOURCE__BASE_URL` or
`PAGE_LOADER_CACHE__STALE_WHILE_REVALIDATE=true`.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SourceConfig(BaseModel):
    """Upstream configuration source."""

    base_url: str = Field(
        default="http://localhost:3001", description="Base URL of the configuration backend"
    )

    resource_path: str = Field(
        default="/ui/pages/{resource_id}",
        description="Path template for a single page configuration",
    )

    headers: dict[str, str] = Field(
        default_factory=dict, description="Static headers sent with every request"
    )

    @field_validator("resource_path")
    @classmethod
    def validate_resource_path(cls, v: str) -> str:
        """Ensure the path template has a resource placeholder."""
        if "{resource_id}" not in v:
            raise ValueError("resource_path must contain '{resource_id}'")
        return v


class TimeoutConfig(BaseModel):
    """Timeout-related configuration."""

    fetch_timeout: float = Field(
        default=10.0, gt=0, le=300, description="Per-request fetch timeout in seconds"
    )

    connect_timeout: float = Field(
        default=5.0, gt=0, le=60, description="Connection establishment timeout in seconds"
    )


class RetryConfig(BaseModel):
    """Retry-related configuration for callers wrapping load()."""

    max_attempts: int = Field(default=3, ge=1, le=10, description="Maximum retry attempts")

    initial_delay: float = Field(
        default=0.5, gt=0, le=10, description="Initial retry delay in seconds"
    )

    max_delay: float = Field(
        default=30.0, gt=0, le=300, description="Maximum retry delay in seconds"
    )


class CacheConfig(BaseModel):
    """Cache-related configuration."""

    capacity: int = Field(
        default=500, ge=1, le=1_000_000, description="Maximum number of cached page configurations"
    )

    max_memory_mb: int = Field(
        default=64, ge=1, le=10000, description="Maximum memory usage for the cache in MB"
    )

    default_ttl_seconds: float = Field(
        default=3600.0, gt=0, le=604800, description="Default entry TTL in seconds"
    )

    stale_while_revalidate: bool = Field(
        default=False, description="Serve expired entries while refreshing in the background"
    )

    stale_fallback_enabled: bool = Field(
        default=True, description="Serve expired entries when the backend is unreachable"
    )

    respect_cache_control: bool = Field(
        default=True, description="Use Cache-Control max-age as the entry TTL when present"
    )

    snapshot_path: Path | None = Field(
        default=None, description="Optional msgpack snapshot file for warm starts"
    )


class LoaderConfig(BaseSettings):
    """Root settings object, read from ``PAGE_LOADER_*`` variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="PAGE_LOADER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Sections, addressed as PAGE_LOADER_<SECTION>__<FIELD>
    source: SourceConfig = Field(default_factory=SourceConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    retries: RetryConfig = Field(default_factory=RetryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    # Bypasses the cache entirely
    development_mode: bool = Field(
        default=False, description="Disable all caching so the latest configuration is observed"
    )

    @property
    def default_ttl(self) -> timedelta:
        """Get default cache TTL as timedelta."""
        return timedelta(seconds=self.cache.default_ttl_seconds)

    def resource_url(self, resource_id: str) -> str:
        """Get the absolute URL for a resource."""
        path = self.source.resource_path.format(resource_id=resource_id)
        return f"{self.source.base_url.rstrip('/')}{path}"


@lru_cache(maxsize=1)
def get_config() -> LoaderConfig:
    """Get the singleton configuration instance.

    This function returns a cached configuration instance that reads from
    environment variables and configuration files.

    Returns:
        LoaderConfig: The configuration instance
    """
    return LoaderConfig()


def reload_config() -> LoaderConfig:
    """Reload configuration from environment.

    This clears the cache and creates a new configuration instance.

    Returns:
        LoaderConfig: The new configuration instance
    """
    get_config.cache_clear()
    return get_config()
