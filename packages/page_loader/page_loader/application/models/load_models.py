"""Load-related Pydantic models for the loader's public API."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from page_loader.application.cancellation import CancellationToken
from page_loader.domain.enums import LoadSource


class LoadOptions(BaseModel):
    """Per-call options for ``PageConfigLoader.load``."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    skip_cache: bool = Field(
        default=False, description="Ignore a fresh cached copy and go to the source"
    )
    cache_ttl_override: float | None = Field(
        default=None, gt=0, description="TTL in seconds for the entry stored by this load"
    )
    stale_while_revalidate: bool | None = Field(
        default=None,
        description="Serve an expired entry while refreshing it; None uses the configured default",
    )
    cancellation: CancellationToken | None = Field(
        default=None, exclude=True, description="Token detaching this caller when cancelled"
    )


class LoadResult(BaseModel):
    """Resolved page configuration returned to callers.

    Each caller receives its own copy; mutating ``config`` never touches the
    cache.
    """

    config: dict[str, Any] = Field(..., description="Page configuration payload")
    from_cache: bool = Field(..., description="Whether served without a full network download")
    etag: str | None = Field(default=None, description="Validator of the returned payload")
    loaded_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When this result was produced"
    )
    stale: bool = Field(default=False, description="Whether the payload is past its TTL")
    source: LoadSource = Field(..., description="Path through the cache policy that produced it")

    model_config = {
        "json_schema_extra": {
            "example": {
                "config": {
                    "id": "dashboard-page",
                    "version": "1.0.0",
                    "title": "Dashboard",
                    "layout": {"type": "grid"},
                    "widgets": [],
                },
                "from_cache": False,
                "etag": '"v1"',
                "loaded_at": "2025-07-21T10:00:00Z",
                "stale": False,
                "source": "NETWORK",
            }
        }
    }


class CacheEntryInfo(BaseModel):
    """Inspection view of one cached entry."""

    resource_id: str = Field(..., description="Cache key")
    cached: bool = Field(..., description="Whether an entry is present")
    fresh: bool = Field(default=False, description="Whether the entry is within its TTL")
    etag: str | None = Field(default=None, description="Stored validator")
    version: str | None = Field(default=None, description="Payload version")
    fetched_at: datetime | None = Field(default=None, description="Last fetch or revalidation")
    expires_at: datetime | None = Field(default=None, description="When the entry turns stale")


class CacheStatsResponse(BaseModel):
    """Cache statistics exposed to operational tooling."""

    count: int = Field(..., ge=0, description="Number of cached page configurations")
    approximate_size_bytes: int = Field(..., ge=0, description="Approximate memory usage")
    capacity: int | None = Field(default=None, description="Maximum number of entries")
    hits: int = Field(default=0, ge=0)
    misses: int = Field(default=0, ge=0)
    hit_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    evictions: int = Field(default=0, ge=0)
    last_cleared_at: datetime | None = Field(default=None)
