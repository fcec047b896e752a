"""Cache entry entity for fetched page configurations.

An entry pairs a payload with the ETag and timestamp of the response that
produced it. Entries are immutable: a refresh produces a new entry, so a
payload from one response can never be stored next to an etag from another.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Any


def deep_size(obj: Any, seen: set[int] | None = None) -> int:
    """Get the deep size of an object, handling circular references."""
    if seen is None:
        seen = set()

    obj_id = id(obj)
    if obj_id in seen:
        return 0

    seen.add(obj_id)
    size = sys.getsizeof(obj)

    if isinstance(obj, dict):
        size += sum(deep_size(k, seen) + deep_size(v, seen) for k, v in obj.items())
    elif isinstance(obj, list | tuple | set | frozenset):
        size += sum(deep_size(item, seen) for item in obj)

    return size


@dataclass(frozen=True)
class CacheEntry:
    """A cached page configuration and its validators.

    Attributes:
        resource_id: Cache key (page identifier)
        payload: JSON-serializable configuration object
        etag: Opaque validator returned by the source
        fetched_at: Time of the last successful retrieval or revalidation (UTC)
        ttl_seconds: Validity window after fetched_at
        version: Payload ``version`` field, kept for diagnostics
        memory_size: Approximate size in bytes
    """

    resource_id: str
    payload: dict[str, Any]
    etag: str
    fetched_at: datetime
    ttl_seconds: float
    version: str | None = None
    memory_size: int = field(default=0, compare=False)

    def __post_init__(self) -> None:
        """Validate entry and compute its size."""
        if not self.resource_id:
            raise ValueError("Resource ID cannot be empty")
        if self.ttl_seconds < 0:
            raise ValueError("TTL cannot be negative")

        if self.fetched_at.tzinfo is None:
            object.__setattr__(self, "fetched_at", self.fetched_at.replace(tzinfo=UTC))

        if not self.memory_size:
            size = (
                sys.getsizeof(self.resource_id)
                + sys.getsizeof(self.etag)
                + deep_size(self.payload)
            )
            object.__setattr__(self, "memory_size", size)

    @property
    def expires_at(self) -> datetime:
        """Instant after which the entry is stale."""
        return self.fetched_at + timedelta(seconds=self.ttl_seconds)

    def is_fresh(self, now: datetime | None = None) -> bool:
        """Check whether ``now < fetched_at + ttl``."""
        return (now or datetime.now(UTC)) < self.expires_at

    def age(self, now: datetime | None = None) -> timedelta:
        """Time elapsed since the entry was fetched or revalidated."""
        return (now or datetime.now(UTC)) - self.fetched_at

    def refreshed(self, now: datetime | None = None, ttl_seconds: float | None = None) -> CacheEntry:
        """Return a copy with a new fetch time, keeping payload and etag.

        Args:
            now: New fetch time (defaults to current UTC time)
            ttl_seconds: New TTL (defaults to the current one)
        """
        return replace(
            self,
            fetched_at=now or datetime.now(UTC),
            ttl_seconds=self.ttl_seconds if ttl_seconds is None else ttl_seconds,
        )
