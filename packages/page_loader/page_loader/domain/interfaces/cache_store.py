"""Abstract interface for page configuration storage.

This module defines the CacheStore interface the loader reads and writes
through. The store exclusively owns its CacheEntry instances; callers only
ever receive immutable entries.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from page_loader.domain.entities import CacheEntry, CacheStats


class CacheStore(ABC):
    """Abstract interface for cached page configurations keyed by resource id.

    Implementations must make ``put``/``replace``/``invalidate`` atomic per key
    and safe to call concurrently for different keys.
    """

    @abstractmethod
    async def get(self, resource_id: str) -> CacheEntry | None:
        """Retrieve an entry, fresh or stale.

        Args:
            resource_id: Cache key

        Returns:
            The entry if present, None otherwise

        Raises:
            CacheStoreError: If the backing storage cannot be read
        """
        ...

    @abstractmethod
    async def peek(self, resource_id: str) -> CacheEntry | None:
        """Retrieve an entry without counting a hit or miss or touching recency.

        Used for inspection, so looking at the cache never changes it.
        """
        ...

    @abstractmethod
    async def generation(self, resource_id: str) -> int:
        """Get the invalidation generation of a key.

        The value grows every time the key is invalidated, individually or by
        clearing the store. A writer that captured it before fetching passes it
        back as ``expected_generation`` so a result fetched before an
        invalidation is not stored after it.
        """
        ...

    @abstractmethod
    async def put(
        self,
        resource_id: str,
        payload: dict[str, Any],
        etag: str,
        ttl_seconds: float,
        expected_generation: int | None = None,
    ) -> CacheEntry | None:
        """Store a payload, overwriting any existing entry.

        ``fetched_at`` is recorded as the current time.

        Args:
            resource_id: Cache key
            payload: JSON-serializable configuration
            etag: Validator returned with the payload
            ttl_seconds: Validity window
            expected_generation: Store only if the key's generation still matches

        Returns:
            The stored entry, or None when the key was invalidated since
            ``expected_generation`` was read

        Raises:
            CacheStoreError: If the payload cannot be stored
        """
        ...

    @abstractmethod
    async def replace(self, entry: CacheEntry, expected_generation: int | None = None) -> bool:
        """Store a prepared entry, overwriting any existing one.

        Args:
            entry: Entry to store
            expected_generation: Store only if the key's generation still matches

        Returns:
            False when the write was dropped because of a newer invalidation

        Raises:
            CacheStoreError: If the entry cannot be stored
        """
        ...

    @abstractmethod
    async def invalidate(self, resource_id: str | None = None) -> None:
        """Remove one entry, or all entries when ``resource_id`` is None."""
        ...

    @abstractmethod
    async def stats(self) -> CacheStats:
        """Get current store statistics."""
        ...

    def is_fresh(self, entry: CacheEntry, now: datetime | None = None) -> bool:
        """Check whether an entry is within its TTL."""
        return entry.is_fresh(now or datetime.now(UTC))

    async def close(self) -> None:
        """Release resources held by the store."""
        await self.invalidate()
