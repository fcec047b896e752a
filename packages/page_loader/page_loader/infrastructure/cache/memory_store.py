"""In-memory LRU cache store for page configurations."""

from __future__ import annotations

import asyncio
import json
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import msgpack

from page_loader.config import get_config
from page_loader.domain.entities import CacheEntry, CacheStats
from page_loader.domain.exceptions import CacheStoreError
from page_loader.domain.interfaces import CacheStore
from page_loader.infrastructure.logging import get_logger

logger = get_logger(__name__)

EvictionCallback = Callable[[CacheEntry, str], Awaitable[None]]

SNAPSHOT_FORMAT_VERSION = 1


class MemoryCacheStore(CacheStore):
    """LRU cache store bounded by entry count and approximate memory.

    This store provides:
    - LRU eviction when capacity or the memory budget is reached
    - Per-key write serialization with no lock spanning unrelated keys
    - Whole-entry swaps, so payload and etag are always stored together
    - Hit/miss statistics
    - Invalidation generations, so writes from fetches that started before
      an invalidation are dropped
    - msgpack snapshots for warm starts
    """

    def __init__(
        self,
        capacity: int | None = None,
        max_memory_mb: int | None = None,
        eviction_callback: EvictionCallback | None = None,
    ) -> None:
        """Initialize the cache store.

        Args:
            capacity: Maximum number of entries (defaults to config value)
            max_memory_mb: Maximum memory usage in megabytes (defaults to config value)
            eviction_callback: Optional async callback when entries are removed
        """
        config = get_config()

        self._capacity = capacity if capacity is not None else config.cache.capacity
        self._max_memory_bytes = (
            max_memory_mb if max_memory_mb is not None else config.cache.max_memory_mb
        ) * 1024 * 1024
        self._eviction_callback = eviction_callback

        # OrderedDict keeps recency order, oldest first
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._key_locks: dict[str, asyncio.Lock] = {}

        self._total_memory_bytes = 0

        # Counter value at each key's last invalidation and at the last full clear
        self._invalidations = 0
        self._invalidated_at: dict[str, int] = {}
        self._cleared_generation = 0

        # Statistics
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._last_cleared_at: datetime | None = None

    async def get(self, resource_id: str) -> CacheEntry | None:
        """Get an entry, fresh or stale.

        Args:
            resource_id: Cache key

        Returns:
            Cached entry or None if not present
        """
        entry = self._entries.get(resource_id)
        if entry is None:
            self._misses += 1
            logger.debug("Cache miss", extra={"resource_id": resource_id})
            return None

        self._entries.move_to_end(resource_id)
        self._hits += 1
        logger.debug(
            "Cache hit",
            extra={
                "resource_id": resource_id,
                "etag": entry.etag,
                "fresh": entry.is_fresh(),
            },
        )
        return entry

    async def peek(self, resource_id: str) -> CacheEntry | None:
        """Get an entry without touching statistics or LRU order."""
        return self._entries.get(resource_id)

    async def generation(self, resource_id: str) -> int:
        """Get the invalidation generation of a key."""
        return self._generation_of(resource_id)

    async def put(
        self,
        resource_id: str,
        payload: dict[str, Any],
        etag: str,
        ttl_seconds: float,
        expected_generation: int | None = None,
    ) -> CacheEntry | None:
        """Store a payload with ``fetched_at = now``.

        Args:
            resource_id: Cache key
            payload: JSON-serializable configuration
            etag: Validator returned with the payload
            ttl_seconds: Validity window
            expected_generation: Generation read before the fetch, if any

        Returns:
            The stored entry, or None if the key was invalidated meanwhile

        Raises:
            CacheStoreError: If the payload is not JSON-serializable
        """
        try:
            json.dumps(payload)
        except (TypeError, ValueError) as e:
            raise CacheStoreError("put", f"payload is not serializable: {e}", resource_id) from e

        version = payload.get("version") if isinstance(payload, dict) else None
        entry = CacheEntry(
            resource_id=resource_id,
            payload=payload,
            etag=etag,
            fetched_at=datetime.now(UTC),
            ttl_seconds=ttl_seconds,
            version=str(version) if version is not None else None,
        )
        if not await self.replace(entry, expected_generation):
            return None
        return entry

    async def replace(self, entry: CacheEntry, expected_generation: int | None = None) -> bool:
        """Store a prepared entry atomically.

        Args:
            entry: Entry to store
            expected_generation: Generation read before the fetch, if any

        Returns:
            False if the key was invalidated after ``expected_generation``
        """
        if entry.memory_size > self._max_memory_bytes:
            raise CacheStoreError(
                "put",
                f"entry of {entry.memory_size} bytes exceeds the memory budget",
                entry.resource_id,
            )

        async with self._lock_for(entry.resource_id):
            if (
                expected_generation is not None
                and self._generation_of(entry.resource_id) != expected_generation
            ):
                logger.debug(
                    "Dropping write for invalidated entry",
                    extra={"resource_id": entry.resource_id, "etag": entry.etag},
                )
                return False

            evicted: list[tuple[CacheEntry, str]] = []

            previous = self._entries.pop(entry.resource_id, None)
            if previous is not None:
                self._total_memory_bytes -= previous.memory_size

            while self._entries and (
                len(self._entries) >= self._capacity
                or self._total_memory_bytes + entry.memory_size > self._max_memory_bytes
            ):
                reason = "capacity" if len(self._entries) >= self._capacity else "memory"
                _, oldest = self._entries.popitem(last=False)
                self._total_memory_bytes -= oldest.memory_size
                self._evictions += 1
                evicted.append((oldest, reason))

            self._entries[entry.resource_id] = entry
            self._total_memory_bytes += entry.memory_size

            logger.debug(
                "Cache put",
                extra={
                    "resource_id": entry.resource_id,
                    "etag": entry.etag,
                    "ttl_seconds": entry.ttl_seconds,
                    "cache_size": len(self._entries),
                    "entry_memory_bytes": entry.memory_size,
                    "total_memory_bytes": self._total_memory_bytes,
                },
            )

        for old_entry, reason in evicted:
            logger.debug(
                "Cache entry evicted",
                extra={"resource_id": old_entry.resource_id, "reason": reason},
            )
            self._discard_lock(old_entry.resource_id)
            await self._notify_removed(old_entry, reason)
        return True

    async def invalidate(self, resource_id: str | None = None) -> None:
        """Remove one entry, or all entries.

        Args:
            resource_id: Cache key, or None to clear the store
        """
        self._invalidations += 1
        if resource_id is None:
            removed = list(self._entries.values())
            self._entries.clear()
            self._total_memory_bytes = 0
            self._last_cleared_at = datetime.now(UTC)
            self._cleared_generation = self._invalidations
            self._invalidated_at.clear()
            logger.info("Cache cleared", extra={"entries_cleared": len(removed)})
            for entry in removed:
                self._discard_lock(entry.resource_id)
                await self._notify_removed(entry, "cleared")
            return

        async with self._lock_for(resource_id):
            self._invalidated_at[resource_id] = self._invalidations
            entry = self._entries.pop(resource_id, None)
            if entry is not None:
                self._total_memory_bytes -= entry.memory_size

        if entry is not None:
            logger.debug("Cache entry invalidated", extra={"resource_id": resource_id})
            self._discard_lock(resource_id)
            await self._notify_removed(entry, "invalidated")

    async def stats(self) -> CacheStats:
        """Get cache statistics."""
        return CacheStats(
            count=len(self._entries),
            approximate_size_bytes=self._total_memory_bytes,
            capacity=self._capacity,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            last_cleared_at=self._last_cleared_at,
        )

    async def close(self) -> None:
        """Clear the store on shutdown."""
        await self.invalidate()

    async def save_snapshot(self, path: Path) -> int:
        """Write all entries to a msgpack snapshot file.

        Stale entries are kept; they still carry a usable etag.

        Args:
            path: Destination file

        Returns:
            Number of entries written

        Raises:
            CacheStoreError: If the snapshot cannot be written
        """
        records = [
            {
                "resource_id": entry.resource_id,
                "payload": entry.payload,
                "etag": entry.etag,
                "fetched_at": entry.fetched_at.isoformat(),
                "ttl_seconds": entry.ttl_seconds,
                "version": entry.version,
            }
            for entry in self._entries.values()
        ]
        try:
            data = msgpack.packb(
                {"format": SNAPSHOT_FORMAT_VERSION, "entries": records}, use_bin_type=True
            )
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(path.suffix + ".tmp")
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
        except (OSError, TypeError, ValueError) as e:
            raise CacheStoreError("snapshot", str(e)) from e

        logger.info("Cache snapshot saved", extra={"path": str(path), "entries": len(records)})
        return len(records)

    async def load_snapshot(self, path: Path) -> int:
        """Restore entries from a msgpack snapshot file.

        Restored entries keep their original ``fetched_at``, so expired ones
        come back stale and are revalidated on the next load.

        Args:
            path: Snapshot file

        Returns:
            Number of entries restored

        Raises:
            CacheStoreError: If the snapshot cannot be read or decoded
        """
        try:
            data = msgpack.unpackb(path.read_bytes(), raw=False)
        except (OSError, ValueError, msgpack.UnpackException) as e:
            raise CacheStoreError("restore", str(e)) from e

        if not isinstance(data, dict) or data.get("format") != SNAPSHOT_FORMAT_VERSION:
            raise CacheStoreError("restore", "unsupported snapshot format")

        restored = 0
        for record in data.get("entries", []):
            try:
                entry = CacheEntry(
                    resource_id=record["resource_id"],
                    payload=record["payload"],
                    etag=record["etag"],
                    fetched_at=datetime.fromisoformat(record["fetched_at"]),
                    ttl_seconds=float(record["ttl_seconds"]),
                    version=record.get("version"),
                )
            except (KeyError, TypeError, ValueError) as e:
                raise CacheStoreError("restore", f"malformed snapshot record: {e}") from e
            await self.replace(entry)
            restored += 1

        logger.info("Cache snapshot restored", extra={"path": str(path), "entries": restored})
        return restored

    def _generation_of(self, resource_id: str) -> int:
        return max(self._invalidated_at.get(resource_id, 0), self._cleared_generation)

    def _lock_for(self, resource_id: str) -> asyncio.Lock:
        lock = self._key_locks.get(resource_id)
        if lock is None:
            lock = asyncio.Lock()
            self._key_locks[resource_id] = lock
        return lock

    def _discard_lock(self, resource_id: str) -> None:
        lock = self._key_locks.get(resource_id)
        if lock is not None and not lock.locked() and resource_id not in self._entries:
            del self._key_locks[resource_id]

    async def _notify_removed(self, entry: CacheEntry, reason: str) -> None:
        if self._eviction_callback is not None:
            await self._eviction_callback(entry, reason)

    @property
    def size(self) -> int:
        """Get current number of entries."""
        return len(self._entries)

    @property
    def capacity(self) -> int:
        """Get store capacity."""
        return self._capacity

    @property
    def hit_rate(self) -> float:
        """Get cache hit rate."""
        total = self._hits + self._misses
        return self._hits / total if total > 0 else 0.0

    @property
    def memory_usage_bytes(self) -> int:
        """Get current memory usage in bytes."""
        return self._total_memory_bytes
