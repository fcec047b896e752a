"""Unit tests for the in-memory cache store."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import msgpack
import pytest
from page_loader.domain.entities import CacheEntry
from page_loader.domain.exceptions import CacheStoreError
from page_loader.infrastructure.cache import MemoryCacheStore


def page(resource_id: str, **fields: Any) -> dict[str, Any]:
    return {"id": resource_id, "version": "1.0.0", **fields}


class TestMemoryCacheStore:
    """Test MemoryCacheStore basic operations."""

    @pytest.fixture
    def store(self) -> MemoryCacheStore:
        """Create a test store instance."""
        return MemoryCacheStore(capacity=3, max_memory_mb=1)

    @pytest.mark.asyncio
    async def test_put_and_get(self, store: MemoryCacheStore) -> None:
        """Test storing and retrieving an entry."""
        before = datetime.now(UTC)
        stored = await store.put("dashboard-page", page("dashboard-page"), '"v1"', 60.0)

        entry = await store.get("dashboard-page")

        assert entry is stored
        assert entry.payload == page("dashboard-page")
        assert entry.etag == '"v1"'
        assert entry.ttl_seconds == 60.0
        assert entry.version == "1.0.0"
        assert entry.fetched_at >= before
        assert store.is_fresh(entry)

    @pytest.mark.asyncio
    async def test_get_missing(self, store: MemoryCacheStore) -> None:
        """Test a missing key returns None."""
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_stale_entries_are_returned(self, store: MemoryCacheStore) -> None:
        """Test get returns expired entries so their etag can be reused."""
        old = CacheEntry(
            resource_id="dashboard-page",
            payload=page("dashboard-page"),
            etag='"v1"',
            fetched_at=datetime.now(UTC) - timedelta(hours=2),
            ttl_seconds=60.0,
        )
        await store.replace(old)

        entry = await store.get("dashboard-page")

        assert entry is old
        assert not store.is_fresh(entry)

    @pytest.mark.asyncio
    async def test_put_overwrites_whole_entry(self, store: MemoryCacheStore) -> None:
        """Test a second put replaces payload and etag together."""
        await store.put("dashboard-page", page("dashboard-page", title="Old"), '"v1"', 60.0)
        await store.put("dashboard-page", page("dashboard-page", title="New"), '"v2"', 60.0)

        entry = await store.get("dashboard-page")

        assert entry is not None
        assert entry.payload["title"] == "New"
        assert entry.etag == '"v2"'
        assert store.size == 1

    @pytest.mark.asyncio
    async def test_put_rejects_unserializable_payload(self, store: MemoryCacheStore) -> None:
        """Test payloads that are not JSON-serializable are refused."""
        with pytest.raises(CacheStoreError, match="not serializable"):
            await store.put("dashboard-page", {"id": "dashboard-page", "when": object()}, "", 60.0)

        assert await store.get("dashboard-page") is None

    @pytest.mark.asyncio
    async def test_invalidate_single(self, store: MemoryCacheStore) -> None:
        """Test invalidating one entry leaves the others."""
        await store.put("a", page("a"), '"a"', 60.0)
        await store.put("b", page("b"), '"b"', 60.0)

        await store.invalidate("a")
        await store.invalidate("never-cached")

        assert await store.get("a") is None
        assert await store.get("b") is not None

    @pytest.mark.asyncio
    async def test_invalidate_all(self, store: MemoryCacheStore) -> None:
        """Test clearing the store."""
        await store.put("a", page("a"), '"a"', 60.0)
        await store.put("b", page("b"), '"b"', 60.0)

        await store.invalidate()

        stats = await store.stats()
        assert stats.count == 0
        assert stats.approximate_size_bytes == 0
        assert stats.last_cleared_at is not None
        assert store.memory_usage_bytes == 0

    @pytest.mark.asyncio
    async def test_stats(self, store: MemoryCacheStore) -> None:
        """Test statistics tracking."""
        await store.put("a", page("a"), '"a"', 60.0)
        await store.get("a")
        await store.get("a")
        await store.get("missing")

        stats = await store.stats()

        assert stats.count == 1
        assert stats.capacity == 3
        assert stats.hits == 2
        assert stats.misses == 1
        assert stats.hit_rate == pytest.approx(2 / 3)
        assert stats.approximate_size_bytes > 0
        assert store.hit_rate == pytest.approx(2 / 3)

    @pytest.mark.asyncio
    async def test_close_clears_entries(self, store: MemoryCacheStore) -> None:
        """Test close releases every entry."""
        await store.put("a", page("a"), '"a"', 60.0)

        await store.close()

        assert store.size == 0


class TestEviction:
    """Test bounded growth of the store."""

    @pytest.mark.asyncio
    async def test_lru_eviction_by_capacity(self) -> None:
        """Test the least recently used entry is evicted at capacity."""
        removed: list[tuple[str, str]] = []

        async def on_removed(entry: CacheEntry, reason: str) -> None:
            removed.append((entry.resource_id, reason))

        store = MemoryCacheStore(capacity=3, max_memory_mb=1, eviction_callback=on_removed)
        for resource_id in ("a", "b", "c"):
            await store.put(resource_id, page(resource_id), f'"{resource_id}"', 60.0)

        # Touch "a" so "b" becomes the oldest
        await store.get("a")
        await store.put("d", page("d"), '"d"', 60.0)

        assert store.size == 3
        assert await store.get("b") is None
        assert await store.get("a") is not None
        assert removed == [("b", "capacity")]
        assert (await store.stats()).evictions == 1

    @pytest.mark.asyncio
    async def test_eviction_by_memory(self) -> None:
        """Test old entries are evicted to stay within the memory budget."""
        store = MemoryCacheStore(capacity=100, max_memory_mb=1)
        blob = "x" * 400_000

        await store.put("a", page("a", blob=blob), '"a"', 60.0)
        await store.put("b", page("b", blob=blob), '"b"', 60.0)
        await store.put("c", page("c", blob=blob), '"c"', 60.0)

        assert store.memory_usage_bytes <= 1024 * 1024
        assert await store.get("a") is None
        assert await store.get("c") is not None

    @pytest.mark.asyncio
    async def test_oversized_entry_rejected(self) -> None:
        """Test an entry larger than the whole budget is refused."""
        store = MemoryCacheStore(capacity=10, max_memory_mb=1)
        await store.put("small", page("small"), '"s"', 60.0)

        with pytest.raises(CacheStoreError, match="memory budget"):
            await store.put("huge", page("huge", blob="x" * 2_000_000), '"h"', 60.0)

        assert await store.get("small") is not None

    @pytest.mark.asyncio
    async def test_invalidate_notifies_callback(self) -> None:
        """Test explicit removals report their reason."""
        reasons: list[str] = []

        async def on_removed(entry: CacheEntry, reason: str) -> None:
            reasons.append(reason)

        store = MemoryCacheStore(capacity=10, max_memory_mb=1, eviction_callback=on_removed)
        await store.put("a", page("a"), '"a"', 60.0)
        await store.put("b", page("b"), '"b"', 60.0)

        await store.invalidate("a")
        await store.invalidate()

        assert reasons == ["invalidated", "cleared"]

    @pytest.mark.asyncio
    async def test_peek_leaves_stats_and_recency(self) -> None:
        """Test inspecting an entry neither counts a hit nor saves it from eviction."""
        store = MemoryCacheStore(capacity=3, max_memory_mb=1)
        for resource_id in ("a", "b", "c"):
            await store.put(resource_id, page(resource_id), f'"{resource_id}"', 60.0)

        assert await store.peek("a") is not None
        assert await store.peek("missing") is None
        await store.put("d", page("d"), '"d"', 60.0)

        stats = await store.stats()
        assert stats.hits == 0
        assert stats.misses == 0
        assert await store.peek("a") is None
        assert await store.peek("b") is not None


class TestInvalidationGenerations:
    """Test writes guarded by the generation read before a fetch."""

    @pytest.fixture
    def store(self) -> MemoryCacheStore:
        """Create a test store instance."""
        return MemoryCacheStore(capacity=10, max_memory_mb=1)

    @pytest.mark.asyncio
    async def test_generation_grows_on_invalidate(self, store: MemoryCacheStore) -> None:
        """Test invalidating a key, cached or not, moves its generation on."""
        first = await store.generation("dashboard-page")
        await store.invalidate("dashboard-page")
        second = await store.generation("dashboard-page")
        await store.invalidate()
        third = await store.generation("dashboard-page")

        assert first < second < third

    @pytest.mark.asyncio
    async def test_other_keys_keep_their_generation(self, store: MemoryCacheStore) -> None:
        """Test invalidating one key leaves the others' generation alone."""
        before = await store.generation("b")

        await store.invalidate("a")

        assert await store.generation("b") == before

    @pytest.mark.asyncio
    async def test_put_with_current_generation(self, store: MemoryCacheStore) -> None:
        """Test a write with an unchanged generation is stored."""
        generation = await store.generation("dashboard-page")

        entry = await store.put(
            "dashboard-page", page("dashboard-page"), '"v1"', 60.0, expected_generation=generation
        )

        assert entry is not None
        assert await store.peek("dashboard-page") is entry

    @pytest.mark.asyncio
    async def test_put_after_invalidate_is_dropped(self, store: MemoryCacheStore) -> None:
        """Test a write prepared before an invalidation does not resurrect the key."""
        await store.put("dashboard-page", page("dashboard-page"), '"v1"', 60.0)
        generation = await store.generation("dashboard-page")

        await store.invalidate("dashboard-page")
        entry = await store.put(
            "dashboard-page", page("dashboard-page"), '"v2"', 60.0, expected_generation=generation
        )

        assert entry is None
        assert await store.peek("dashboard-page") is None

    @pytest.mark.asyncio
    async def test_replace_after_clear_is_dropped(self, store: MemoryCacheStore) -> None:
        """Test clearing the whole store also drops pending conditional writes."""
        stored = await store.put("dashboard-page", page("dashboard-page"), '"v1"', 60.0)
        assert stored is not None
        generation = await store.generation("dashboard-page")

        await store.invalidate()

        assert not await store.replace(stored, expected_generation=generation)
        assert store.size == 0

    @pytest.mark.asyncio
    async def test_unconditional_writes_ignore_generation(self, store: MemoryCacheStore) -> None:
        """Test writes without an expected generation always land."""
        await store.invalidate("dashboard-page")

        entry = await store.put("dashboard-page", page("dashboard-page"), '"v1"', 60.0)

        assert entry is not None
        assert store.size == 1


class TestConcurrency:
    """Test concurrent writes."""

    @pytest.mark.asyncio
    async def test_concurrent_puts_to_one_key_never_mix(self) -> None:
        """Test the surviving entry pairs payload and etag from one write."""
        store = MemoryCacheStore(capacity=10, max_memory_mb=1)

        await asyncio.gather(
            *(
                store.put("dashboard-page", page("dashboard-page", rev=i), f'"v{i}"', 60.0)
                for i in range(20)
            )
        )

        entry = await store.get("dashboard-page")
        assert entry is not None
        assert entry.etag == f'"v{entry.payload["rev"]}"'
        assert store.size == 1

    @pytest.mark.asyncio
    async def test_concurrent_puts_to_many_keys(self) -> None:
        """Test writes to different keys all land."""
        store = MemoryCacheStore(capacity=100, max_memory_mb=1)

        await asyncio.gather(
            *(store.put(f"page-{i}", page(f"page-{i}"), f'"{i}"', 60.0) for i in range(50))
        )

        assert store.size == 50


class TestSnapshots:
    """Test msgpack snapshots."""

    @pytest.mark.asyncio
    async def test_snapshot_round_trip(self, tmp_path: Path) -> None:
        """Test entries survive a save and restore with their fetch times."""
        source = MemoryCacheStore(capacity=10, max_memory_mb=1)
        fetched_at = datetime.now(UTC) - timedelta(hours=2)
        await source.replace(
            CacheEntry(
                resource_id="stale-page",
                payload=page("stale-page"),
                etag='"s1"',
                fetched_at=fetched_at,
                ttl_seconds=60.0,
                version="1.0.0",
            )
        )
        await source.put("fresh-page", page("fresh-page", widgets=[]), '"f1"', 3600.0)

        path = tmp_path / "cache" / "pages.msgpack"
        assert await source.save_snapshot(path) == 2

        target = MemoryCacheStore(capacity=10, max_memory_mb=1)
        assert await target.load_snapshot(path) == 2

        stale = await target.get("stale-page")
        assert stale is not None
        assert stale.etag == '"s1"'
        assert stale.fetched_at == fetched_at
        assert stale.version == "1.0.0"
        assert not target.is_fresh(stale)

        fresh = await target.get("fresh-page")
        assert fresh is not None
        assert fresh.payload == page("fresh-page", widgets=[])
        assert target.is_fresh(fresh)

    @pytest.mark.asyncio
    async def test_load_missing_snapshot(self, tmp_path: Path) -> None:
        """Test a missing snapshot file raises CacheStoreError."""
        store = MemoryCacheStore(capacity=10, max_memory_mb=1)

        with pytest.raises(CacheStoreError, match="restore"):
            await store.load_snapshot(tmp_path / "missing.msgpack")

    @pytest.mark.asyncio
    async def test_load_unsupported_format(self, tmp_path: Path) -> None:
        """Test snapshots of another format version are refused."""
        path = tmp_path / "pages.msgpack"
        path.write_bytes(msgpack.packb({"format": 99, "entries": []}))
        store = MemoryCacheStore(capacity=10, max_memory_mb=1)

        with pytest.raises(CacheStoreError, match="unsupported snapshot format"):
            await store.load_snapshot(path)

    @pytest.mark.asyncio
    async def test_load_malformed_record(self, tmp_path: Path) -> None:
        """Test records missing fields are refused."""
        path = tmp_path / "pages.msgpack"
        path.write_bytes(msgpack.packb({"format": 1, "entries": [{"resource_id": "a"}]}))
        store = MemoryCacheStore(capacity=10, max_memory_mb=1)

        with pytest.raises(CacheStoreError, match="malformed"):
            await store.load_snapshot(path)
