"""Unit tests for cache entry, fetch outcome and statistics entities."""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from page_loader.domain.entities import CacheEntry, CacheStats, FetchOutcome
from page_loader.domain.enums import FetchStatus


def make_entry(**overrides: Any) -> CacheEntry:
    fields: dict[str, Any] = {
        "resource_id": "dashboard-page",
        "payload": {"id": "dashboard-page", "title": "Dashboard"},
        "etag": '"v1"',
        "fetched_at": datetime(2025, 7, 21, 10, 0, tzinfo=UTC),
        "ttl_seconds": 60.0,
    }
    fields.update(overrides)
    return CacheEntry(**fields)


class TestCacheEntry:
    """Test CacheEntry entity."""

    def test_freshness_boundary(self) -> None:
        """Test an entry is fresh strictly before fetched_at + ttl."""
        entry = make_entry()

        assert entry.expires_at == entry.fetched_at + timedelta(seconds=60)
        assert entry.is_fresh(entry.fetched_at)
        assert entry.is_fresh(entry.fetched_at + timedelta(seconds=59.999))
        assert not entry.is_fresh(entry.fetched_at + timedelta(seconds=60))
        assert not entry.is_fresh(entry.fetched_at + timedelta(hours=1))

    def test_zero_ttl_is_never_fresh(self) -> None:
        """Test a zero TTL forces revalidation on every read."""
        entry = make_entry(ttl_seconds=0)

        assert not entry.is_fresh(entry.fetched_at)

    def test_naive_timestamp_is_made_utc(self) -> None:
        """Test naive fetch times are interpreted as UTC."""
        entry = make_entry(fetched_at=datetime(2025, 7, 21, 10, 0))

        assert entry.fetched_at.tzinfo is UTC

    def test_validation(self) -> None:
        """Test invalid entries are rejected."""
        with pytest.raises(ValueError, match="Resource ID"):
            make_entry(resource_id="")

        with pytest.raises(ValueError, match="TTL"):
            make_entry(ttl_seconds=-1)

    def test_entry_is_immutable(self) -> None:
        """Test payload and etag cannot be swapped in place."""
        entry = make_entry()

        with pytest.raises(FrozenInstanceError):
            entry.etag = '"v2"'  # type: ignore[misc]

    def test_refreshed_keeps_payload_and_etag(self) -> None:
        """Test refreshing only moves the fetch time and optionally the TTL."""
        entry = make_entry()
        later = entry.fetched_at + timedelta(minutes=5)

        refreshed = entry.refreshed(later)
        assert refreshed.fetched_at == later
        assert refreshed.payload == entry.payload
        assert refreshed.etag == entry.etag
        assert refreshed.ttl_seconds == entry.ttl_seconds
        assert entry.fetched_at == datetime(2025, 7, 21, 10, 0, tzinfo=UTC)

        assert entry.refreshed(later, ttl_seconds=5.0).ttl_seconds == 5.0

    def test_age(self) -> None:
        """Test age is measured from fetched_at."""
        entry = make_entry()

        assert entry.age(entry.fetched_at + timedelta(seconds=30)) == timedelta(seconds=30)

    def test_memory_size(self) -> None:
        """Test memory size grows with the payload."""
        small = make_entry()
        large = make_entry(payload={"widgets": [{"id": f"w{i}", "type": "chart"} for i in range(100)]})

        assert small.memory_size > 0
        assert large.memory_size > small.memory_size

    def test_memory_size_handles_circular_payload(self) -> None:
        """Test deep size calculation terminates on circular references."""
        circular: dict[str, Any] = {"key": "value"}
        circular["self"] = circular

        entry = make_entry(payload=circular)

        assert 0 < entry.memory_size < 10000


class TestFetchOutcome:
    """Test FetchOutcome constructors."""

    def test_updated(self) -> None:
        """Test updated outcome carries payload, etag and max-age."""
        outcome = FetchOutcome.updated({"id": "x"}, '"v1"', max_age=30.0)

        assert outcome.status == FetchStatus.UPDATED
        assert outcome.is_updated
        assert outcome.payload == {"id": "x"}
        assert outcome.etag == '"v1"'
        assert outcome.max_age == 30.0
        assert outcome.status_code == 200

    @pytest.mark.parametrize(
        ("outcome", "status", "status_code"),
        [
            (FetchOutcome.not_modified(), FetchStatus.NOT_MODIFIED, 304),
            (FetchOutcome.not_found(), FetchStatus.NOT_FOUND, 404),
            (FetchOutcome.forbidden(), FetchStatus.FORBIDDEN, 403),
        ],
    )
    def test_payloadless_outcomes(
        self, outcome: FetchOutcome, status: FetchStatus, status_code: int
    ) -> None:
        """Test non-update outcomes carry neither payload nor etag."""
        assert outcome.status == status
        assert outcome.status_code == status_code
        assert outcome.payload is None
        assert outcome.etag is None
        assert not outcome.is_updated

    def test_transport_failure(self) -> None:
        """Test transport failure keeps the cause."""
        cause = OSError("unreachable")
        outcome = FetchOutcome.transport_failure(cause, status_code=503)

        assert outcome.status == FetchStatus.TRANSPORT_FAILURE
        assert outcome.cause is cause
        assert outcome.status_code == 503


class TestCacheStats:
    """Test CacheStats."""

    def test_hit_rate(self) -> None:
        """Test hit rate derivation."""
        assert CacheStats(count=0, approximate_size_bytes=0).hit_rate == 0.0
        assert CacheStats(count=1, approximate_size_bytes=10, hits=3, misses=1).hit_rate == 0.75

    def test_to_dict(self) -> None:
        """Test dictionary conversion includes the derived hit rate."""
        stats = CacheStats(count=2, approximate_size_bytes=512, capacity=10, hits=1, misses=1)

        data = stats.to_dict()

        assert data["count"] == 2
        assert data["approximate_size_bytes"] == 512
        assert data["capacity"] == 10
        assert data["hit_rate"] == 0.5
        assert data["last_cleared_at"] is None
