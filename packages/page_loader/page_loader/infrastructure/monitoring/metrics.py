"""Metrics collection for page configuration loading."""

from __future__ import annotations

import threading
from typing import Any

from prometheus_client import Counter, Gauge, Histogram

from page_loader.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Load metrics
page_loads_total = Counter(
    "page_loader_loads_total",
    "Total number of successful page configuration loads",
    ["loader", "source"],
)

page_load_errors_total = Counter(
    "page_loader_load_errors_total",
    "Total number of failed page configuration loads",
    ["loader", "kind"],
)

# Fetch metrics
page_fetches_total = Counter(
    "page_loader_fetches_total",
    "Total number of upstream fetches",
    ["loader", "status"],
)

page_fetch_duration = Histogram(
    "page_loader_fetch_duration_seconds",
    "Upstream fetch duration in seconds",
    ["loader"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

dedup_joins_total = Counter(
    "page_loader_dedup_joins_total",
    "Total number of loads that attached to an in-flight fetch",
    ["loader"],
)

# Background revalidation metrics
revalidations_total = Counter(
    "page_loader_revalidations_total",
    "Total number of background revalidations",
    ["loader", "result"],
)

# Cache metrics
cache_size = Gauge(
    "page_loader_cache_size",
    "Current number of cached page configurations",
    ["loader"],
)

cache_evictions_total = Counter(
    "page_loader_cache_evictions_total",
    "Total number of cache removals",
    ["loader", "reason"],
)


class LoaderMetricsCollector:
    """Records loader activity to Prometheus and keeps local tallies."""

    def __init__(self, loader_name: str = "default") -> None:
        """Initialize metrics collector.

        Args:
            loader_name: Label distinguishing loaders in one process
        """
        self.loader_name = loader_name
        self._counts: dict[str, int] = {}
        self._lock = threading.Lock()

    def _bump(self, key: str) -> None:
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1

    def record_load(self, source: str) -> None:
        """Record a successful load.

        Args:
            source: LoadSource value the result came from
        """
        page_loads_total.labels(loader=self.loader_name, source=source).inc()
        self._bump(f"load.{source}")

    def record_load_error(self, kind: str) -> None:
        """Record a failed load.

        Args:
            kind: LoadErrorKind value
        """
        page_load_errors_total.labels(loader=self.loader_name, kind=kind).inc()
        self._bump(f"error.{kind}")

    def record_fetch(self, status: str, duration_seconds: float) -> None:
        """Record one upstream fetch.

        Args:
            status: FetchStatus value, or ``ERROR`` for raised failures
            duration_seconds: Time spent in the fetch client
        """
        page_fetches_total.labels(loader=self.loader_name, status=status).inc()
        page_fetch_duration.labels(loader=self.loader_name).observe(duration_seconds)
        self._bump(f"fetch.{status}")

    def record_dedup_join(self, resource_id: str) -> None:
        """Record a load that attached to an in-flight fetch."""
        dedup_joins_total.labels(loader=self.loader_name).inc()
        self._bump("dedup_join")
        logger.debug(
            "Joined in-flight fetch",
            extra={"loader": self.loader_name, "resource_id": resource_id},
        )

    def record_revalidation(self, result: str) -> None:
        """Record the outcome of a background revalidation.

        Args:
            result: ``updated``, ``not_modified`` or ``failed``
        """
        revalidations_total.labels(loader=self.loader_name, result=result).inc()
        self._bump(f"revalidation.{result}")

    def record_eviction(self, reason: str) -> None:
        """Record an entry leaving the cache."""
        cache_evictions_total.labels(loader=self.loader_name, reason=reason).inc()
        self._bump(f"eviction.{reason}")

    def update_cache_size(self, size: int) -> None:
        """Set the cache size gauge."""
        cache_size.labels(loader=self.loader_name).set(size)

    def get_counts(self) -> dict[str, Any]:
        """Get local tallies recorded by this collector."""
        with self._lock:
            return dict(self._counts)
