"""Domain entities for the page loader."""

from __future__ import annotations

from .cache_entry import CacheEntry
from .cache_stats import CacheStats
from .fetch_outcome import FetchOutcome

__all__ = ["CacheEntry", "CacheStats", "FetchOutcome"]
