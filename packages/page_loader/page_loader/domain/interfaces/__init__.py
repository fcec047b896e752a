"""Domain interfaces for the page loader.

This module contains abstract interfaces that define contracts
for storage and retrieval of page configurations.
"""

from __future__ import annotations

from .cache_store import CacheStore
from .fetch_client import FetchClient

__all__ = ["CacheStore", "FetchClient"]
