"""Cache infrastructure for the page loader."""

from __future__ import annotations

from .memory_store import MemoryCacheStore

__all__ = ["MemoryCacheStore"]
