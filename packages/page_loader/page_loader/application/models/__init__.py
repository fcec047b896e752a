"""Application models for the page loader."""

from __future__ import annotations

from .load_models import CacheEntryInfo, CacheStatsResponse, LoadOptions, LoadResult

__all__ = ["CacheEntryInfo", "CacheStatsResponse", "LoadOptions", "LoadResult"]
