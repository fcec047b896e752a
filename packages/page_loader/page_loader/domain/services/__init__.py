"""Domain services for the page loader."""

from __future__ import annotations

from .page_config_validator import NO_CACHE, PageConfigValidator

__all__ = ["NO_CACHE", "PageConfigValidator"]
