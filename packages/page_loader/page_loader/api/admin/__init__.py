"""Admin REST endpoints."""

from __future__ import annotations

from .cache_api import create_admin_router, create_cache_router

__all__ = ["create_admin_router", "create_cache_router"]
