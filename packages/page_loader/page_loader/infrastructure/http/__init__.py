"""HTTP transport for the page loader."""

from __future__ import annotations

from .http_fetch_client import HttpFetchClient, parse_max_age

__all__ = ["HttpFetchClient", "parse_max_age"]
