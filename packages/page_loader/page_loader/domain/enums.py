"""Domain enums for the page loader."""

from __future__ import annotations

from enum import Enum


class LoadErrorKind(Enum):
    """Classified failure kinds surfaced to callers of ``load``."""

    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_CONFIG = "INVALID_CONFIG"
    CACHE_ERROR = "CACHE_ERROR"
    UNKNOWN = "UNKNOWN"


class FetchStatus(Enum):
    """Outcome of one conditional fetch against the configuration source."""

    UPDATED = "UPDATED"  # 200 with a new representation
    NOT_MODIFIED = "NOT_MODIFIED"  # 304, known etag still valid
    NOT_FOUND = "NOT_FOUND"  # 404
    FORBIDDEN = "FORBIDDEN"  # 403
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"  # timeout, connection error, other statuses


class LoadSource(Enum):
    """Where a LoadResult's configuration came from."""

    CACHE = "CACHE"
    NETWORK = "NETWORK"
    REVALIDATED = "REVALIDATED"
    STALE_WHILE_REVALIDATE = "STALE_WHILE_REVALIDATE"
    STALE_FALLBACK = "STALE_FALLBACK"
