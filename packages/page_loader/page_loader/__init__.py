"""Page configuration cache and loader with ETag revalidation."""

from __future__ import annotations

from .application.cancellation import CancellationToken
from .application.models import LoadOptions, LoadResult
from .application.services import PageConfigLoader
from .domain.entities import CacheEntry, CacheStats
from .domain.enums import LoadErrorKind, LoadSource
from .domain.exceptions import LoadCancelledError, LoadError
from .infrastructure.cache import MemoryCacheStore
from .infrastructure.http import HttpFetchClient
from .version import __version__

__all__ = [
    "CacheEntry",
    "CacheStats",
    "CancellationToken",
    "HttpFetchClient",
    "LoadCancelledError",
    "LoadError",
    "LoadErrorKind",
    "LoadOptions",
    "LoadResult",
    "LoadSource",
    "MemoryCacheStore",
    "PageConfigLoader",
    "__version__",
]
