"""Application services for the page loader."""

from __future__ import annotations

from .error_classifier import ErrorClassifier
from .page_config_loader import PageConfigLoader
from .request_deduplicator import InFlightRequest, RequestDeduplicator

__all__ = [
    "ErrorClassifier",
    "InFlightRequest",
    "PageConfigLoader",
    "RequestDeduplicator",
]
