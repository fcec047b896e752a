"""Monitoring infrastructure for the page loader."""

from __future__ import annotations

from .metrics import LoaderMetricsCollector

__all__ = ["LoaderMetricsCollector"]
