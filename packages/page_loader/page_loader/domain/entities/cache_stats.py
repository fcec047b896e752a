"""Cache statistics snapshot."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time statistics of a cache store."""

    count: int
    approximate_size_bytes: int
    capacity: int | None = None
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    last_cleared_at: datetime | None = None

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups that found an entry."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary including the derived hit rate."""
        data = asdict(self)
        data["hit_rate"] = self.hit_rate
        return data
