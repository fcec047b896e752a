"""Result of a single conditional fetch."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from page_loader.domain.enums import FetchStatus


@dataclass(frozen=True)
class FetchOutcome:
    """Tagged outcome of one retrieval from the configuration source.

    Only ``UPDATED`` outcomes carry a payload and etag; only
    ``TRANSPORT_FAILURE`` carries a cause. Use the classmethod constructors
    rather than building instances directly.
    """

    status: FetchStatus
    payload: dict[str, Any] | None = None
    etag: str | None = None
    max_age: float | None = None
    cause: BaseException | None = None
    status_code: int | None = None

    @classmethod
    def updated(
        cls,
        payload: dict[str, Any],
        etag: str,
        max_age: float | None = None,
        status_code: int = 200,
    ) -> FetchOutcome:
        """Source returned a fresh representation."""
        return cls(
            FetchStatus.UPDATED,
            payload=payload,
            etag=etag,
            max_age=max_age,
            status_code=status_code,
        )

    @classmethod
    def not_modified(cls) -> FetchOutcome:
        """Source confirmed the known etag is still valid."""
        return cls(FetchStatus.NOT_MODIFIED, status_code=304)

    @classmethod
    def not_found(cls) -> FetchOutcome:
        """Resource does not exist for this caller."""
        return cls(FetchStatus.NOT_FOUND, status_code=404)

    @classmethod
    def forbidden(cls) -> FetchOutcome:
        """Caller lacks permission."""
        return cls(FetchStatus.FORBIDDEN, status_code=403)

    @classmethod
    def transport_failure(
        cls, cause: BaseException, status_code: int | None = None
    ) -> FetchOutcome:
        """Network-level failure, timeout, or an unexpected status."""
        return cls(FetchStatus.TRANSPORT_FAILURE, cause=cause, status_code=status_code)

    @property
    def is_updated(self) -> bool:
        """Check if the outcome carries a new payload."""
        return self.status == FetchStatus.UPDATED
