"""Abstract interface for conditional retrieval of page configurations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from page_loader.domain.entities import FetchOutcome


class FetchClient(ABC):
    """Performs one conditional retrieval of a resource's configuration.

    Expected failures (404, 403, timeouts, connection errors) are reported as
    FetchOutcome values rather than raised.
    """

    @abstractmethod
    async def fetch(self, resource_id: str, known_etag: str | None = None) -> FetchOutcome:
        """Fetch a resource, revalidating against ``known_etag`` when given.

        Args:
            resource_id: Resource to retrieve
            known_etag: Validator of the cached copy, stale or not

        Returns:
            FetchOutcome describing the response

        Raises:
            PayloadDecodeError: If a 200 response body is not a JSON object
        """
        ...

    async def aclose(self) -> None:
        """Release connections held by the client."""
        return None
