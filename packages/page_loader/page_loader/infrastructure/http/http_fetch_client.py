"""HTTP fetch client for page configurations."""

from __future__ import annotations

import asyncio
import re
from types import TracebackType
from typing import Any
from urllib.parse import quote

import httpx

from page_loader.config import LoaderConfig, get_config
from page_loader.domain.entities import FetchOutcome
from page_loader.domain.exceptions import FetchTimeoutError, PayloadDecodeError
from page_loader.domain.interfaces import FetchClient
from page_loader.infrastructure.logging import get_logger

logger = get_logger(__name__)

_MAX_AGE_RE = re.compile(r"(?:^|,)\s*(?:s-maxage|max-age)\s*=\s*\"?(\d+)\"?", re.IGNORECASE)
_NO_CACHE_RE = re.compile(r"(?:^|,)\s*(?:no-cache|no-store)\s*(?:,|$)", re.IGNORECASE)


def parse_max_age(cache_control: str | None) -> float | None:
    """Extract a freshness lifetime from a Cache-Control header.

    ``no-cache`` and ``no-store`` yield 0 so the entry must be revalidated on
    every read. ``s-maxage`` is honoured the same as ``max-age``.

    Args:
        cache_control: Raw header value

    Returns:
        Lifetime in seconds, or None when the header sets none
    """
    if not cache_control:
        return None
    if _NO_CACHE_RE.search(cache_control):
        return 0.0
    match = _MAX_AGE_RE.search(cache_control)
    if match:
        return float(match.group(1))
    return None


class HttpFetchClient(FetchClient):
    """Conditional GET client for the configuration backend.

    The client sends ``If-None-Match`` whenever an etag is known and maps
    response statuses onto FetchOutcome values. Timeouts and connection
    errors never raise; they come back as transport failures.
    """

    def __init__(
        self,
        base_url: str | None = None,
        resource_path: str | None = None,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        config: LoaderConfig | None = None,
    ) -> None:
        """Initialize the fetch client.

        Args:
            base_url: Backend base URL (defaults to config value)
            resource_path: Path template containing ``{resource_id}``
            timeout: Per-request timeout in seconds (defaults to config value)
            headers: Static headers added to every request
            client: Existing httpx client to use; it is not closed by ``aclose``
            config: Loader configuration (defaults to the global config)
        """
        config = config or get_config()

        self.base_url = (base_url or config.source.base_url).rstrip("/")
        self.resource_path = resource_path or config.source.resource_path
        self.timeout = timeout if timeout is not None else config.timeouts.fetch_timeout
        self.headers = {"Accept": "application/json", **config.source.headers, **(headers or {})}

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=config.timeouts.connect_timeout),
        )

    def url_for(self, resource_id: str) -> str:
        """Build the absolute URL of a resource."""
        path = self.resource_path.format(resource_id=quote(resource_id, safe=""))
        return f"{self.base_url}{path}"

    async def fetch(self, resource_id: str, known_etag: str | None = None) -> FetchOutcome:
        """Fetch a page configuration conditionally.

        Args:
            resource_id: Resource to retrieve
            known_etag: Etag of the cached copy, sent as If-None-Match

        Returns:
            FetchOutcome for the response

        Raises:
            PayloadDecodeError: If a successful response is not a JSON object
        """
        url = self.url_for(resource_id)
        headers = dict(self.headers)
        if known_etag:
            headers["If-None-Match"] = known_etag

        logger.debug(
            "Fetching page configuration",
            extra={"resource_id": resource_id, "url": url, "known_etag": known_etag},
        )

        try:
            # Outer guard covers the whole exchange, httpx only bounds each phase
            response = await asyncio.wait_for(
                self._client.get(url, headers=headers), timeout=self.timeout
            )
        except TimeoutError as e:
            logger.warning(
                "Page configuration fetch timed out",
                extra={"resource_id": resource_id, "timeout": self.timeout},
            )
            timeout_error = FetchTimeoutError(f"GET {url}", self.timeout)
            timeout_error.__cause__ = e
            return FetchOutcome.transport_failure(timeout_error)
        except httpx.TimeoutException as e:
            logger.warning(
                "Page configuration fetch timed out",
                extra={"resource_id": resource_id, "timeout": self.timeout},
            )
            return FetchOutcome.transport_failure(e)
        except httpx.HTTPError as e:
            logger.warning(
                "Page configuration fetch failed",
                extra={"resource_id": resource_id, "error": str(e)},
            )
            return FetchOutcome.transport_failure(e)

        return self._to_outcome(resource_id, response)

    def _to_outcome(self, resource_id: str, response: httpx.Response) -> FetchOutcome:
        status_code = response.status_code

        if status_code == 304:
            return FetchOutcome.not_modified()
        if status_code == 404:
            return FetchOutcome.not_found()
        if status_code == 403:
            return FetchOutcome.forbidden()
        if not response.is_success:
            return FetchOutcome.transport_failure(
                httpx.HTTPStatusError(
                    f"Unexpected status {status_code} for {response.request.url}",
                    request=response.request,
                    response=response,
                ),
                status_code=status_code,
            )

        try:
            payload: Any = response.json()
        except ValueError as e:
            raise PayloadDecodeError(resource_id, str(e)) from e
        if not isinstance(payload, dict):
            raise PayloadDecodeError(resource_id, f"got {type(payload).__name__}")

        return FetchOutcome.updated(
            payload=payload,
            etag=response.headers.get("ETag", ""),
            max_age=parse_max_age(response.headers.get("Cache-Control")),
            status_code=status_code,
        )

    async def aclose(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpFetchClient:
        """Enter async context."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit async context, closing the client."""
        await self.aclose()
