"""Collapsing of concurrent fetches for the same resource into one."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Generic, TypeVar

from page_loader.application.cancellation import CancellationToken
from page_loader.domain.exceptions import LoadCancelledError
from page_loader.infrastructure.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class InFlightRequest(Generic[T]):
    """Shared handle for a fetch in progress."""

    resource_id: str
    task: asyncio.Task[T]
    started_at: datetime
    waiters: int = 1


class RequestDeduplicator(Generic[T]):
    """Guarantees at most one in-flight fetch per resource id.

    The shared work runs in its own task. Callers wait on it through
    ``asyncio.shield``, so a caller that goes away (cancelled task or fired
    cancellation token) never cancels the work other callers are waiting on.
    The registration is dropped as soon as the work settles, so the next call
    starts a fresh fetch.
    """

    def __init__(self, on_join: Callable[[str], None] | None = None) -> None:
        """Initialize the deduplicator.

        Args:
            on_join: Optional hook called when a caller attaches to existing work
        """
        self._in_flight: dict[str, InFlightRequest[T]] = {}
        self._on_join = on_join

    async def run(
        self,
        resource_id: str,
        fetch_fn: Callable[[], Awaitable[T]],
        cancellation: CancellationToken | None = None,
    ) -> T:
        """Run ``fetch_fn`` or attach to the fetch already running for the id.

        Args:
            resource_id: Deduplication key
            fetch_fn: Zero-argument coroutine function doing the work
            cancellation: Token detaching this caller only

        Returns:
            Result of the shared work

        Raises:
            LoadCancelledError: If ``cancellation`` fires before the work settles
            Exception: Whatever the shared work raised, identically for every caller
        """
        if cancellation is not None and cancellation.cancelled:
            raise LoadCancelledError(resource_id)

        request = self._in_flight.get(resource_id)
        if request is None or request.task.done():
            request = self._start(resource_id, fetch_fn)
        else:
            request.waiters += 1
            logger.debug(
                "Attached to in-flight fetch",
                extra={"resource_id": resource_id, "waiters": request.waiters},
            )
            if self._on_join is not None:
                self._on_join(resource_id)

        if cancellation is None:
            return await asyncio.shield(request.task)
        return await self._wait_cancellable(request, cancellation)

    def in_flight(self, resource_id: str) -> bool:
        """Check whether a fetch for the id is currently running."""
        return resource_id in self._in_flight

    @property
    def in_flight_count(self) -> int:
        """Get number of running fetches."""
        return len(self._in_flight)

    async def wait_idle(self) -> None:
        """Wait until every running fetch has settled, ignoring their results."""
        while self._in_flight:
            tasks = [request.task for request in self._in_flight.values()]
            await asyncio.gather(*tasks, return_exceptions=True)
            # Let done-callbacks drop the settled registrations
            await asyncio.sleep(0)

    def _start(
        self, resource_id: str, fetch_fn: Callable[[], Awaitable[T]]
    ) -> InFlightRequest[T]:
        task: asyncio.Task[T] = asyncio.ensure_future(fetch_fn())
        request = InFlightRequest(
            resource_id=resource_id, task=task, started_at=datetime.now(UTC)
        )
        self._in_flight[resource_id] = request
        task.add_done_callback(lambda t: self._settle(request, t))
        logger.debug("Started fetch", extra={"resource_id": resource_id})
        return request

    def _settle(self, request: InFlightRequest[T], task: asyncio.Task[T]) -> None:
        if self._in_flight.get(request.resource_id) is request:
            del self._in_flight[request.resource_id]
        # Mark the exception retrieved even when every waiter detached
        if not task.cancelled():
            task.exception()
        logger.debug(
            "Fetch settled",
            extra={
                "resource_id": request.resource_id,
                "waiters": request.waiters,
                "duration_ms": (datetime.now(UTC) - request.started_at).total_seconds() * 1000,
            },
        )

    async def _wait_cancellable(
        self, request: InFlightRequest[T], cancellation: CancellationToken
    ) -> T:
        shielded = asyncio.shield(request.task)
        cancelled = asyncio.ensure_future(cancellation.wait())
        try:
            await asyncio.wait({shielded, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            if not shielded.done():
                # Cancels only this caller's view of the shared task
                shielded.cancel()

        if shielded.cancelled() or not shielded.done():
            logger.debug(
                "Caller detached from fetch",
                extra={"resource_id": request.resource_id},
            )
            raise LoadCancelledError(request.resource_id)
        return shielded.result()
