"""Caller-side cancellation for page loads."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """Signal a single caller uses to stop waiting for a load.

    Cancelling a token detaches only the caller that passed it; a fetch shared
    with other callers keeps running and still updates the cache.
    """

    def __init__(self) -> None:
        """Initialize an uncancelled token."""
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        """Check whether cancel() has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation."""
        self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()
