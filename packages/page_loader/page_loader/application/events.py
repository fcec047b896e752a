"""Events published when background revalidation settles."""

from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import BaseModel, Field

from page_loader.infrastructure.logging import get_logger

logger = get_logger(__name__)

REVALIDATION_COMPLETED = "revalidation.completed"
REVALIDATION_FAILED = "revalidation.failed"


class Event(BaseModel):
    """Notification about one page."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str = Field(..., description="Type of event")
    resource_id: str = Field(..., description="Page the event concerns")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def revalidation_completed(
        cls, resource_id: str, etag: str | None, updated: bool
    ) -> Event:
        """A background refresh stored a new version or confirmed the cached one."""
        return cls(
            event_type=REVALIDATION_COMPLETED,
            resource_id=resource_id,
            data={"etag": etag, "updated": updated},
        )

    @classmethod
    def revalidation_failed(
        cls, resource_id: str, kind: str, error: str | None = None
    ) -> Event:
        """A background refresh failed; the stale entry stays in place."""
        data: dict[str, Any] = {"kind": kind}
        if error is not None:
            data["error"] = error
        return cls(event_type=REVALIDATION_FAILED, resource_id=resource_id, data=data)


class EventHandler(Protocol):
    """Observer of loader events."""

    async def handle(self, event: Event) -> None:
        """Handle an event."""
        ...


class EventBus:
    """In-process fan-out of loader events to their observers."""

    def __init__(self) -> None:
        self._handlers: defaultdict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Register a handler for one event type."""
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """Remove a handler; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event_type: str) -> int:
        """Number of handlers registered for an event type."""
        return len(self._handlers.get(event_type, ()))

    async def publish(self, event: Event) -> None:
        """Deliver an event to every handler of its type, in subscription order.

        A failing handler is logged and does not stop delivery to the others.
        """
        for handler in list(self._handlers.get(event.event_type, ())):
            try:
                await handler.handle(event)
            except Exception as e:
                logger.error(
                    "Event handler failed",
                    exc_info=e,
                    extra={"event_type": event.event_type, "resource_id": event.resource_id},
                )
