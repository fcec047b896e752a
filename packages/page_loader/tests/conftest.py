"""Shared fixtures for page loader tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest
from page_loader.domain.entities import FetchOutcome
from page_loader.domain.interfaces import FetchClient

PageFactory = Callable[..., dict[str, Any]]


class FakeFetchClient(FetchClient):
    """Scripted fetch client recording every call.

    Outcomes are queued per resource id and consumed in order; the last one
    is repeated. Queued exceptions are raised instead of returned. When
    ``gate`` is set, every fetch blocks until it is released.
    """

    def __init__(self) -> None:
        self.outcomes: dict[str, list[FetchOutcome | BaseException]] = {}
        self.calls: list[tuple[str, str | None]] = []
        self.gate: asyncio.Event | None = None
        self.closed = False

    def queue(self, resource_id: str, *outcomes: FetchOutcome | BaseException) -> None:
        self.outcomes.setdefault(resource_id, []).extend(outcomes)

    def calls_for(self, resource_id: str) -> list[str | None]:
        return [etag for rid, etag in self.calls if rid == resource_id]

    async def fetch(self, resource_id: str, known_etag: str | None = None) -> FetchOutcome:
        self.calls.append((resource_id, known_etag))
        if self.gate is not None:
            await self.gate.wait()

        scripted = self.outcomes.get(resource_id)
        if not scripted:
            raise AssertionError(f"Unexpected fetch for {resource_id}")
        outcome = scripted.pop(0) if len(scripted) > 1 else scripted[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def page_factory() -> PageFactory:
    """Build structurally valid page configurations."""

    def make_page(
        resource_id: str = "dashboard-page", version: str = "1.0.0", **fields: Any
    ) -> dict[str, Any]:
        page: dict[str, Any] = {
            "id": resource_id,
            "version": version,
            "title": "Dashboard",
            "layout": {"type": "grid", "columns": 12},
            "widgets": [
                {"id": "revenue", "type": "chart", "props": {"kind": "line"}},
                {
                    "id": "sidebar",
                    "type": "container",
                    "children": [{"id": "filters", "type": "form"}],
                },
            ],
        }
        page.update(fields)
        return page

    return make_page


@pytest.fixture
def fetch_client() -> FakeFetchClient:
    """Create a scripted fetch client."""
    return FakeFetchClient()
