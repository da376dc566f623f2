from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import pytest

from doplarr.core.models import (
    ContinuationEvent,
    DropdownOption,
    MediaDisplayInfo,
    RequestDetail,
    SuccessMessage,
)
from doplarr.core.registry import SessionRegistry
from doplarr.providers.base import MediaKind


@dataclass(frozen=True)
class FakeItem:
    title: str
    id: int | None = None

    def to_dropdown(self) -> DropdownOption:
        return DropdownOption(title=self.title, id=self.id)


class FakeRenderer:
    """Records every render call and lets tests wait for one to happen."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.broadcast_error: Exception | None = None
        self._changed = asyncio.Condition()

    async def _record(self, name: str, *args: Any) -> None:
        async with self._changed:
            self.calls.append((name, args))
            self._changed.notify_all()

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def last(self, name: str) -> tuple[Any, ...]:
        for call, args in reversed(self.calls):
            if call == name:
                return args
        raise AssertionError(f"{name} was never rendered: {self.names()}")

    def messages(self) -> list[str]:
        return [args[0] for name, args in self.calls if name == "show_message"]

    async def wait_for(self, name: str, count: int = 1, timeout: float = 2.0) -> None:
        async with asyncio.timeout(timeout), self._changed:
            await self._changed.wait_for(lambda: self.count(name) >= count)

    async def defer(self) -> None:
        await self._record("defer")

    async def show_results(
        self, session_id: str, options: Sequence[DropdownOption], event: ContinuationEvent | None = None
    ) -> None:
        await self._record("show_results", session_id, list(options), event)

    async def show_details(self, session_id: str, info: MediaDisplayInfo, state: Any, event: Any) -> None:
        await self._record("show_details", session_id, info, state, event)

    async def show_message(self, text: str, event: ContinuationEvent | None = None) -> None:
        await self._record("show_message", text, event)

    async def acknowledge(self, event: ContinuationEvent) -> None:
        await self._record("acknowledge", event)

    async def show_completion(self, message: SuccessMessage) -> None:
        await self._record("show_completion", message)

    async def broadcast_success(self, message: SuccessMessage) -> None:
        await self._record("broadcast_success", message)
        if self.broadcast_error is not None:
            raise self.broadcast_error


class FakeBackend:
    kind = MediaKind.MOVIE

    def __init__(
        self,
        results: Sequence[FakeItem] = (),
        details: Sequence[RequestDetail] = (),
        *,
        search_error: Exception | None = None,
        request_error: Exception | None = None,
    ) -> None:
        self.results = list(results)
        self.details = list(details)
        self.search_error = search_error
        self.request_error = request_error
        self.searched: list[str] = []
        self.requested: list[tuple[list[RequestDetail], FakeItem]] = []

    async def search(self, term: str) -> list[FakeItem]:
        self.searched.append(term)
        if self.search_error is not None:
            raise self.search_error
        return list(self.results)

    def early_stop(self, item: FakeItem) -> bool:
        return item.id is not None

    def display_info(self, item: FakeItem) -> MediaDisplayInfo:
        return MediaDisplayInfo(title=item.title)

    async def additional_details(self, item: FakeItem) -> list[RequestDetail]:
        return list(self.details)

    async def request(self, details: Sequence[RequestDetail], item: FakeItem) -> None:
        if self.request_error is not None:
            raise self.request_error
        self.requested.append((list(details), item))

    def success_message(self, details: Sequence[RequestDetail], item: FakeItem) -> SuccessMessage:
        return SuccessMessage(title="Request Successful", description=f"{item.title} has been requested")


def detail(title: str, *option_titles: str, key: str | None = None) -> RequestDetail:
    return RequestDetail(
        title=title,
        options=tuple(DropdownOption(title=option, id=index) for index, option in enumerate(option_titles)),
        metadata_key=key,
    )


def event(custom_id: str, *values: str) -> ContinuationEvent:
    return ContinuationEvent(custom_id=custom_id, values=values)


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def make_renderer() -> type[FakeRenderer]:
    return FakeRenderer


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def make_detail() -> Callable[..., RequestDetail]:
    return detail


@pytest.fixture
def make_event() -> Callable[..., ContinuationEvent]:
    return event


@pytest.fixture
def make_item() -> type[FakeItem]:
    return FakeItem


@pytest.fixture
def make_backend() -> type[FakeBackend]:
    return FakeBackend
