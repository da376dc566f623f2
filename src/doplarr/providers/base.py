"""Capability contract every media backend satisfies."""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum
from typing import Protocol

from doplarr.core.models import DropdownOption, MediaDisplayInfo, RequestDetail, SuccessMessage


class MediaKind(StrEnum):
    MOVIE = "movie"
    SERIES = "series"


class MediaItem(Protocol):
    def to_dropdown(self) -> DropdownOption: ...


class MediaBackend[ItemT: MediaItem](Protocol):
    """Search, detail enumeration and submission for one media kind.

    Instances are configured once at connect time and are shared read-only
    by every session.
    """

    kind: MediaKind

    async def search(self, term: str) -> Sequence[ItemT]:
        """Look up ``term`` upstream, in the backend's own result order."""
        ...

    def early_stop(self, item: ItemT) -> bool:
        """Whether ``item`` needs nothing more; computed without I/O."""
        ...

    def display_info(self, item: ItemT) -> MediaDisplayInfo: ...

    async def additional_details(self, item: ItemT) -> list[RequestDetail]:
        """Fields to collect before requesting ``item``.

        Only allowed to do I/O when the item already exists upstream and the
        remaining choices need a fresh read.
        """
        ...

    async def request(self, details: Sequence[RequestDetail], item: ItemT) -> None:
        """Perform the upstream mutation with fully resolved ``details``."""
        ...

    def success_message(self, details: Sequence[RequestDetail], item: ItemT) -> SuccessMessage: ...
