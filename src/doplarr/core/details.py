"""Detail collection protocol.

Turns the fields a backend declares for an item into a fully resolved
selection, one user choice at a time. Which fields are user-selectable is
decided once, when the collection is created: a field that starts with a
single option is a configured default and is never offered as a chooser.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from doplarr.core.models import DropdownOption, RequestDetail
from doplarr.errors import InvalidContinuation


@dataclass(frozen=True)
class FieldState:
    """Render state of one field."""

    title: str
    options: tuple[DropdownOption, ...]
    selection: DropdownOption | None

    @property
    def pending(self) -> bool:
        return self.selection is None


@dataclass(frozen=True)
class DetailsState:
    """Snapshot of everything the details view shows."""

    fields: tuple[FieldState, ...]
    submit_enabled: bool
    # Fields that started with a single option; shown as text, never as choosers.
    fixed: tuple[FieldState, ...] = ()


class DetailCollection:
    """Mutable selection state for one session's request details."""

    def __init__(self, details: Iterable[RequestDetail]) -> None:
        self._details = list(details)
        titles = [detail.title for detail in self._details]
        if len(set(titles)) != len(titles):
            raise ValueError(f"request detail titles must be unique: {titles}")
        self._selectable = frozenset(detail.title for detail in self._details if len(detail.options) > 1)

    @property
    def details(self) -> tuple[RequestDetail, ...]:
        return tuple(self._details)

    @property
    def selectable_titles(self) -> frozenset[str]:
        return self._selectable

    def is_selectable(self, title: str) -> bool:
        return title in self._selectable

    def is_complete(self) -> bool:
        return all(detail.is_resolved for detail in self._details)

    def get(self, title: str) -> RequestDetail:
        for detail in self._details:
            if detail.title == title:
                return detail
        raise InvalidContinuation(f"unknown request detail {title!r}")

    def select(self, title: str, index: int) -> DropdownOption:
        """Reduce the field ``title`` to the option at ``index``.

        Raises InvalidContinuation for unknown or non-selectable fields and
        indices outside the field's remaining options.
        """
        if title not in self._selectable:
            raise InvalidContinuation(f"request detail {title!r} is not selectable")
        for position, detail in enumerate(self._details):
            if detail.title != title:
                continue
            try:
                resolved = detail.resolve(index)
            except IndexError:
                raise InvalidContinuation(
                    f"option {index} out of range for {title!r} ({len(detail.options)} options)"
                ) from None
            self._details[position] = resolved
            return resolved.selection
        raise InvalidContinuation(f"unknown request detail {title!r}")

    def resolved(self) -> list[RequestDetail]:
        if not self.is_complete():
            pending = [detail.title for detail in self._details if not detail.is_resolved]
            raise InvalidContinuation(f"request details still pending: {pending}")
        return list(self._details)

    def state(self) -> DetailsState:
        fields: list[FieldState] = []
        fixed: list[FieldState] = []
        for detail in self._details:
            selection = detail.selection if detail.is_resolved else None
            field = FieldState(title=detail.title, options=detail.options, selection=selection)
            if detail.title in self._selectable:
                fields.append(field)
            else:
                fixed.append(field)
        return DetailsState(fields=tuple(fields), submit_enabled=self.is_complete(), fixed=tuple(fixed))


def details_by_key(details: Sequence[RequestDetail]) -> dict[str, DropdownOption]:
    """Index resolved details by metadata key."""
    selections: dict[str, DropdownOption] = {}
    for detail in details:
        if detail.metadata_key is None:
            continue
        selections[detail.metadata_key] = detail.selection
    return selections
