"""Value types shared by the orchestrator, the detail protocol and the backends."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

# A backend recovers the chosen value from one of these primitives.
type SelectableId = int | str | bool


class FieldType(Enum):
    DROPDOWN = "dropdown"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class DropdownOption:
    """One entry of a choice list."""

    title: str
    description: str | None = None
    id: SelectableId | None = None


@dataclass(frozen=True)
class RequestDetail:
    """One configurable dimension of a request.

    A detail is resolved once it carries exactly one option. Construction with
    no options is rejected.
    """

    title: str
    options: tuple[DropdownOption, ...]
    metadata_key: str | None = None
    field_type: FieldType = FieldType.DROPDOWN

    def __post_init__(self) -> None:
        if not self.options:
            raise ValueError(f"request detail {self.title!r} needs at least one option")
        if not isinstance(self.options, tuple):
            object.__setattr__(self, "options", tuple(self.options))

    @property
    def is_resolved(self) -> bool:
        return len(self.options) == 1

    @property
    def selection(self) -> DropdownOption:
        if not self.is_resolved:
            raise ValueError(f"request detail {self.title!r} is not resolved")
        return self.options[0]

    def resolve(self, index: int) -> RequestDetail:
        """Return a copy reduced to the option at ``index``."""
        if not 0 <= index < len(self.options):
            raise IndexError(index)
        return replace(self, options=(self.options[index],))


@dataclass(frozen=True)
class MediaDisplayInfo:
    title: str
    subtitle: str | None = None
    description: str | None = None
    thumbnail_url: str | None = None


@dataclass(frozen=True)
class SuccessMessage:
    title: str
    description: str
    thumbnail_url: str | None = None


@dataclass(frozen=True)
class ContinuationEvent:
    """One unit of user input continuing a paused session.

    ``origin`` is the chat platform's handle for the event, used by the
    renderer to acknowledge it; the core never inspects it.
    """

    custom_id: str
    values: tuple[str, ...] = ()
    interaction_id: int | None = None
    token: str | None = None
    origin: Any = field(default=None, compare=False, repr=False)

    @property
    def value(self) -> str | None:
        return self.values[0] if self.values else None
