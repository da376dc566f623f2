"""Session orchestration core."""

from doplarr.core.details import DetailCollection, DetailsState, FieldState
from doplarr.core.dispatcher import Dispatcher
from doplarr.core.interaction import Interaction, InteractionState, Renderer
from doplarr.core.models import (
    ContinuationEvent,
    DropdownOption,
    FieldType,
    MediaDisplayInfo,
    RequestDetail,
    SuccessMessage,
)
from doplarr.core.registry import SessionRegistry

__all__ = [
    "ContinuationEvent",
    "DetailCollection",
    "DetailsState",
    "Dispatcher",
    "DropdownOption",
    "FieldState",
    "FieldType",
    "Interaction",
    "InteractionState",
    "MediaDisplayInfo",
    "Renderer",
    "RequestDetail",
    "SessionRegistry",
    "SuccessMessage",
]
