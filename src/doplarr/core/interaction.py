"""Per-session interaction state machine.

One ``Interaction`` drives a session from the initial query to exactly one
terminal state, pausing for user input through the session's receiver and
publishing every step through a ``Renderer``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from contextvars import ContextVar
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from doplarr.core.details import DetailCollection, DetailsState
from doplarr.core.models import ContinuationEvent, DropdownOption, MediaDisplayInfo, SuccessMessage
from doplarr.core.registry import SessionReceiver, SessionRegistry
from doplarr.errors import ChannelClosed, InteractionTimeout, InvalidContinuation, user_facing_error

if TYPE_CHECKING:
    from doplarr.providers.base import MediaBackend

MAX_RESULTS = 25
INTERACTION_TIMEOUT_SECONDS = 300.0

TIMEOUT_MESSAGE = "Interaction timed out, please try again"
EARLY_STOP_MESSAGE = "Already requested - nothing more to add"
NO_RESULTS_MESSAGE = "No results"

RESULT_SCOPE = "result"
DETAIL_SCOPE = "detail"
SUBMIT_SCOPE = "submit"

_session_context: ContextVar[str] = ContextVar("session")


def current_session() -> str:
    """Get the id of the session being processed in this context."""
    return _session_context.get("-")


class InteractionState(Enum):
    SEARCHING = "searching"
    AWAITING_RESULT_SELECTION = "awaiting_result_selection"
    COLLECTING_DETAILS = "collecting_details"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    EARLY_STOPPED = "early_stopped"
    NO_RESULTS = "no_results"
    TIMED_OUT = "timed_out"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({
    InteractionState.COMPLETED,
    InteractionState.EARLY_STOPPED,
    InteractionState.NO_RESULTS,
    InteractionState.TIMED_OUT,
    InteractionState.FAILED,
})


class Renderer(Protocol):
    """Chat-side presentation of one session.

    ``event`` arguments name the continuation being answered, so the renderer
    can acknowledge it; without one the original command response is edited.
    """

    async def defer(self) -> None: ...

    async def show_results(
        self, session_id: str, options: Sequence[DropdownOption], event: ContinuationEvent | None = None
    ) -> None: ...

    async def show_details(
        self, session_id: str, info: MediaDisplayInfo, state: DetailsState, event: ContinuationEvent
    ) -> None: ...

    async def show_message(self, text: str, event: ContinuationEvent | None = None) -> None: ...

    async def acknowledge(self, event: ContinuationEvent) -> None:
        """Accept ``event`` without rendering, before work that may be slow."""
        ...

    async def show_completion(self, message: SuccessMessage) -> None: ...

    async def broadcast_success(self, message: SuccessMessage) -> None: ...


class Interaction[ItemT]:
    """State machine for one request session."""

    def __init__(
        self,
        session_id: str,
        receiver: SessionReceiver,
        query: str,
        *,
        backend: MediaBackend[ItemT],
        renderer: Renderer,
        registry: SessionRegistry,
        public_followup: bool = True,
        timeout_seconds: float = INTERACTION_TIMEOUT_SECONDS,
    ) -> None:
        self.session_id = session_id
        self.query = query
        self.state = InteractionState.SEARCHING
        self._receiver = receiver
        self._backend = backend
        self._renderer = renderer
        self._registry = registry
        self._public_followup = public_followup
        self._timeout_seconds = timeout_seconds
        self._last_event: ContinuationEvent | None = None

    async def run(self) -> InteractionState:
        """Drive the session to a terminal state, then unregister it."""
        token = _session_context.set(self.session_id)
        logger.info("interaction.start kind={} query={}", self._backend.kind, self.query)
        try:
            self.state = await self._run()
        except InteractionTimeout:
            logger.info("interaction.timeout state={}", self.state.value)
            self.state = InteractionState.TIMED_OUT
            await self._notify(TIMEOUT_MESSAGE)
        except Exception as exc:
            if isinstance(exc, ChannelClosed):
                logger.error("interaction.channel_closed state={}", self.state.value)
            else:
                logger.exception("interaction.failed state={}", self.state.value)
            self.state = InteractionState.FAILED
            await self._notify(user_facing_error(exc))
        finally:
            self._registry.remove(self.session_id)
            logger.info("interaction.finish outcome={}", self.state.value)
            _session_context.reset(token)
        return self.state

    async def _run(self) -> InteractionState:
        await self._renderer.defer()

        self.state = InteractionState.SEARCHING
        results = list(await self._backend.search(self.query))
        logger.info("interaction.search.done count={}", len(results))
        if not results:
            await self._renderer.show_message(NO_RESULTS_MESSAGE)
            return InteractionState.NO_RESULTS
        if len(results) > MAX_RESULTS:
            logger.info("interaction.search.truncate count={} limit={}", len(results), MAX_RESULTS)
            results = results[:MAX_RESULTS]

        self.state = InteractionState.AWAITING_RESULT_SELECTION
        options = [item.to_dropdown() for item in results]  # type: ignore[attr-defined]
        await self._renderer.show_results(self.session_id, options)
        item, event = await self._await_result(results, options)
        await self._renderer.acknowledge(event)

        if self._backend.early_stop(item):
            logger.info("interaction.early_stop")
            await self._renderer.show_message(EARLY_STOP_MESSAGE, event)
            return InteractionState.EARLY_STOPPED

        self.state = InteractionState.COLLECTING_DETAILS
        collection = DetailCollection(await self._backend.additional_details(item))
        info = self._backend.display_info(item)
        await self._renderer.show_details(self.session_id, info, collection.state(), event)
        await self._collect(collection, info)

        self.state = InteractionState.SUBMITTING
        details = collection.resolved()
        success = self._backend.success_message(details, item)
        await self._backend.request(details, item)
        logger.info("interaction.request.done")

        await self._renderer.show_completion(success)
        if self._public_followup:
            try:
                await self._renderer.broadcast_success(success)
            except Exception:
                logger.exception("interaction.broadcast.failed")
        return InteractionState.COMPLETED

    async def _next_event(self) -> ContinuationEvent:
        try:
            async with asyncio.timeout(self._timeout_seconds):
                event = await self._receiver.recv()
        except TimeoutError:
            raise InteractionTimeout(f"no input within {self._timeout_seconds:.0f}s") from None
        self._last_event = event
        return event

    async def _await_result(
        self, results: Sequence[ItemT], options: Sequence[DropdownOption]
    ) -> tuple[ItemT, ContinuationEvent]:
        logger.debug("interaction.await_result")
        while True:
            event = await self._next_event()
            try:
                index = _parse_index(event, len(results))
            except InvalidContinuation as exc:
                logger.warning("interaction.result.ignored reason={}", exc)
                await self._renderer.show_results(self.session_id, options, event)
                continue
            logger.info("interaction.result.selected index={}", index)
            return results[index], event

    async def _collect(self, collection: DetailCollection, info: MediaDisplayInfo) -> None:
        while True:
            logger.debug("interaction.await_detail")
            event = await self._next_event()
            try:
                scope, _, title = parse_correlation_id(event.custom_id)
                if scope == SUBMIT_SCOPE:
                    if not collection.is_complete():
                        raise InvalidContinuation("submit before every detail was resolved")
                    logger.info("interaction.submit")
                    await self._renderer.show_details(self.session_id, info, collection.state(), event)
                    return
                if scope != DETAIL_SCOPE or title is None:
                    raise InvalidContinuation(f"unexpected scope {scope!r}")
                detail = collection.get(title)
                selected = collection.select(title, _parse_index(event, len(detail.options)))
                logger.debug("interaction.detail.selected detail={} selected={}", title, selected.title)
                if collection.is_complete():
                    logger.debug("interaction.detail.complete")
            except InvalidContinuation as exc:
                logger.warning("interaction.detail.ignored reason={}", exc)
            await self._renderer.show_details(self.session_id, info, collection.state(), event)

    async def _notify(self, text: str) -> None:
        try:
            await self._renderer.show_message(text, self._last_event)
        except Exception:
            logger.exception("interaction.notify.failed")


def format_correlation_id(scope: str, session_id: str, title: str | None = None) -> str:
    if title is None:
        return f"{scope}:{session_id}"
    return f"{scope}:{session_id}:{title}"


def parse_correlation_id(custom_id: str) -> tuple[str, str, str | None]:
    """Split ``scope:session[:title]``; the title may itself contain colons."""
    parts = custom_id.split(":", 2)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise InvalidContinuation(f"malformed correlation id {custom_id!r}")
    title = parts[2] if len(parts) == 3 else None
    return parts[0], parts[1], title


def _parse_index(event: ContinuationEvent, size: int) -> int:
    raw = event.value
    if raw is None:
        raise InvalidContinuation(f"no value in {event.custom_id!r}")
    try:
        index = int(raw)
    except ValueError:
        raise InvalidContinuation(f"non-numeric selection {raw!r}") from None
    if not 0 <= index < size:
        raise InvalidContinuation(f"selection {index} out of range ({size} entries)")
    return index
