"""Routes inbound chat events to sessions."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from loguru import logger

from doplarr.core.interaction import (
    INTERACTION_TIMEOUT_SECONDS,
    TIMEOUT_MESSAGE,
    Interaction,
    InteractionState,
    Renderer,
    parse_correlation_id,
)
from doplarr.core.models import ContinuationEvent
from doplarr.core.registry import SessionRegistry
from doplarr.errors import ChannelClosed, ChannelFull, ConfigurationError, InvalidContinuation

if TYPE_CHECKING:
    from doplarr.providers.base import MediaBackend, MediaKind


class Dispatcher:
    """Create sessions for new commands and forward continuations into them."""

    def __init__(
        self,
        registry: SessionRegistry,
        backends: Mapping[MediaKind, MediaBackend[Any]],
        *,
        public_followup: bool = True,
        interaction_timeout: float = INTERACTION_TIMEOUT_SECONDS,
    ) -> None:
        self.registry = registry
        self.backends = dict(backends)
        self.public_followup = public_followup
        self.interaction_timeout = interaction_timeout
        self._tasks: set[asyncio.Task[InteractionState]] = set()

    @property
    def kinds(self) -> list[MediaKind]:
        return list(self.backends)

    def start_session(self, kind: MediaKind | str, query: str, renderer: Renderer) -> asyncio.Task[InteractionState]:
        """Allocate a session for ``query`` and spawn its orchestrator."""
        backend = self.backends.get(kind)  # type: ignore[call-overload]
        if backend is None:
            raise ConfigurationError(f"no backend configured for {kind!r}")
        session_id, _, receiver = self.registry.create()
        logger.info("dispatcher.session.start session={} kind={} query={}", session_id, kind, query)
        interaction = Interaction(
            session_id,
            receiver,
            query,
            backend=backend,
            renderer=renderer,
            registry=self.registry,
            public_followup=self.public_followup,
            timeout_seconds=self.interaction_timeout,
        )
        task = asyncio.create_task(interaction.run(), name=f"doplarr.session:{session_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def continue_session(self, event: ContinuationEvent, renderer: Renderer) -> bool:
        """Push ``event`` into its session; render a timeout notice if that is impossible."""
        try:
            _, session_id, _ = parse_correlation_id(event.custom_id)
        except InvalidContinuation:
            logger.warning("dispatcher.continuation.malformed custom_id={}", event.custom_id)
            return False

        sender = self.registry.lookup(session_id)
        if sender is None:
            logger.warning("dispatcher.continuation.unknown session={}", session_id)
            await self._notify_timeout(renderer, event)
            return False

        try:
            sender.try_send(event)
        except (ChannelFull, ChannelClosed):
            logger.warning("dispatcher.continuation.rejected session={}", session_id)
            await self._notify_timeout(renderer, event)
            self.registry.remove(session_id)
            return False
        logger.trace("dispatcher.continuation.sent session={}", session_id)
        return True

    async def wait_closed(self) -> None:
        """Wait for every running session to reach a terminal state."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel every running session; their registry entries are removed as they unwind."""
        for task in list(self._tasks):
            task.cancel()
        await self.wait_closed()
        logger.info("dispatcher.stopped sessions={}", len(self.registry))

    @staticmethod
    async def _notify_timeout(renderer: Renderer, event: ContinuationEvent) -> None:
        try:
            await renderer.show_message(TIMEOUT_MESSAGE, event)
        except Exception:
            logger.exception("dispatcher.timeout_notice.failed")

