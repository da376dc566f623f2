"""Session registry and abandoned-session reaper."""

from __future__ import annotations

import asyncio
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from doplarr.core.models import ContinuationEvent
from doplarr.errors import ChannelClosed, ChannelFull

REAPER_INTERVAL_SECONDS = 60.0
ABANDON_AFTER_SECONDS = 300.0

_CLOSED = object()


class SessionChannel:
    """Bounded, non-blocking-on-send channel of continuation events.

    Events pushed before the channel closes are still delivered; once they are
    drained a receiver gets ChannelClosed.
    """

    def __init__(self, capacity: int = 1) -> None:
        self._capacity = capacity
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._pending = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def try_send(self, event: ContinuationEvent) -> None:
        if self._closed:
            raise ChannelClosed("session channel is closed")
        if self._pending >= self._capacity:
            raise ChannelFull("session channel is full")
        self._pending += 1
        self._queue.put_nowait(event)

    async def recv(self) -> ContinuationEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the marker so later receives fail too.
            self._queue.put_nowait(_CLOSED)
            raise ChannelClosed("session channel closed unexpectedly")
        self._pending -= 1
        return item  # type: ignore[return-value]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)


@dataclass(frozen=True)
class SessionSender:
    session_id: str
    _channel: SessionChannel

    def try_send(self, event: ContinuationEvent) -> None:
        self._channel.try_send(event)


@dataclass(frozen=True)
class SessionReceiver:
    session_id: str
    _channel: SessionChannel

    async def recv(self) -> ContinuationEvent:
        return await self._channel.recv()


@dataclass
class _Entry:
    channel: SessionChannel
    created_at: float


class SessionRegistry:
    """Process-wide index of in-flight sessions.

    Every method takes the lock only around plain dict operations, so it is
    safe to call from the dispatcher, the reaper and orchestrator cleanup.
    """

    def __init__(
        self,
        *,
        abandon_after: float = ABANDON_AFTER_SECONDS,
        reaper_interval: float = REAPER_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.abandon_after = abandon_after
        self.reaper_interval = reaper_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._entries

    def create(self) -> tuple[str, SessionSender, SessionReceiver]:
        session_id = str(uuid.uuid4())
        channel = SessionChannel(capacity=1)
        with self._lock:
            self._entries[session_id] = _Entry(channel=channel, created_at=self._clock())
        logger.debug("registry.create session={}", session_id)
        return session_id, SessionSender(session_id, channel), SessionReceiver(session_id, channel)

    def lookup(self, session_id: str) -> SessionSender | None:
        with self._lock:
            entry = self._entries.get(session_id)
        if entry is None:
            return None
        return SessionSender(session_id, entry.channel)

    def remove(self, session_id: str) -> bool:
        """Drop a session and close its channel; returns False if it was already gone."""
        with self._lock:
            entry = self._entries.pop(session_id, None)
        if entry is None:
            return False
        entry.channel.close()
        logger.debug("registry.remove session={}", session_id)
        return True

    def reap(self) -> list[str]:
        """Evict every session older than the abandonment threshold."""
        now = self._clock()
        with self._lock:
            expired = {
                session_id: entry
                for session_id, entry in self._entries.items()
                if now - entry.created_at > self.abandon_after
            }
            for session_id in expired:
                del self._entries[session_id]
        for session_id, entry in expired.items():
            entry.channel.close()
            logger.debug("registry.reap session={} age_secs={:.0f}", session_id, now - entry.created_at)
        if expired:
            logger.info("registry.reaped count={}", len(expired))
        return list(expired)

    async def run_reaper(self) -> None:
        while True:
            await asyncio.sleep(self.reaper_interval)
            self.reap()

    def start_reaper(self) -> asyncio.Task[None]:
        return asyncio.create_task(self.run_reaper(), name="doplarr.reaper")
