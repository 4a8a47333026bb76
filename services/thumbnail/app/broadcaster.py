"""
Live completion broadcast — fan-out of ThumbnailCreated events to SSE clients.

Each open /image_uploaded stream owns one bounded queue.  publish() drops the
event into every queue with put_nowait and never waits on a client; a client
whose queue is full is dropped and its stream ends.  There is no backlog:
a client only sees events published while it is connected.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from shared.events.schemas import ThumbnailCreated

logger = logging.getLogger(__name__)

KEEPALIVE_FRAME = b": keep-alive\n\n"


class Listener:
    """One connected stream."""

    def __init__(self, queue_size: int) -> None:
        self._queue: asyncio.Queue[ThumbnailCreated] = asyncio.Queue(maxsize=queue_size)
        self.dropped = False

    def offer(self, event: ThumbnailCreated) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    async def next_event(self, timeout: float) -> ThumbnailCreated | None:
        """Wait up to ``timeout`` seconds; None means nothing arrived."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    @property
    def pending(self) -> int:
        return self._queue.qsize()


class EventBroadcaster:
    def __init__(self, queue_size: int = 64, keepalive_seconds: float = 15.0) -> None:
        self._queue_size = queue_size
        self._keepalive_seconds = keepalive_seconds
        self._listeners: set[Listener] = set()
        self._lock = asyncio.Lock()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def connect(self) -> Listener:
        listener = Listener(self._queue_size)
        async with self._lock:
            self._listeners.add(listener)
        logger.info("Listener connected (%d active)", self.listener_count)
        return listener

    async def disconnect(self, listener: Listener) -> None:
        async with self._lock:
            self._listeners.discard(listener)
        logger.info("Listener disconnected (%d active)", self.listener_count)

    async def publish(self, event: ThumbnailCreated) -> int:
        """Queue the event for every connected listener. Returns how many got it."""
        async with self._lock:
            listeners = tuple(self._listeners)

        delivered = 0
        stale: list[Listener] = []
        for listener in listeners:
            if listener.offer(event):
                delivered += 1
            else:
                stale.append(listener)

        if stale:
            async with self._lock:
                for listener in stale:
                    listener.dropped = True
                    self._listeners.discard(listener)
            logger.warning("Dropped %d listener(s) with a full queue", len(stale))

        logger.debug("Published %s to %d listener(s)", event.url, delivered)
        return delivered

    async def stream(self, is_disconnected: Callable[[], Awaitable[bool]]) -> AsyncIterator[bytes]:
        """SSE byte stream for one client. Registers on first iteration, always unregisters."""
        listener = await self.connect()
        try:
            while not listener.dropped:
                if await is_disconnected():
                    break
                event = await listener.next_event(self._keepalive_seconds)
                if event is None:
                    yield KEEPALIVE_FRAME
                    continue
                yield event.to_sse()
        finally:
            await self.disconnect(listener)
