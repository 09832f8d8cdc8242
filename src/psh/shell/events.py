"""Session commands and events, and the broadcast bus that carries events.

Commands flow into a session through its queue (single consumer). Events
flow out through an :class:`EventBus` to any number of subscribers; each
subscriber has its own bounded ring and its own read cursor.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Union

from psh.errors import EventStreamClosed

logger = logging.getLogger(__name__)

EVENT_BUFFER_SIZE = 1024


# ---------------------------------------------------------------------------
# Commands (caller -> session)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WriteLine:
    text: str


@dataclass(frozen=True)
class WriteBytes:
    data: bytes


@dataclass(frozen=True)
class Resize:
    cols: int
    rows: int


@dataclass(frozen=True)
class Shutdown:
    pass


ShellCmd = Union[WriteLine, WriteBytes, Resize, Shutdown]


# ---------------------------------------------------------------------------
# Events (session -> subscribers)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Output:
    text: str


@dataclass(frozen=True)
class Exited:
    reason: str


ShellEvent = Union[Output, Exited]


class Subscription:
    """One subscriber's cursor over an :class:`EventBus`.

    Holds at most ``maxsize`` undelivered events. When the ring is full the
    oldest event is dropped and counted in :attr:`missed`.
    """

    def __init__(self, name: str, maxsize: int = EVENT_BUFFER_SIZE) -> None:
        self.name = name
        self.missed = 0
        self._queue: asyncio.Queue[ShellEvent | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    def _push(self, item: ShellEvent | None) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.missed += 1
        self._queue.put_nowait(item)

    async def recv(self) -> ShellEvent:
        """Wait for the next event.

        Raises:
            EventStreamClosed: The bus was closed and every buffered event
                has already been delivered.
        """
        if self._closed and self._queue.empty():
            raise EventStreamClosed(self.name)
        item = await self._queue.get()
        if item is None:
            self._closed = True
            raise EventStreamClosed(self.name)
        return item

    def recv_nowait(self) -> ShellEvent | None:
        """Return the next buffered event, or ``None`` if nothing is buffered."""
        if self._queue.empty():
            return None
        item = self._queue.get_nowait()
        if item is None:
            self._closed = True
            return None
        return item

    def __aiter__(self) -> AsyncIterator[ShellEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ShellEvent]:
        while True:
            try:
                yield await self.recv()
            except EventStreamClosed:
                return


class EventBus:
    """Broadcast of session events: one producer side, many subscribers.

    A late subscriber only sees events sent after it subscribed. Must be used
    from the event loop thread.
    """

    def __init__(self, name: str, maxsize: int = EVENT_BUFFER_SIZE) -> None:
        self.name = name
        self._maxsize = maxsize
        self._subscribers: list[Subscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: ShellEvent) -> int:
        """Deliver ``event`` to every subscriber; returns how many got it."""
        if self._closed:
            logger.debug("Event for %s dropped after close: %r", self.name, event)
            return 0
        for sub in self._subscribers:
            sub._push(event)
        if not self._subscribers:
            logger.debug("No subscribers for %s event %r", self.name, event)
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        sub = Subscription(self.name, maxsize=self._maxsize)
        if self._closed:
            sub._push(None)
        else:
            self._subscribers.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)

    def close(self) -> None:
        """End the stream; subscribers drain what is buffered, then stop."""
        if self._closed:
            return
        self._closed = True
        for sub in self._subscribers:
            sub._push(None)
        self._subscribers.clear()

    def __len__(self) -> int:
        return len(self._subscribers)
