"""In-memory broadcast of task output events.

One shared channel for the whole process. Every event carries a key and
subscribers filter on it themselves. Each subscription owns a bounded buffer;
when it is full a line or marker event is dropped for that subscriber only, so
a slow observer never stalls the process producing output. `done` events are
always buffered since sessions rely on them to finish.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Optional

from .exceptions import BusClosedError
from .logging_utils import log_event

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000


class EventKind(str, Enum):
    LINE = "line"
    MARKER = "marker"
    DONE = "done"


@dataclass(frozen=True)
class Event:
    key: str
    data: str
    kind: EventKind = EventKind.LINE
    stream: Optional[str] = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def is_done(self) -> bool:
        return self.kind is EventKind.DONE


def line_event(key: str, text: str, *, stream: Optional[str] = None) -> Event:
    return Event(key=key, data=f"{text}\n", kind=EventKind.LINE, stream=stream)


def marker_event(key: str, text: str) -> Event:
    return Event(key=key, data=text, kind=EventKind.MARKER)


def done_event(key: str, error: Optional[str] = None) -> Event:
    return Event(key=key, data=error or "", kind=EventKind.DONE)


class Subscription:
    """One reader's view of the bus, holding events published after creation."""

    def __init__(
        self,
        bus: "EventBus",
        capacity: int,
        loop: Optional[asyncio.AbstractEventLoop],
    ) -> None:
        self._bus = bus
        self._capacity = capacity
        self._loop = loop
        self._buffer: deque[Event] = deque()
        self._ready = asyncio.Event()
        self._closed = False
        self._bus_closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def _full_for(self, event: Event) -> bool:
        return not event.is_done and len(self._buffer) >= self._capacity

    def _drop(self, event: Event) -> None:
        self.dropped += 1
        if self.dropped == 1:
            log_event(
                logger,
                logging.WARNING,
                "event_bus.subscriber_lagging",
                key=event.key,
                capacity=self._capacity,
            )

    def _offer(self, event: Event) -> bool:
        if self._closed:
            return False
        if self._full_for(event):
            self._drop(event)
            return False
        self._buffer.append(event)
        self._ready.set()
        return True

    def _mark_bus_closed(self) -> None:
        self._bus_closed = True
        self._ready.set()

    def _deliver(self, event: Event) -> bool:
        if self._loop is None or self._loop.is_closed():
            return self._offer(event)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            return self._offer(event)
        if self._closed:
            return False
        if self._full_for(event):
            self._drop(event)
            return False
        try:
            self._loop.call_soon_threadsafe(self._offer, event)
        except RuntimeError:
            # The subscriber loop closed after the check above.
            self._drop(event)
            return False
        return True

    async def recv(self) -> Event:
        """Wait for the next event.

        Raises BusClosedError once the bus is closed and the buffer is drained,
        or when this subscription was closed.
        """
        while True:
            if self._buffer:
                return self._buffer.popleft()
            if self._closed:
                raise BusClosedError("subscription closed")
            if self._bus_closed:
                raise BusClosedError("event bus closed")
            self._ready.clear()
            await self._ready.wait()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        self._ready.set()
        self._bus._remove(self)

    def __aiter__(self) -> AsyncIterator[Event]:
        return self

    async def __anext__(self) -> Event:
        try:
            return await self.recv()
        except BusClosedError:
            raise StopAsyncIteration from None

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class EventBus:
    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._lock = threading.Lock()
        self._subscribers: list[Subscription] = []
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Subscription:
        try:
            loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        with self._lock:
            if self._closed:
                raise BusClosedError("event bus closed")
            subscription = Subscription(self, self._capacity, loop)
            self._subscribers.append(subscription)
        return subscription

    def publish(self, event: Event) -> int:
        """Hand the event to every current subscriber without blocking.

        Returns how many subscribers accepted it. Zero subscribers is fine.
        Subscribers on another loop count once the handoff is scheduled.
        """
        with self._lock:
            if self._closed:
                return 0
            subscribers = list(self._subscribers)
        delivered = 0
        for subscription in subscribers:
            if subscription._deliver(event):
                delivered += 1
        return delivered

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscribers = list(self._subscribers)
            self._subscribers.clear()
        for subscription in subscribers:
            if subscription._loop is None or subscription._loop.is_closed():
                subscription._mark_bus_closed()
                continue
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is subscription._loop:
                subscription._mark_bus_closed()
            else:
                try:
                    subscription._loop.call_soon_threadsafe(
                        subscription._mark_bus_closed
                    )
                except RuntimeError:
                    subscription._mark_bus_closed()

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            try:
                self._subscribers.remove(subscription)
            except ValueError:
                pass


__all__ = [
    "DEFAULT_CAPACITY",
    "Event",
    "EventBus",
    "EventKind",
    "Subscription",
    "done_event",
    "line_event",
    "marker_event",
]
