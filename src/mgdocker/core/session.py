"""Binds one observer connection to one task invocation.

A session subscribes to the bus before its run starts, forwards the events for
its key and finishes with a close event. Completion is detected purely from the
bus: the `done` event for the key, or the bus going away.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

from .dispatcher import TaskDispatcher
from .event_bus import Event, EventBus, EventKind, Subscription, marker_event
from .exceptions import BusClosedError, TaskBusyError
from .logging_utils import log_event
from .runner import TaskRunner
from .sse import CLOSE_EVENT_DATA, CLOSE_EVENT_NAME
from .tasks import Task
from .tracker import TaskTracker, TrackedTask

logger = logging.getLogger(__name__)


def close_event() -> Event:
    return Event(key=CLOSE_EVENT_NAME, data=CLOSE_EVENT_DATA, kind=EventKind.MARKER)


def error_marker(key: str, message: str) -> Event:
    return marker_event(key, f"\nerror: {message}\n")


class StreamSession:
    def __init__(
        self,
        key: str,
        subscription: Subscription,
        tracked: TrackedTask,
        *,
        cancel_on_disconnect: bool = False,
    ) -> None:
        self.key = key
        self.tracked = tracked
        self._subscription = subscription
        self._cancel_on_disconnect = cancel_on_disconnect
        self._closed = False
        tracked.observers += 1

    def __aiter__(self) -> AsyncIterator[Event]:
        return self.events()

    async def events(self) -> AsyncIterator[Event]:
        """Yield this key's events, then one close event."""
        try:
            while True:
                try:
                    event = await self._subscription.recv()
                except BusClosedError as exc:
                    log_event(
                        logger, logging.ERROR, "session.bus_closed", key=self.key, exc=exc
                    )
                    yield error_marker(self.key, str(exc))
                    break
                if event.key != self.key:
                    continue
                if event.is_done:
                    if event.data:
                        yield error_marker(self.key, event.data)
                    break
                yield event
            yield close_event()
        finally:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._subscription.close()
        self.tracked.observers = max(0, self.tracked.observers - 1)
        if (
            self._cancel_on_disconnect
            and self.tracked.observers == 0
            and not self.tracked.done
        ):
            log_event(logger, logging.INFO, "session.cancel_on_disconnect", key=self.key)
            self.tracked.cancel()


class StreamSessionManager:
    def __init__(
        self,
        bus: EventBus,
        runner: TaskRunner,
        tracker: TaskTracker,
        *,
        cancel_on_disconnect: bool = False,
    ) -> None:
        self._bus = bus
        self._runner = runner
        self._tracker = tracker
        self._cancel_on_disconnect = cancel_on_disconnect

    async def open(self, task: Task, resource_name: str) -> StreamSession:
        """Start (or join) the run for `task` and return its event stream.

        Resolution errors propagate before anything is subscribed or spawned.
        With single-flight enabled, a key busy with a different task raises
        TaskBusyError.
        """
        key = TaskDispatcher.event_key(task, resource_name)
        tracked: Optional[TrackedTask] = None
        if self._tracker.single_flight:
            tracked = self._tracker.get(key)
            if tracked is not None and tracked.task is not task:
                raise TaskBusyError(key, tracked.task.value, task.value)
        if tracked is None:
            plan = await self._runner.plan(task, resource_name)
            subscription = self._bus.subscribe()
            try:
                # Another session may have started this key while we planned.
                attached = (
                    self._tracker.single_flight
                    and self._tracker.get(key, task) is not None
                )
                tracked = self._tracker.start(plan)
            except BaseException:
                subscription.close()
                raise
        else:
            subscription = self._bus.subscribe()
            attached = True
        log_event(
            logger,
            logging.INFO,
            "session.opened",
            task=task.value,
            key=key,
            attached=attached,
        )
        return StreamSession(
            key,
            subscription,
            tracked,
            cancel_on_disconnect=self._cancel_on_disconnect,
        )


__all__ = ["StreamSession", "StreamSessionManager", "close_event", "error_marker"]
