from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .event_bus import EventBus, done_event
from .exceptions import TaskBusyError
from .logging_utils import log_event
from .runner import TaskRunner
from .tasks import Task, TaskPlan

logger = logging.getLogger(__name__)


@dataclass
class TrackedTask:
    key: str
    task: Task
    handle: "asyncio.Task[None]"
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    observers: int = 0

    @property
    def done(self) -> bool:
        return self.handle.done()

    def cancel(self) -> bool:
        return self.handle.cancel()

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "task": self.task.value,
            "started_at": self.started_at.isoformat(),
            "observers": self.observers,
        }


class TaskTracker:
    """Owns the background runs started on behalf of stream sessions.

    Runs are detached from the request that started them. Every run ends with
    exactly one `done` event on the bus for its key, whether it succeeded,
    failed or was cancelled.
    """

    def __init__(
        self, bus: EventBus, runner: TaskRunner, *, single_flight: bool = True
    ) -> None:
        self._bus = bus
        self._runner = runner
        self._single_flight = single_flight
        self._running: dict[str, list[TrackedTask]] = {}

    @property
    def single_flight(self) -> bool:
        return self._single_flight

    def get(self, key: str, task: Optional[Task] = None) -> Optional[TrackedTask]:
        """The first unfinished run for `key`, optionally only one of `task`."""
        for tracked in self._running.get(key, []):
            if tracked.done:
                continue
            if task is None or tracked.task is task:
                return tracked
        return None

    def active(self) -> list[TrackedTask]:
        return [
            tracked
            for entries in self._running.values()
            for tracked in entries
            if not tracked.done
        ]

    def start(self, plan: TaskPlan) -> TrackedTask:
        """Start `plan` in the background.

        With single-flight enabled, an existing run of the same task for the
        same key is returned instead and `plan` is discarded. A run of a
        different task on that key raises TaskBusyError.
        """
        if self._single_flight:
            existing = self.get(plan.key)
            if existing is not None and existing.task is not plan.task:
                raise TaskBusyError(plan.key, existing.task.value, plan.task.value)
            if existing is not None:
                log_event(
                    logger,
                    logging.INFO,
                    "task.attached",
                    task=existing.task.value,
                    key=plan.key,
                )
                return existing
        handle = asyncio.create_task(
            self._run(plan), name=f"mgdocker-task:{plan.task.value}:{plan.key}"
        )
        tracked = TrackedTask(key=plan.key, task=plan.task, handle=handle)
        self._running.setdefault(plan.key, []).append(tracked)
        handle.add_done_callback(lambda _: self._forget(tracked))
        return tracked

    async def _run(self, plan: TaskPlan) -> None:
        error: Optional[str] = None
        try:
            await self._runner.execute(plan, self._bus.publish)
        except asyncio.CancelledError:
            error = "cancelled"
            log_event(
                logger, logging.WARNING, "task.cancelled", task=plan.task.value, key=plan.key
            )
            raise
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            log_event(
                logger,
                logging.ERROR,
                "task.failed",
                task=plan.task.value,
                key=plan.key,
                exc=exc,
            )
        finally:
            self._bus.publish(done_event(plan.key, error))

    def _forget(self, tracked: TrackedTask) -> None:
        entries = self._running.get(tracked.key)
        if not entries:
            return
        remaining = [entry for entry in entries if entry is not tracked]
        if remaining:
            self._running[tracked.key] = remaining
        else:
            self._running.pop(tracked.key, None)

    def cancel(self, key: str) -> int:
        cancelled = 0
        for tracked in list(self._running.get(key, [])):
            if not tracked.done and tracked.cancel():
                cancelled += 1
        return cancelled

    async def cancel_all(self) -> None:
        handles = [tracked.handle for tracked in self.active()]
        for handle in handles:
            handle.cancel()
        if handles:
            await asyncio.gather(*handles, return_exceptions=True)


__all__ = ["TaskTracker", "TrackedTask"]
