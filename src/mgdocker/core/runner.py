from __future__ import annotations

import asyncio
import logging
import time
from contextlib import aclosing
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence

from .dispatcher import TaskDispatcher
from .event_bus import Event, EventKind, line_event, marker_event
from .exceptions import CommandFailedError, CommandSpawnError, ProcessError
from .line_mux import LineReader, merge_lines
from .logging_utils import log_event
from .tasks import CommandStep, ReadFileStep, Task, TaskPlan

logger = logging.getLogger(__name__)

Publish = Callable[[Event], Any]


class ProcessHandle(Protocol):
    stdout: Optional[LineReader]
    stderr: Optional[LineReader]
    returncode: Optional[int]

    async def wait(self) -> int: ...

    def kill(self) -> None: ...


SpawnFn = Callable[..., Awaitable[ProcessHandle]]


async def _kill(process: ProcessHandle) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        return
    await process.wait()


def read_config_text(path: Path) -> str:
    """Return the file's lines joined by newlines, without a trailing one."""
    return "\n".join(path.read_text(encoding="utf-8").splitlines())


class TaskRunner:
    """Executes task plans step by step, publishing output as it arrives."""

    def __init__(self, dispatcher: TaskDispatcher, spawn: SpawnFn) -> None:
        self._dispatcher = dispatcher
        self._spawn = spawn

    @property
    def dispatcher(self) -> TaskDispatcher:
        return self._dispatcher

    async def plan(self, task: Task, resource_name: str) -> TaskPlan:
        return await asyncio.to_thread(self._dispatcher.plan, task, resource_name)

    async def run(self, task: Task, resource_name: str, publish: Publish) -> None:
        plan = await self.plan(task, resource_name)
        await self.execute(plan, publish)

    async def execute(self, plan: TaskPlan, publish: Publish) -> None:
        started = time.monotonic()
        log_event(
            logger,
            logging.INFO,
            "task.started",
            task=plan.task.value,
            key=plan.key,
        )
        for step in plan.steps:
            if isinstance(step, ReadFileStep):
                await self._read_file(plan.key, step, publish)
            else:
                await self._run_command(plan.key, step, publish)
        log_event(
            logger,
            logging.INFO,
            "task.completed",
            task=plan.task.value,
            key=plan.key,
            duration_seconds=round(time.monotonic() - started, 3),
        )

    async def _run_command(
        self, key: str, step: CommandStep, publish: Publish
    ) -> None:
        publish(marker_event(key, step.marker))
        log_event(
            logger, logging.DEBUG, "task.step_started", key=key, command=step.display
        )
        argv: Sequence[str] = step.argv
        try:
            process = await self._spawn(argv, cwd=step.cwd)
        except (OSError, ValueError) as exc:
            raise CommandSpawnError(list(argv), exc) from exc
        try:
            async with aclosing(merge_lines(process.stdout, process.stderr)) as lines:
                async for line in lines:
                    publish(line_event(key, line.text, stream=line.stream))
            returncode = await process.wait()
        except BaseException:
            await _kill(process)
            raise
        if returncode != 0:
            raise CommandFailedError(list(argv), returncode)

    async def _read_file(self, key: str, step: ReadFileStep, publish: Publish) -> None:
        try:
            text = await asyncio.to_thread(read_config_text, step.path)
        except (OSError, UnicodeDecodeError) as exc:
            raise ProcessError(f"failed to read {step.path}: {exc}") from exc
        publish(Event(key=key, data=text, kind=EventKind.LINE))


__all__ = ["ProcessHandle", "Publish", "SpawnFn", "TaskRunner", "read_config_text"]
