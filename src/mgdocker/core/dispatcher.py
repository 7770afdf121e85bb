from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from .logging_utils import log_event
from .tasks import (
    DOWN_MARKER,
    GLOBAL_TASK_KEY,
    PRUNE_MARKER,
    PULL_MARKER,
    UP_MARKER,
    CommandStep,
    ReadFileStep,
    Step,
    Task,
    TaskPlan,
)

logger = logging.getLogger(__name__)


class DockerCommands(Protocol):
    def compose_config_file(self, name: str) -> Path: ...

    def compose_command(self, *args: str) -> tuple[str, ...]: ...

    def prune_images_command(self) -> tuple[str, ...]: ...


def resolve_task(name: str) -> Task:
    """Map a task identifier from a URL or CLI argument to a Task.

    Raises UnknownTaskError for anything outside the fixed set.
    """
    return Task.parse(name)


class TaskDispatcher:
    def __init__(self, docker: DockerCommands) -> None:
        self._docker = docker

    @staticmethod
    def event_key(task: Task, resource_name: str) -> str:
        return GLOBAL_TASK_KEY if task.is_global else resource_name

    def plan(self, task: Task, resource_name: str) -> TaskPlan:
        """Resolve resource context and build the step list.

        Blocking: container tasks shell out to `docker inspect`. Raises a
        ResolutionError subclass when the compose label cannot be found.
        """
        steps: tuple[Step, ...]
        if task is Task.PRUNE_IMAGES:
            steps = (
                CommandStep(
                    argv=self._docker.prune_images_command(), marker=PRUNE_MARKER
                ),
            )
        else:
            config_file = self._docker.compose_config_file(resource_name)
            compose_dir = config_file.parent
            if task is Task.PULL:
                steps = (
                    CommandStep(
                        argv=self._docker.compose_command("pull"),
                        marker=PULL_MARKER,
                        cwd=compose_dir,
                    ),
                )
            elif task is Task.UPDATE:
                steps = (
                    CommandStep(
                        argv=self._docker.compose_command("down"),
                        marker=DOWN_MARKER,
                        cwd=compose_dir,
                    ),
                    CommandStep(
                        argv=self._docker.compose_command("up", "-d"),
                        marker=UP_MARKER,
                        cwd=compose_dir,
                    ),
                )
            elif task is Task.GET_CONFIG:
                steps = (ReadFileStep(path=config_file),)
            else:  # pragma: no cover - exhaustive over Task
                raise AssertionError(f"unhandled task {task!r}")
        plan = TaskPlan(
            task=task,
            key=self.event_key(task, resource_name),
            resource_name=resource_name,
            steps=steps,
        )
        log_event(
            logger,
            logging.DEBUG,
            "task.planned",
            task=task.value,
            key=plan.key,
            steps=len(steps),
        )
        return plan


__all__ = ["DockerCommands", "TaskDispatcher", "resolve_task"]
