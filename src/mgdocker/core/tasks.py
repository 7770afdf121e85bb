"""Task identifiers and the step recipes they expand into."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .exceptions import UnknownTaskError


class Task(str, Enum):
    PULL = "pull"
    UPDATE = "update"
    GET_CONFIG = "get_config"
    PRUNE_IMAGES = "prune_images"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: str) -> "Task":
        """Exact, case-sensitive lookup; anything unknown is an error."""
        task = _TASKS_BY_NAME.get(name) if isinstance(name, str) else None
        if task is None:
            raise UnknownTaskError(str(name))
        return task

    @property
    def is_global(self) -> bool:
        return self is Task.PRUNE_IMAGES

    @property
    def label(self) -> str:
        return _TASK_LABELS[self]


_TASKS_BY_NAME = {task.value: task for task in Task}
_TASK_LABELS = {
    Task.PULL: "Pull",
    Task.UPDATE: "Update",
    Task.GET_CONFIG: "View Config",
    Task.PRUNE_IMAGES: "Prune",
}

# Images are pruned host-wide, so that task publishes under its own name.
GLOBAL_TASK_KEY = Task.PRUNE_IMAGES.value

PULL_MARKER = "docker compose pull\n"
DOWN_MARKER = "docker compose down\n"
UP_MARKER = "\ndocker compose up -d\n"
PRUNE_MARKER = "docker image prune --all --force\n"


@dataclass(frozen=True)
class CommandStep:
    argv: tuple[str, ...]
    marker: str
    cwd: Optional[Path] = None

    @property
    def display(self) -> str:
        return " ".join(self.argv)


@dataclass(frozen=True)
class ReadFileStep:
    path: Path


Step = Union[CommandStep, ReadFileStep]


@dataclass(frozen=True)
class TaskPlan:
    task: Task
    key: str
    resource_name: str
    steps: tuple[Step, ...]


__all__ = [
    "CommandStep",
    "DOWN_MARKER",
    "GLOBAL_TASK_KEY",
    "PRUNE_MARKER",
    "PULL_MARKER",
    "ReadFileStep",
    "Step",
    "Task",
    "TaskPlan",
    "UP_MARKER",
]
