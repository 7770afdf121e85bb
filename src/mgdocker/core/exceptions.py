"""Error hierarchy shared by the task, bus and web layers."""

from __future__ import annotations

from typing import Optional


class MgdockerError(Exception):
    """Base error for mgdocker failures."""

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message or message


class ConfigError(MgdockerError):
    """Raised when configuration files or values are invalid."""


class ResolutionError(MgdockerError):
    """A task request could not be resolved; nothing was spawned."""


class UnknownTaskError(ResolutionError):
    def __init__(self, name: str) -> None:
        super().__init__(f"unknown task: {name!r}", user_message="invalid task")
        self.name = name


class ComposeLabelMissingError(ResolutionError):
    def __init__(self, resource_name: str) -> None:
        super().__init__(
            f"no compose file found for {resource_name!r}",
            user_message="no compose file found",
        )
        self.resource_name = resource_name


class ProcessError(MgdockerError):
    """An external command step failed; remaining steps are skipped."""


class CommandSpawnError(ProcessError):
    def __init__(self, argv: list[str], cause: BaseException) -> None:
        super().__init__(f"failed to spawn {' '.join(argv)}: {cause}")
        self.argv = argv


class CommandFailedError(ProcessError):
    def __init__(self, argv: list[str], returncode: int) -> None:
        super().__init__(f"{' '.join(argv)} exited with status {returncode}")
        self.argv = argv
        self.returncode = returncode


class OutputReadError(ProcessError):
    """Reading a process output pipe failed."""


class TaskBusyError(MgdockerError):
    """Another task is already running under the same event key."""

    def __init__(self, key: str, running: str, requested: str) -> None:
        super().__init__(
            f"cannot start {requested} on {key!r} while {running} is running",
            user_message=f"{key} is busy running {running}",
        )
        self.key = key
        self.running = running
        self.requested = requested


class BusClosedError(MgdockerError):
    """The event bus was torn down."""


__all__ = [
    "BusClosedError",
    "CommandFailedError",
    "CommandSpawnError",
    "ComposeLabelMissingError",
    "ConfigError",
    "MgdockerError",
    "OutputReadError",
    "ProcessError",
    "ResolutionError",
    "TaskBusyError",
    "UnknownTaskError",
]
