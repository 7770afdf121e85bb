from __future__ import annotations

import asyncio
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence

from ...core.exceptions import ComposeLabelMissingError, ResolutionError
from ...core.logging_utils import log_event
from .models import (
    COMPOSE_CONFIG_FILES_LABEL,
    Container,
    Image,
    parse_containers,
    parse_images,
)

logger = logging.getLogger("mgdocker.integrations.docker.runtime")

JSON_ROW_FORMAT = "{{json .}}"
CONFIG_FILES_FORMAT = (
    "{{ index .Config.Labels " + f'"{COMPOSE_CONFIG_FILES_LABEL}"' + " }}"
)
_NO_VALUE = "<no value>"
# asyncio's default 64 KiB line limit is too small for some compose progress output.
_STREAM_LIMIT = 1024 * 1024


class DockerRuntimeError(RuntimeError):
    """Raised when a docker command fails."""


class DockerUnavailableError(DockerRuntimeError):
    """Raised when docker is not installed or cannot be executed."""


RunFn = Callable[..., subprocess.CompletedProcess[str]]
SpawnFn = Callable[..., Awaitable[Any]]


def _container_not_found(details: str) -> bool:
    lowered = details.lower()
    return "no such object" in lowered or "no such container" in lowered


def _first_config_file(raw: str) -> str:
    value = raw.strip().strip("'").strip()
    if not value or value == _NO_VALUE:
        return ""
    return value.split(",")[0].strip()


class DockerCli:
    """Thin wrapper over the docker CLI.

    Synchronous calls (listing, inspect) go through `run_fn`; streaming task
    commands are started with `spawn_fn`. Both are injectable for tests.
    """

    def __init__(
        self,
        *,
        docker_binary: str = "docker",
        run_fn: RunFn = subprocess.run,
        spawn_fn: SpawnFn = asyncio.create_subprocess_exec,
    ) -> None:
        self._docker_binary = docker_binary
        self._run_fn = run_fn
        self._spawn_fn = spawn_fn

    @property
    def binary(self) -> str:
        return self._docker_binary

    def _run(
        self,
        args: Sequence[str],
        *,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        cmd = [self._docker_binary, *[str(a) for a in args]]
        try:
            proc = self._run_fn(
                cmd,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise DockerUnavailableError(
                f"Docker binary '{self._docker_binary}' not found"
            ) from exc
        if check and proc.returncode != 0:
            details = (proc.stderr or proc.stdout or "").strip() or "unknown error"
            raise DockerRuntimeError(
                f"Docker command failed ({proc.returncode}): {' '.join(cmd)} :: {details}"
            )
        return proc

    def list_containers(self) -> list[Container]:
        """Compose-managed containers, sorted by name."""
        proc = self._run(["ps", "--all", "--no-trunc", "--format", JSON_ROW_FORMAT])
        return parse_containers(proc.stdout or "")

    def list_images(self) -> list[Image]:
        proc = self._run(["images", "--all", "--no-trunc", "--format", JSON_ROW_FORMAT])
        return parse_images(proc.stdout or "")

    def compose_config_file(self, name: str) -> Path:
        proc = self._run(
            ["inspect", name, "--format", CONFIG_FILES_FORMAT],
            check=False,
        )
        if proc.returncode != 0:
            details = (proc.stderr or proc.stdout or "").strip()
            if _container_not_found(details) or not details:
                raise ComposeLabelMissingError(name)
            raise ResolutionError(f"Unable to inspect container {name}: {details}")
        config_file = _first_config_file(proc.stdout or "")
        if not config_file:
            raise ComposeLabelMissingError(name)
        return Path(config_file)

    def compose_command(self, *args: str) -> tuple[str, ...]:
        return (self._docker_binary, "compose", *args)

    def prune_images_command(self) -> tuple[str, ...]:
        return (self._docker_binary, "image", "prune", "--all", "--force")

    async def spawn(self, argv: Sequence[str], *, cwd: Optional[Path] = None) -> Any:
        """Start a command with stdout and stderr piped."""
        kwargs: dict[str, Any] = {
            "stdin": asyncio.subprocess.DEVNULL,
            "stdout": asyncio.subprocess.PIPE,
            "stderr": asyncio.subprocess.PIPE,
            "limit": _STREAM_LIMIT,
        }
        if cwd is not None:
            kwargs["cwd"] = str(cwd)
        if os.name != "nt":
            kwargs["start_new_session"] = True
        process = await self._spawn_fn(*argv, **kwargs)
        log_event(
            logger,
            logging.INFO,
            "docker.spawned",
            command=list(argv),
            cwd=str(cwd) if cwd is not None else None,
            pid=getattr(process, "pid", None),
        )
        return process


__all__ = [
    "CONFIG_FILES_FORMAT",
    "DockerCli",
    "DockerRuntimeError",
    "DockerUnavailableError",
    "JSON_ROW_FORMAT",
]
