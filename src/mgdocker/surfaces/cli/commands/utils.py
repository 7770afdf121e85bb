from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer

from ....core.config import AppConfig, load_config
from ....core.exceptions import ConfigError
from ....core.tasks import Task

logger = logging.getLogger("mgdocker.cli")


def get_mgdocker_version() -> str:
    import importlib.metadata

    try:
        return importlib.metadata.version("mgdocker")
    except importlib.metadata.PackageNotFoundError:
        from .... import __version__

        return __version__


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def require_config(path: Optional[Path]) -> AppConfig:
    try:
        return load_config(path)
    except ConfigError as exc:
        raise_exit(str(exc), cause=exc)


def build_server_url(config: AppConfig, path: str = "") -> str:
    host = config.server.host
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"http://{host}:{config.server.port}{path}"


def task_stream_path(task: Task, name: str) -> str:
    return f"/components/shared/sse/connect/{name}/{task.value}"
