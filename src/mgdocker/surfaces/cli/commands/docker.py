from __future__ import annotations

import asyncio
import dataclasses
import json
from pathlib import Path
from typing import Callable, Optional

import typer

from ....core.config import AppConfig
from ....core.dispatcher import TaskDispatcher, resolve_task
from ....core.event_bus import Event
from ....core.exceptions import MgdockerError, UnknownTaskError
from ....core.logging_utils import setup_logging
from ....core.runner import TaskRunner
from ....core.tasks import Task
from ....integrations.docker import DockerCli, DockerRuntimeError


def build_docker(config: AppConfig) -> DockerCli:
    return DockerCli(docker_binary=config.docker.binary)


def _print_event(event: Event) -> None:
    typer.echo(event.data, nl=False)


async def run_task_locally(
    docker: DockerCli,
    task: Task,
    name: str,
    publish: Callable[[Event], object] = _print_event,
) -> None:
    runner = TaskRunner(TaskDispatcher(docker), docker.spawn)
    await runner.run(task, name, publish)


def register_docker_commands(
    app: typer.Typer,
    *,
    require_config: Callable[[Optional[Path]], AppConfig],
    raise_exit: Callable,
    docker_factory: Callable[[AppConfig], DockerCli] = build_docker,
) -> None:
    @app.command("containers")
    def containers(
        path: Optional[Path] = typer.Option(
            None, "--path", help="Directory holding mgdocker.yml"
        ),
        output_json: bool = typer.Option(False, "--json", help="Emit JSON"),
    ):
        """List compose-managed containers."""
        docker = docker_factory(require_config(path))
        try:
            items = docker.list_containers()
        except DockerRuntimeError as exc:
            raise_exit(str(exc), cause=exc)
        if output_json:
            typer.echo(json.dumps([dataclasses.asdict(c) for c in items], indent=2))
            return
        for container in items:
            typer.echo(f"{container.names}\t{container.state}\t{container.status}")

    @app.command("images")
    def images(
        path: Optional[Path] = typer.Option(
            None, "--path", help="Directory holding mgdocker.yml"
        ),
        output_json: bool = typer.Option(False, "--json", help="Emit JSON"),
    ):
        """List local images."""
        docker = docker_factory(require_config(path))
        try:
            items = docker.list_images()
        except DockerRuntimeError as exc:
            raise_exit(str(exc), cause=exc)
        if output_json:
            typer.echo(json.dumps([dataclasses.asdict(i) for i in items], indent=2))
            return
        for image in items:
            typer.echo(f"{image.repository}:{image.tag}\t{image.size}")

    @app.command("run")
    def run(
        task: str = typer.Argument(
            ..., help="pull, update, get_config or prune_images"
        ),
        name: str = typer.Argument(..., help="Container name"),
        path: Optional[Path] = typer.Option(
            None, "--path", help="Directory holding mgdocker.yml"
        ),
    ):
        """Run a task here and print its output as it arrives."""
        config = require_config(path)
        try:
            resolved = resolve_task(task)
        except UnknownTaskError as exc:
            raise_exit(str(exc), cause=exc)
        setup_logging(
            level="WARNING",
            path=config.log.path,
            max_bytes=config.log.max_bytes,
            backup_count=config.log.backup_count,
        )
        docker = docker_factory(config)
        try:
            asyncio.run(run_task_locally(docker, resolved, name))
        except (MgdockerError, DockerRuntimeError) as exc:
            raise_exit(f"\nerror: {exc}", cause=exc)
        typer.echo("")
