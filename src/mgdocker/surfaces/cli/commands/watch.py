from __future__ import annotations

import asyncio
from pathlib import Path
from typing import AsyncIterator, Callable, Optional

import httpx
import typer

from ....core.config import AppConfig
from ....core.dispatcher import resolve_task
from ....core.exceptions import UnknownTaskError
from ....core.sse import CLOSE_EVENT_NAME, SSEEvent, parse_sse_lines
from .utils import task_stream_path


async def iter_task_stream(
    url: str, *, transport: Optional[httpx.AsyncBaseTransport] = None
) -> AsyncIterator[SSEEvent]:
    """Yield the SSE events of a task stream until its close event."""
    async with httpx.AsyncClient(transport=transport, timeout=None) as client:
        async with client.stream("GET", url) as response:
            if response.status_code >= 400:
                await response.aread()
                response.raise_for_status()
            async for event in parse_sse_lines(response.aiter_lines()):
                if event.event == CLOSE_EVENT_NAME:
                    return
                yield event


async def _print_stream(url: str) -> None:
    async for event in iter_task_stream(url):
        typer.echo(event.data, nl=False)


def register_watch_commands(
    app: typer.Typer,
    *,
    require_config: Callable[[Optional[Path]], AppConfig],
    raise_exit: Callable,
    build_server_url: Callable[..., str],
) -> None:
    @app.command("watch")
    def watch(
        task: str = typer.Argument(
            ..., help="pull, update, get_config or prune_images"
        ),
        name: str = typer.Argument(..., help="Container name"),
        url: Optional[str] = typer.Option(
            None, "--url", help="Server base URL (defaults to the configured host)"
        ),
        path: Optional[Path] = typer.Option(
            None, "--path", help="Directory holding mgdocker.yml"
        ),
    ):
        """Start or attach to a task on a running server and follow it."""
        try:
            resolved = resolve_task(task)
        except UnknownTaskError as exc:
            raise_exit(str(exc), cause=exc)
        stream_path = task_stream_path(resolved, name)
        if url:
            target = url.rstrip("/") + stream_path
        else:
            target = build_server_url(require_config(path), stream_path)
        try:
            asyncio.run(_print_stream(target))
        except httpx.HTTPError as exc:
            raise_exit(f"Request to {target} failed: {exc}", cause=exc)
        typer.echo("")
