import typer

from .commands.docker import register_docker_commands
from .commands.serve import register_serve_commands
from .commands.utils import build_server_url as _build_server_url
from .commands.utils import get_mgdocker_version
from .commands.utils import raise_exit as _raise_exit
from .commands.utils import require_config as _require_config
from .commands.watch import register_watch_commands

app = typer.Typer(add_completion=False)


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(f"mgdocker {get_mgdocker_version()}")
    raise typer.Exit(code=0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    # `--version` is handled eagerly via `_version_callback`.
    return


def main() -> None:
    """Entrypoint for CLI execution."""
    app()


register_serve_commands(
    app,
    require_config=_require_config,
    build_server_url=_build_server_url,
)
register_docker_commands(
    app,
    require_config=_require_config,
    raise_exit=_raise_exit,
)
register_watch_commands(
    app,
    require_config=_require_config,
    raise_exit=_raise_exit,
    build_server_url=_build_server_url,
)
