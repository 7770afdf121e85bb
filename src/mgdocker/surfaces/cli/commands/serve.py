from pathlib import Path
from typing import Callable, Optional

import typer
import uvicorn

from ....core.config import AppConfig
from ...web.app import create_app


def register_serve_commands(
    app: typer.Typer,
    *,
    require_config: Callable[[Optional[Path]], AppConfig],
    build_server_url: Callable[..., str],
) -> None:
    @app.command("serve")
    def serve(
        path: Optional[Path] = typer.Option(
            None, "--path", help="Directory holding mgdocker.yml"
        ),
        host: Optional[str] = typer.Option(None, "--host", help="Host to bind"),
        port: Optional[int] = typer.Option(None, "--port", help="Port to bind"),
    ):
        """Run the web UI."""
        config = require_config(path).with_server(host=host, port=port)
        typer.echo(f"Serving mgdocker on {build_server_url(config)}")
        uvicorn.run(
            create_app(config),
            host=config.server.host,
            port=config.server.port,
            access_log=config.server.access_log,
        )
