import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from ...core.config import AppConfig, load_config
from ...core.logging_utils import log_event, safe_log
from .app_state import AppContext, apply_app_context, build_app_context
from .routes import build_router


def _app_lifespan(context: AppContext):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_event(
            app.state.logger,
            logging.INFO,
            "web.started",
            host=context.config.server.host,
            port=context.config.server.port,
        )
        try:
            yield
        finally:
            try:
                await app.state.tracker.cancel_all()
            except Exception as exc:
                safe_log(
                    app.state.logger,
                    logging.WARNING,
                    "Task shutdown failed",
                    exc,
                )
            app.state.bus.close()
            log_event(app.state.logger, logging.INFO, "web.stopped")

    return lifespan


def create_app(
    config: Optional[AppConfig] = None,
    *,
    context: Optional[AppContext] = None,
) -> FastAPI:
    if context is None:
        context = build_app_context(config or load_config())
    app = FastAPI(
        title="mgdocker",
        redirect_slashes=False,
        lifespan=_app_lifespan(context),
    )
    apply_app_context(app, context)
    app.include_router(build_router())
    return app


__all__ = ["create_app"]
