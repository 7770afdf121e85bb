import logging
from typing import AsyncIterator

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse, StreamingResponse

from ....core.dispatcher import resolve_task
from ....core.exceptions import ResolutionError, TaskBusyError, UnknownTaskError
from ....core.logging_utils import log_event
from ....core.session import StreamSession
from ....core.sse import format_bus_event
from ....integrations.docker import DockerRuntimeError
from ..fragments import render_task_results
from .shared import SSE_HEADERS, something_went_wrong


async def _stream_session(session: StreamSession) -> AsyncIterator[str]:
    try:
        async for event in session:
            yield format_bus_event(event)
    finally:
        session.close()


def build_streams_routes() -> APIRouter:
    router = APIRouter()

    @router.get("/components/shared/sse/{name}/{task}", response_class=HTMLResponse)
    async def task_results_component(name: str, task: str):
        try:
            resolved = resolve_task(task)
        except UnknownTaskError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from None
        return HTMLResponse(render_task_results(name, resolved))

    @router.get("/components/shared/sse/connect/{name}/{task}")
    async def task_stream(name: str, task: str, request: Request):
        try:
            resolved = resolve_task(task)
        except UnknownTaskError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from None
        try:
            session = await request.app.state.sessions.open(resolved, name)
        except ResolutionError as exc:
            log_event(
                request.app.state.logger,
                logging.WARNING,
                "web.task_unresolved",
                task=resolved.value,
                name=name,
                error=str(exc),
            )
            raise HTTPException(status_code=404, detail=str(exc)) from None
        except TaskBusyError as exc:
            log_event(
                request.app.state.logger,
                logging.INFO,
                "web.task_busy",
                task=resolved.value,
                key=exc.key,
                running=exc.running,
            )
            raise HTTPException(status_code=409, detail=exc.user_message) from None
        except DockerRuntimeError as exc:
            return something_went_wrong(request, exc)
        return StreamingResponse(
            _stream_session(session),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    return router


__all__ = ["build_streams_routes"]
