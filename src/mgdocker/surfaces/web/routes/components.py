import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from ....integrations.docker import DockerRuntimeError
from ..fragments import render_container_list, render_images
from .shared import something_went_wrong


def build_components_routes() -> APIRouter:
    router = APIRouter()

    @router.get("/components/containers", response_class=HTMLResponse)
    async def containers_component(request: Request):
        docker = request.app.state.docker
        try:
            containers = await asyncio.to_thread(docker.list_containers)
        except DockerRuntimeError as exc:
            return something_went_wrong(request, exc)
        return HTMLResponse(render_container_list(containers))

    @router.get("/components/images", response_class=HTMLResponse)
    async def images_component(request: Request):
        docker = request.app.state.docker
        try:
            images = await asyncio.to_thread(docker.list_images)
        except DockerRuntimeError as exc:
            return something_went_wrong(request, exc)
        return HTMLResponse(render_images(images))

    return router


__all__ = ["build_components_routes"]
