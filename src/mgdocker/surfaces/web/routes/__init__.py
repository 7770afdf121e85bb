from fastapi import APIRouter

from .components import build_components_routes
from .pages import build_pages_routes
from .streams import build_streams_routes
from .tasks import build_tasks_routes


def build_router() -> APIRouter:
    router = APIRouter()
    router.include_router(build_pages_routes())
    router.include_router(build_components_routes())
    router.include_router(build_streams_routes())
    router.include_router(build_tasks_routes())
    return router


__all__ = ["build_router"]
