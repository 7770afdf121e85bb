from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import HTMLResponse, Response

from ..fragments import PAGE_CONTAINERS, PAGE_IMAGES, render_page

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"


def build_pages_routes(static_dir: Path = STATIC_DIR) -> APIRouter:
    router = APIRouter()

    @router.get("/", response_class=HTMLResponse)
    async def index_page():
        return HTMLResponse(render_page(PAGE_CONTAINERS))

    @router.get("/images", response_class=HTMLResponse)
    async def images_page():
        return HTMLResponse(render_page(PAGE_IMAGES))

    @router.get("/index.css")
    async def stylesheet():
        css = (static_dir / "index.css").read_text(encoding="utf-8")
        return Response(css, media_type="text/css")

    @router.get("/health")
    async def health():
        return {"status": "ok"}

    return router


__all__ = ["STATIC_DIR", "build_pages_routes"]
