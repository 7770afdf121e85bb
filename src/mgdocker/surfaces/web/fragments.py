"""HTML pages and htmx fragments.

Markup is built from small string templates; every interpolated value goes
through `html.escape`.
"""

from __future__ import annotations

from html import escape
from typing import Iterable

from ...core.tasks import GLOBAL_TASK_KEY, Task
from ...integrations.docker import Container, Image

SIMPLE_CSS_URL = "https://cdn.simplecss.org/simple.min.css"
HTMX_URL = "https://unpkg.com/htmx.org@1.9.10"
HTMX_SSE_URL = "https://unpkg.com/htmx.org/dist/ext/sse.js"

PAGE_CONTAINERS = "containers"
PAGE_IMAGES = "images"

_PAGE_COMPONENTS = {
    PAGE_CONTAINERS: "/components/containers",
    PAGE_IMAGES: "/components/images",
}


def task_fragment_url(name: str, task: Task) -> str:
    return f"/components/shared/sse/{name}/{task.value}"


def task_connect_url(name: str, task: Task) -> str:
    return f"/components/shared/sse/connect/{name}/{task.value}"


def _nav_link(href: str, label: str, current: bool) -> str:
    css = "current" if current else ""
    return f'<a href="{href}" class="{css}">{label}</a>'


def render_page(page: str) -> str:
    if page not in _PAGE_COMPONENTS:
        raise ValueError(f"unknown page: {page}")
    nav = "".join(
        [
            _nav_link("/", "Containers", page == PAGE_CONTAINERS),
            _nav_link("/images", "Images", page == PAGE_IMAGES),
        ]
    )
    return (
        "<!DOCTYPE html>"
        "<html><head>"
        "<title>mgdocker</title>"
        f'<link rel="stylesheet" href="{SIMPLE_CSS_URL}"/>'
        '<link rel="stylesheet" href="/index.css"/>'
        f'<script src="{HTMX_URL}"></script>'
        f'<script src="{HTMX_SSE_URL}"></script>'
        "</head><body>"
        '<header style="margin-bottom:1rem">'
        f"<h1>mgdocker</h1><nav>{nav}</nav>"
        "</header>"
        f'<div style="word-break:break-word" hx-get="{_PAGE_COMPONENTS[page]}"'
        ' hx-trigger="load"></div>'
        "</body></html>"
    )


def _task_button(name: str, task: Task, target: str, title: str = "") -> str:
    title_attr = f' title="{escape(title)}"' if title else ""
    return (
        f'<button hx-get="{escape(task_fragment_url(name, task))}"'
        ' hx-swap="innerHTML"'
        f' hx-target="next #{target}"'
        ' hx-indicator="next .loader"'
        f"{title_attr}>{escape(task.label)}</button>"
    )


def _field(label: str, value: str) -> str:
    return f"<div><b>{label}: </b>{escape(value)}</div>"


def render_container(container: Container) -> str:
    name = container.names
    buttons = "".join(
        [
            _task_button(
                name, Task.PULL, "container_task_container", "docker compose pull"
            ),
            _task_button(
                name,
                Task.UPDATE,
                "container_task_container",
                "docker compose down && docker compose up -d",
            ),
            _task_button(name, Task.GET_CONFIG, "container_task_container"),
        ]
    )
    fields = "".join(
        [
            _field("id", container.id),
            _field("image", container.image),
            _field("status", container.status),
            _field("state", container.state),
            _field("ports", container.ports),
            _field("created at", container.created_at),
            _field("running for", container.running_for),
            _field("size", container.size),
            _field("mounts", container.mounts),
            _field("networks", container.networks),
            _field("local volumes", container.local_volumes),
            _field("labels", container.labels),
        ]
    )
    return (
        "<details>"
        f"<summary>{escape(name)}</summary>"
        f'<div style="display:flex;gap:0.5rem">{buttons}</div>'
        '<div class="loader htmx-indicator">Loading...</div>'
        '<div id="container_task_container"></div>'
        f"{fields}"
        "</details>"
    )


def render_container_list(containers: Iterable[Container]) -> str:
    return "".join(render_container(container) for container in containers)


def render_images(images: Iterable[Image]) -> str:
    rows = "".join(
        "<tr>"
        f"<td>{escape(image.repository)}</td>"
        f"<td>{escape(image.tag)}</td>"
        f"<td>{escape(image.created_since)}</td>"
        f"<td>{escape(image.size)}</td>"
        "</tr>"
        for image in images
    )
    prune = _task_button(
        GLOBAL_TASK_KEY,
        Task.PRUNE_IMAGES,
        "image_task_container",
        "docker image prune --all --force",
    )
    return (
        f"{prune}"
        '<div class="loader htmx-indicator">Loading...</div>'
        '<div id="image_task_container"></div>'
        '<table style="width:100%">'
        "<thead><tr>"
        "<th>Repository</th><th>Tag</th><th>Created Since</th><th>Size</th>"
        "</tr></thead>"
        f"<tbody>{rows}</tbody>"
        "</table>"
    )


def render_task_results(name: str, task: Task) -> str:
    """The <pre> block that opens the SSE connection for one task run.

    `sse-swap` listens for the event key the run publishes under, so global
    tasks swap on their fixed key rather than the resource name.
    """
    key = GLOBAL_TASK_KEY if task.is_global else name
    return (
        f'<pre id="{escape(key)}" style="max-height:20rem;overflow:auto;"'
        ' hx-on:htmx:after-settle="this.scrollTo(0, this.scrollHeight);">'
        '<code hx-ext="sse"'
        f' sse-connect="{escape(task_connect_url(name, task))}"'
        f' sse-swap="{escape(key)}"'
        ' hx-swap="beforeend"></code>'
        "</pre>"
    )


__all__ = [
    "PAGE_CONTAINERS",
    "PAGE_IMAGES",
    "render_container",
    "render_container_list",
    "render_images",
    "render_page",
    "render_task_results",
    "task_connect_url",
    "task_fragment_url",
]
