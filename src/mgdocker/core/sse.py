"""Server-Sent Events (SSE) parsing and formatting utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator

from .event_bus import Event

CLOSE_EVENT_NAME = "CloseEvent"
CLOSE_EVENT_DATA = "close"


@dataclass(frozen=True)
class SSEEvent:
    """A Server-Sent Event."""

    event: str
    data: str


def format_sse(event: str, data: str) -> str:
    """Format a Server-Sent Event message.

    Every line of `data` becomes its own `data:` field. The payload is split on
    `\\n` rather than with `splitlines()` so a trailing newline survives as an
    empty final field and the client reassembles the exact text.

    Args:
        event: The event name.
        data: The event payload.

    Returns:
        A formatted SSE message string.
    """
    parts = [f"event: {event}"]
    for line in data.replace("\r\n", "\n").split("\n"):
        parts.append(f"data: {line}")
    return "\n".join(parts) + "\n\n"


def format_bus_event(event: Event) -> str:
    return format_sse(event.key, event.data)


def format_close() -> str:
    return format_sse(CLOSE_EVENT_NAME, CLOSE_EVENT_DATA)


def _split_field(line: str) -> tuple[str, str]:
    name, sep, value = line.partition(":")
    if not sep:
        return name, ""
    return name, value[1:] if value.startswith(" ") else value


async def parse_sse_lines(lines: AsyncIterator[str]) -> AsyncIterator[SSEEvent]:
    """Parse Server-Sent Events from an async line iterator.

    Only `event` and `data` fields are interpreted; comments and other fields
    are skipped. A frame without data is not emitted.
    """
    event_name = "message"
    data_lines: list[str] = []

    async for raw in lines:
        line = raw.rstrip("\r\n")
        if line:
            if line.startswith(":"):
                continue
            name, value = _split_field(line)
            if name == "event":
                event_name = value or "message"
            elif name == "data":
                data_lines.append(value)
            continue
        if data_lines:
            yield SSEEvent(event=event_name, data="\n".join(data_lines))
        event_name = "message"
        data_lines = []

    if data_lines:
        yield SSEEvent(event=event_name, data="\n".join(data_lines))


__all__ = [
    "CLOSE_EVENT_DATA",
    "CLOSE_EVENT_NAME",
    "SSEEvent",
    "format_bus_event",
    "format_close",
    "format_sse",
    "parse_sse_lines",
]
