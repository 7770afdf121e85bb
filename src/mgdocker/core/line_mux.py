from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol, Union

from .exceptions import OutputReadError

STDOUT = "stdout"
STDERR = "stderr"


class LineReader(Protocol):
    async def readline(self) -> bytes: ...


@dataclass(frozen=True)
class OutputLine:
    """One line of process output.

    `stream` records which pipe it came from. Callers are free to ignore it;
    stdout and stderr are displayed as one log.
    """

    text: str
    stream: str


class _Eof:
    pass


_EOF = _Eof()
_Item = Union[bytes, BaseException, _Eof]


def decode_line(raw: bytes) -> str:
    text = raw.decode("utf-8", errors="replace")
    if text.endswith("\n"):
        text = text[:-1]
    if text.endswith("\r"):
        text = text[:-1]
    return text


async def _pump(
    name: str, reader: LineReader, queue: "asyncio.Queue[tuple[str, _Item]]"
) -> None:
    try:
        while True:
            chunk = await reader.readline()
            if not chunk:
                break
            await queue.put((name, chunk))
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        await queue.put((name, exc))
        return
    await queue.put((name, _EOF))


async def merge_lines(
    stdout: Optional[LineReader], stderr: Optional[LineReader]
) -> AsyncIterator[OutputLine]:
    """Yield lines from both pipes in the order they become available.

    `readline()` hands back an unterminated trailing fragment at EOF, so a last
    line without a newline is still yielded. A failing read raises
    OutputReadError and stops the other reader.
    """
    queue: asyncio.Queue[tuple[str, _Item]] = asyncio.Queue()
    tasks = [
        asyncio.create_task(_pump(name, reader, queue))
        for name, reader in ((STDOUT, stdout), (STDERR, stderr))
        if reader is not None
    ]
    remaining = len(tasks)
    try:
        while remaining:
            name, item = await queue.get()
            if isinstance(item, _Eof):
                remaining -= 1
                continue
            if isinstance(item, BaseException):
                raise OutputReadError(f"failed reading {name}: {item}") from item
            yield OutputLine(text=decode_line(item), stream=name)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["LineReader", "OutputLine", "STDERR", "STDOUT", "decode_line", "merge_lines"]
