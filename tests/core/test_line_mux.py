from __future__ import annotations

import asyncio

import pytest

from mgdocker.core.exceptions import OutputReadError
from mgdocker.core.line_mux import STDERR, STDOUT, decode_line, merge_lines


async def _collect(stdout, stderr) -> list[tuple[str, str]]:
    return [(line.stream, line.text) async for line in merge_lines(stdout, stderr)]


def test_decode_line_strips_one_terminator() -> None:
    assert decode_line(b"hello\n") == "hello"
    assert decode_line(b"hello\r\n") == "hello"
    assert decode_line(b"hello") == "hello"
    assert decode_line(b"\n") == ""


def test_decode_line_replaces_invalid_utf8() -> None:
    assert decode_line(b"caf\xe9\n") == "caf\ufffd"


@pytest.mark.anyio
async def test_both_streams_are_merged() -> None:
    stdout = asyncio.StreamReader()
    stderr = asyncio.StreamReader()
    stdout.feed_data(b"out 1\nout 2\n")
    stderr.feed_data(b"err 1\n")
    stdout.feed_eof()
    stderr.feed_eof()

    lines = await _collect(stdout, stderr)

    assert sorted(lines) == [
        (STDERR, "err 1"),
        (STDOUT, "out 1"),
        (STDOUT, "out 2"),
    ]
    assert [text for stream, text in lines if stream == STDOUT] == ["out 1", "out 2"]


@pytest.mark.anyio
async def test_lines_follow_arrival_order_across_streams() -> None:
    stdout = asyncio.StreamReader()
    stderr = asyncio.StreamReader()
    seen: list[str] = []

    async def consume() -> None:
        async for line in merge_lines(stdout, stderr):
            seen.append(line.text)

    consumer = asyncio.create_task(consume())
    stderr.feed_data(b"first\n")
    await asyncio.sleep(0.01)
    stdout.feed_data(b"sec")
    await asyncio.sleep(0.01)
    stdout.feed_data(b"ond\n")
    await asyncio.sleep(0.01)
    stderr.feed_data(b"third\n")
    await asyncio.sleep(0.01)
    stdout.feed_eof()
    stderr.feed_eof()
    await asyncio.wait_for(consumer, timeout=1)

    assert seen == ["first", "second", "third"]


@pytest.mark.anyio
async def test_unterminated_last_line_is_yielded() -> None:
    stdout = asyncio.StreamReader()
    stdout.feed_data(b"complete\npartial")
    stdout.feed_eof()

    assert await _collect(stdout, None) == [(STDOUT, "complete"), (STDOUT, "partial")]


@pytest.mark.anyio
async def test_no_readers_yields_nothing() -> None:
    assert await _collect(None, None) == []


class _BrokenReader:
    async def readline(self) -> bytes:
        raise OSError("pipe exploded")


@pytest.mark.anyio
async def test_read_failure_raises_output_read_error() -> None:
    stdout = asyncio.StreamReader()
    stdout.feed_data(b"fine\n")

    with pytest.raises(OutputReadError, match="pipe exploded"):
        await _collect(stdout, _BrokenReader())
