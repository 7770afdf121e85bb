from __future__ import annotations

import asyncio
import threading

import pytest

from mgdocker.core.event_bus import (
    EventBus,
    EventKind,
    done_event,
    line_event,
    marker_event,
)
from mgdocker.core.exceptions import BusClosedError


def test_line_event_appends_newline_and_keeps_stream() -> None:
    event = line_event("web", "pulling", stream="stderr")
    assert event.data == "pulling\n"
    assert event.kind is EventKind.LINE
    assert event.stream == "stderr"


def test_done_event_carries_error_text() -> None:
    assert done_event("web").data == ""
    failed = done_event("web", "boom")
    assert failed.is_done
    assert failed.data == "boom"


def test_bus_rejects_zero_capacity() -> None:
    with pytest.raises(ValueError):
        EventBus(capacity=0)


def test_publish_without_subscribers_is_not_an_error() -> None:
    bus = EventBus()
    assert bus.publish(marker_event("web", "docker compose pull\n")) == 0


@pytest.mark.anyio
async def test_every_subscriber_sees_events_in_publish_order() -> None:
    bus = EventBus()
    first = bus.subscribe()
    second = bus.subscribe()
    for index in range(3):
        assert bus.publish(line_event("web", f"line {index}")) == 2

    for subscription in (first, second):
        received = [(await subscription.recv()).data for _ in range(3)]
        assert received == ["line 0\n", "line 1\n", "line 2\n"]


@pytest.mark.anyio
async def test_subscription_only_sees_events_published_after_it_was_created() -> None:
    bus = EventBus()
    bus.publish(line_event("web", "early"))
    subscription = bus.subscribe()
    bus.publish(line_event("web", "late"))
    assert (await subscription.recv()).data == "late\n"
    assert subscription.pending == 0


@pytest.mark.anyio
async def test_full_buffer_drops_for_that_subscriber_only() -> None:
    bus = EventBus(capacity=2)
    slow = bus.subscribe()
    fast = bus.subscribe()

    bus.publish(line_event("web", "a"))
    assert (await fast.recv()).data == "a\n"
    bus.publish(line_event("web", "b"))
    assert (await fast.recv()).data == "b\n"
    bus.publish(line_event("web", "c"))
    assert (await fast.recv()).data == "c\n"

    assert slow.dropped == 1
    assert [(await slow.recv()).data for _ in range(2)] == ["a\n", "b\n"]
    assert fast.dropped == 0


@pytest.mark.anyio
async def test_close_drains_buffer_then_raises() -> None:
    bus = EventBus()
    subscription = bus.subscribe()
    bus.publish(line_event("web", "last words"))
    bus.close()

    assert (await subscription.recv()).data == "last words\n"
    with pytest.raises(BusClosedError):
        await subscription.recv()
    assert bus.publish(line_event("web", "ignored")) == 0
    with pytest.raises(BusClosedError):
        bus.subscribe()


@pytest.mark.anyio
async def test_close_wakes_a_waiting_reader() -> None:
    bus = EventBus()
    subscription = bus.subscribe()
    waiter = asyncio.create_task(subscription.recv())
    await asyncio.sleep(0)
    bus.close()
    with pytest.raises(BusClosedError):
        await asyncio.wait_for(waiter, timeout=1)


@pytest.mark.anyio
async def test_closed_subscription_is_removed_from_bus() -> None:
    bus = EventBus()
    with bus.subscribe() as subscription:
        assert bus.subscriber_count() == 1
    assert subscription.closed
    assert bus.subscriber_count() == 0


@pytest.mark.anyio
async def test_async_iteration_stops_when_bus_closes() -> None:
    bus = EventBus()
    subscription = bus.subscribe()
    bus.publish(line_event("web", "one"))
    bus.publish(line_event("web", "two"))
    bus.close()
    assert [event.data async for event in subscription] == ["one\n", "two\n"]


@pytest.mark.anyio
async def test_publish_from_another_thread_reaches_the_subscriber_loop() -> None:
    bus = EventBus()
    subscription = bus.subscribe()

    thread = threading.Thread(
        target=lambda: bus.publish(line_event("web", "from thread"))
    )
    thread.start()
    thread.join()

    event = await asyncio.wait_for(subscription.recv(), timeout=1)
    assert event.data == "from thread\n"


@pytest.mark.anyio
async def test_done_event_is_kept_when_buffer_is_full() -> None:
    bus = EventBus(capacity=2)
    subscription = bus.subscribe()
    for index in range(4):
        bus.publish(line_event("web", f"line {index}"))

    assert bus.publish(done_event("web", "boom")) == 1
    received = [await subscription.recv() for _ in range(3)]

    assert [event.data for event in received] == ["line 0\n", "line 1\n", "boom"]
    assert received[-1].is_done
    assert subscription.dropped == 2


def test_handoff_to_a_closing_loop_counts_as_dropped(monkeypatch) -> None:
    bus = EventBus()
    loop = asyncio.new_event_loop()

    async def _subscribe():
        return bus.subscribe()

    try:
        subscription = loop.run_until_complete(_subscribe())

        def _closed(*args, **kwargs):  # type: ignore[no-untyped-def]
            raise RuntimeError("Event loop is closed")

        monkeypatch.setattr(loop, "call_soon_threadsafe", _closed)

        assert bus.publish(line_event("web", "late")) == 0
        assert subscription.dropped == 1
        bus.close()
    finally:
        loop.close()
