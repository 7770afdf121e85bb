from __future__ import annotations

import asyncio

import pytest

from mgdocker.core.dispatcher import TaskDispatcher
from mgdocker.core.event_bus import EventBus, EventKind
from mgdocker.core.exceptions import TaskBusyError
from mgdocker.core.runner import TaskRunner
from mgdocker.core.tasks import Task
from mgdocker.core.tracker import TaskTracker


def _tracker(docker, *, single_flight: bool = True) -> tuple[EventBus, TaskTracker]:
    dispatcher = TaskDispatcher(docker)
    bus = EventBus()
    tracker = TaskTracker(
        bus, TaskRunner(dispatcher, docker.spawn), single_flight=single_flight
    )
    return bus, tracker


async def _drain_until_done(subscription, key: str) -> list:
    events = []
    while True:
        event = await asyncio.wait_for(subscription.recv(), timeout=2)
        if event.key != key:
            continue
        events.append(event)
        if event.is_done:
            return events


async def _wait_for_spawn(docker, count: int = 1) -> None:
    for _ in range(200):
        if len(docker.processes) >= count:
            return
        await asyncio.sleep(0.005)
    raise AssertionError("process was never spawned")


@pytest.mark.anyio
async def test_successful_run_ends_with_empty_done(fake_docker) -> None:
    bus, tracker = _tracker(fake_docker)
    subscription = bus.subscribe()
    plan = TaskDispatcher(fake_docker).plan(Task.PULL, "web")

    tracked = tracker.start(plan)
    events = await _drain_until_done(subscription, "web")
    await tracked.handle

    assert events[-1].kind is EventKind.DONE
    assert events[-1].data == ""
    assert tracker.get("web") is None
    assert tracker.active() == []


@pytest.mark.anyio
async def test_failed_run_reports_error_in_done(fake_docker) -> None:
    fake_docker.scripts[("compose", "pull")] = {"returncode": 3}
    bus, tracker = _tracker(fake_docker)
    subscription = bus.subscribe()

    tracker.start(TaskDispatcher(fake_docker).plan(Task.PULL, "web"))
    events = await _drain_until_done(subscription, "web")

    assert "exited with status 3" in events[-1].data


@pytest.mark.anyio
async def test_single_flight_reuses_running_task(fake_docker) -> None:
    fake_docker.scripts[("compose", "pull")] = {"hold": True}
    bus, tracker = _tracker(fake_docker)
    subscription = bus.subscribe()
    plan = TaskDispatcher(fake_docker).plan(Task.PULL, "web")

    first = tracker.start(plan)
    second = tracker.start(plan)
    await _wait_for_spawn(fake_docker)
    await asyncio.sleep(0.01)

    assert first is second
    assert len(fake_docker.spawned) == 1
    assert [entry.to_dict()["key"] for entry in tracker.active()] == ["web"]

    fake_docker.processes[0].finish()
    events = await _drain_until_done(subscription, "web")
    assert events[-1].data == ""


@pytest.mark.anyio
async def test_single_flight_rejects_other_task_on_busy_key(fake_docker) -> None:
    fake_docker.scripts[("compose", "pull")] = {"hold": True}
    _, tracker = _tracker(fake_docker)
    dispatcher = TaskDispatcher(fake_docker)

    pull = tracker.start(dispatcher.plan(Task.PULL, "web"))
    with pytest.raises(TaskBusyError):
        tracker.start(dispatcher.plan(Task.GET_CONFIG, "web"))

    assert tracker.get("web", Task.PULL) is pull
    assert tracker.get("web", Task.GET_CONFIG) is None
    assert tracker.active() == [pull]
    await tracker.cancel_all()


@pytest.mark.anyio
async def test_without_single_flight_each_start_spawns(fake_docker) -> None:
    fake_docker.scripts[("compose", "pull")] = {"hold": True}
    _, tracker = _tracker(fake_docker, single_flight=False)
    plan = TaskDispatcher(fake_docker).plan(Task.PULL, "web")

    first = tracker.start(plan)
    second = tracker.start(plan)
    await _wait_for_spawn(fake_docker, 2)

    assert first is not second
    await tracker.cancel_all()
    assert all(process.killed for process in fake_docker.processes)


@pytest.mark.anyio
async def test_cancel_kills_process_and_publishes_cancelled(fake_docker) -> None:
    fake_docker.scripts[("compose", "pull")] = {"hold": True}
    bus, tracker = _tracker(fake_docker)
    subscription = bus.subscribe()
    tracked = tracker.start(TaskDispatcher(fake_docker).plan(Task.PULL, "web"))
    await _wait_for_spawn(fake_docker)

    assert tracker.cancel("web") == 1
    events = await _drain_until_done(subscription, "web")
    with pytest.raises(asyncio.CancelledError):
        await tracked.handle

    assert events[-1].data == "cancelled"
    assert fake_docker.processes[0].killed is True
    assert tracker.cancel("web") == 0


def test_cancel_unknown_key_is_zero(fake_docker) -> None:
    _, tracker = _tracker(fake_docker)
    assert tracker.cancel("nothing") == 0
