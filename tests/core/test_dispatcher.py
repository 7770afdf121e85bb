from __future__ import annotations

import pytest

from mgdocker.core.dispatcher import TaskDispatcher, resolve_task
from mgdocker.core.exceptions import ComposeLabelMissingError, UnknownTaskError
from mgdocker.core.tasks import (
    DOWN_MARKER,
    GLOBAL_TASK_KEY,
    PRUNE_MARKER,
    PULL_MARKER,
    UP_MARKER,
    CommandStep,
    ReadFileStep,
    Task,
)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("pull", Task.PULL),
        ("update", Task.UPDATE),
        ("get_config", Task.GET_CONFIG),
        ("prune_images", Task.PRUNE_IMAGES),
    ],
)
def test_resolve_task_accepts_known_names(name: str, expected: Task) -> None:
    task = resolve_task(name)
    assert task is expected
    assert str(task) == name


@pytest.mark.parametrize("name", ["restart", "", "Pull", "pull "])
def test_resolve_task_rejects_everything_else(name: str) -> None:
    with pytest.raises(UnknownTaskError):
        resolve_task(name)


def test_event_key_uses_fixed_name_for_prune() -> None:
    assert TaskDispatcher.event_key(Task.PRUNE_IMAGES, "anything") == GLOBAL_TASK_KEY
    assert TaskDispatcher.event_key(Task.PULL, "web") == "web"


def test_pull_runs_in_compose_directory(fake_docker) -> None:
    plan = TaskDispatcher(fake_docker).plan(Task.PULL, "web")
    compose_dir = fake_docker.config_files["web"].parent

    assert plan.key == "web"
    assert plan.steps == (
        CommandStep(
            argv=("docker", "compose", "pull"), marker=PULL_MARKER, cwd=compose_dir
        ),
    )


def test_update_is_down_then_up(fake_docker) -> None:
    plan = TaskDispatcher(fake_docker).plan(Task.UPDATE, "web")

    assert [step.argv for step in plan.steps] == [
        ("docker", "compose", "down"),
        ("docker", "compose", "up", "-d"),
    ]
    assert [step.marker for step in plan.steps] == [DOWN_MARKER, UP_MARKER]


def test_get_config_reads_the_compose_file(fake_docker) -> None:
    plan = TaskDispatcher(fake_docker).plan(Task.GET_CONFIG, "web")
    assert plan.steps == (ReadFileStep(path=fake_docker.config_files["web"]),)


def test_prune_skips_container_lookup(fake_docker) -> None:
    plan = TaskDispatcher(fake_docker).plan(Task.PRUNE_IMAGES, "prune_images")

    assert fake_docker.inspected == []
    assert plan.key == GLOBAL_TASK_KEY
    assert plan.steps == (
        CommandStep(
            argv=("docker", "image", "prune", "--all", "--force"), marker=PRUNE_MARKER
        ),
    )


def test_missing_compose_label_fails_before_any_spawn(fake_docker) -> None:
    with pytest.raises(ComposeLabelMissingError):
        TaskDispatcher(fake_docker).plan(Task.PULL, "standalone")
    assert fake_docker.spawned == []


def test_command_step_display_joins_argv() -> None:
    step = CommandStep(argv=("docker", "compose", "up", "-d"), marker=UP_MARKER)
    assert step.display == "docker compose up -d"
