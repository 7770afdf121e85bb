"""Shared fixtures: src-layout imports, a default timeout and a fake docker."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

UNIT_TEST_TIMEOUT_SECONDS = 30


def pytest_configure() -> None:
    src_path = str(Path(__file__).resolve().parents[1] / "src")
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


def pytest_collection_modifyitems(
    session: pytest.Session, config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Tests that do not talk to a real daemon get a timeout."""
    _ = session, config
    for item in items:
        if item.get_closest_marker("integration") is not None:
            continue
        item.add_marker(pytest.mark.timeout(UNIT_TEST_TIMEOUT_SECONDS))


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def write_test_config(root: Path, data: dict) -> Path:
    import yaml

    path = root / "mgdocker.yml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


@pytest.fixture()
def fake_docker(tmp_path: Path):
    """A FakeDocker with one compose-managed container named `web`."""
    from tests.fixtures.fake_docker import FakeDocker

    compose_file = tmp_path / "stack" / "docker-compose.yml"
    compose_file.parent.mkdir(parents=True)
    compose_file.write_text("services:\n  web:\n    image: nginx\n", encoding="utf-8")
    return FakeDocker(config_files={"web": compose_file})
