from __future__ import annotations

import dataclasses
import json
import logging
from typing import Any, Iterator, Mapping, Optional

logger = logging.getLogger("mgdocker.integrations.docker.models")

COMPOSE_CONFIG_FILES_LABEL = "com.docker.compose.project.config_files"


def iter_json_rows(output: str) -> Iterator[dict[str, Any]]:
    """Parse `--format '{{json .}}'` output, one object per line.

    Rows may arrive wrapped in single quotes when the format string was passed
    quoted. Malformed rows are skipped.
    """
    for raw in output.strip().split("\n"):
        row = raw.strip().strip("'").strip()
        if not row:
            continue
        try:
            payload = json.loads(row)
        except json.JSONDecodeError as exc:
            logger.debug("Skipping malformed docker row: %s", exc)
            continue
        if not isinstance(payload, dict):
            logger.debug("Skipping non-object docker row: %r", row[:80])
            continue
        yield payload


def _text(row: Mapping[str, Any], key: str, *, required: bool = False) -> Optional[str]:
    value = row.get(key)
    if value is None:
        return None if required else ""
    return str(value)


def parse_labels(raw: str) -> dict[str, str]:
    labels: dict[str, str] = {}
    for item in raw.split(","):
        key, sep, value = item.partition("=")
        key = key.strip()
        if not key or not sep:
            continue
        labels[key] = value
    return labels


@dataclasses.dataclass(frozen=True)
class Container:
    id: str
    names: str
    image: str = ""
    command: str = ""
    created_at: str = ""
    running_for: str = ""
    ports: str = ""
    status: str = ""
    size: str = ""
    labels: str = ""
    mounts: str = ""
    networks: str = ""
    state: str = ""
    local_volumes: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Optional["Container"]:
        container_id = _text(row, "ID", required=True)
        names = _text(row, "Names", required=True)
        if not container_id or not names:
            return None
        return cls(
            id=container_id,
            names=names,
            image=_text(row, "Image") or "",
            command=_text(row, "Command") or "",
            created_at=_text(row, "CreatedAt") or "",
            running_for=_text(row, "RunningFor") or "",
            ports=_text(row, "Ports") or "",
            status=_text(row, "Status") or "",
            size=_text(row, "Size") or "",
            labels=_text(row, "Labels") or "",
            mounts=_text(row, "Mounts") or "",
            networks=_text(row, "Networks") or "",
            state=_text(row, "State") or "",
            local_volumes=_text(row, "LocalVolumes") or "",
        )

    @property
    def is_compose_managed(self) -> bool:
        return COMPOSE_CONFIG_FILES_LABEL in parse_labels(self.labels)


@dataclasses.dataclass(frozen=True)
class Image:
    id: str
    repository: str
    tag: str = ""
    containers: str = ""
    created_at: str = ""
    created_since: str = ""
    digest: str = ""
    shared_size: str = ""
    size: str = ""
    unique_size: str = ""
    virtual_size: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Optional["Image"]:
        image_id = _text(row, "ID", required=True)
        repository = _text(row, "Repository", required=True)
        if not image_id or repository is None:
            return None
        return cls(
            id=image_id,
            repository=repository,
            tag=_text(row, "Tag") or "",
            containers=_text(row, "Containers") or "",
            created_at=_text(row, "CreatedAt") or "",
            created_since=_text(row, "CreatedSince") or "",
            digest=_text(row, "Digest") or "",
            shared_size=_text(row, "SharedSize") or "",
            size=_text(row, "Size") or "",
            unique_size=_text(row, "UniqueSize") or "",
            virtual_size=_text(row, "VirtualSize") or "",
        )


def parse_containers(output: str) -> list[Container]:
    containers = [
        container
        for container in (Container.from_row(row) for row in iter_json_rows(output))
        if container is not None and container.is_compose_managed
    ]
    containers.sort(key=lambda c: c.names)
    return containers


def parse_images(output: str) -> list[Image]:
    images = [
        image
        for image in (Image.from_row(row) for row in iter_json_rows(output))
        if image is not None
    ]
    images.sort(key=lambda i: i.repository)
    return images


__all__ = [
    "COMPOSE_CONFIG_FILES_LABEL",
    "Container",
    "Image",
    "iter_json_rows",
    "parse_containers",
    "parse_images",
    "parse_labels",
]
