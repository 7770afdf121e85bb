import dataclasses
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, cast

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigError

logger = logging.getLogger("mgdocker.core.config")

CONFIG_FILENAME = "mgdocker.yml"
OVERRIDE_FILENAME = "mgdocker.override.yml"
ENV_PREFIX = "MGDOCKER_"
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _default_config() -> Dict[str, Any]:
    return {
        "server": {
            "host": "localhost",
            "port": 8080,
            "access_log": False,
        },
        "docker": {
            "binary": "docker",
        },
        "bus": {
            "capacity": 1000,
        },
        "tasks": {
            "single_flight": True,
            "cancel_on_disconnect": False,
        },
        "log": {
            "path": None,
            "level": "INFO",
            "max_bytes": 10 * 1024 * 1024,
            "backup_count": 3,
        },
    }


@dataclasses.dataclass(frozen=True)
class ServerConfig:
    host: str
    port: int
    access_log: bool


@dataclasses.dataclass(frozen=True)
class DockerConfig:
    binary: str


@dataclasses.dataclass(frozen=True)
class BusConfig:
    capacity: int


@dataclasses.dataclass(frozen=True)
class TasksConfig:
    single_flight: bool
    cancel_on_disconnect: bool


@dataclasses.dataclass(frozen=True)
class LogConfig:
    path: Optional[Path]
    level: str
    max_bytes: int
    backup_count: int


@dataclasses.dataclass(frozen=True)
class AppConfig:
    root: Path
    server: ServerConfig
    docker: DockerConfig
    bus: BusConfig
    tasks: TasksConfig
    log: LogConfig

    def with_server(
        self, *, host: Optional[str] = None, port: Optional[int] = None
    ) -> "AppConfig":
        server = dataclasses.replace(
            self.server,
            host=host if host else self.server.host,
            port=port if port else self.server.port,
        )
        return dataclasses.replace(self, server=server)


def _merge_defaults(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = cast(Dict[str, Any], json.loads(json.dumps(base)))
    for key, value in overrides.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml_dict(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    mapping = {
        "HOST": ("server", "host"),
        "PORT": ("server", "port"),
        "DOCKER_BINARY": ("docker", "binary"),
        "LOG_LEVEL": ("log", "level"),
        "LOG_PATH": ("log", "path"),
    }
    for suffix, (section, key) in mapping.items():
        raw = env.get(ENV_PREFIX + suffix)
        if raw is None or not raw.strip():
            continue
        overrides.setdefault(section, {})[key] = raw.strip()
    return overrides


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name)
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be a mapping")
    return value


def _parse_int(cfg: Dict[str, Any], key: str, scope: str, *, minimum: int) -> int:
    raw = cfg.get(key)
    if isinstance(raw, bool):
        raise ConfigError(f"{scope}.{key} must be an integer")
    try:
        value = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{scope}.{key} must be an integer (got {raw!r})") from exc
    if value < minimum:
        raise ConfigError(f"{scope}.{key} must be >= {minimum} (got {value})")
    return value


def _parse_bool(cfg: Dict[str, Any], key: str, scope: str) -> bool:
    raw = cfg.get(key)
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().lower() in {"1", "true", "yes", "on"}:
        return True
    if isinstance(raw, str) and raw.strip().lower() in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"{scope}.{key} must be a boolean (got {raw!r})")


def _parse_str(cfg: Dict[str, Any], key: str, scope: str) -> str:
    raw = cfg.get(key)
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigError(f"{scope}.{key} must be a non-empty string")
    return raw.strip()


def _parse_log_config(cfg: Dict[str, Any], root: Path) -> LogConfig:
    level = _parse_str(cfg, "level", "log").upper()
    if level not in _LOG_LEVELS:
        raise ConfigError(f"log.level must be one of {sorted(_LOG_LEVELS)}")
    path_raw = cfg.get("path")
    path: Optional[Path] = None
    if path_raw is not None and str(path_raw).strip():
        path = Path(str(path_raw)).expanduser()
        if not path.is_absolute():
            path = root / path
    return LogConfig(
        path=path,
        level=level,
        max_bytes=_parse_int(cfg, "max_bytes", "log", minimum=0),
        backup_count=_parse_int(cfg, "backup_count", "log", minimum=0),
    )


def parse_config(data: Dict[str, Any], root: Path) -> AppConfig:
    server = _section(data, "server")
    docker = _section(data, "docker")
    bus = _section(data, "bus")
    tasks = _section(data, "tasks")
    return AppConfig(
        root=root,
        server=ServerConfig(
            host=_parse_str(server, "host", "server"),
            port=_parse_int(server, "port", "server", minimum=1),
            access_log=_parse_bool(server, "access_log", "server"),
        ),
        docker=DockerConfig(binary=_parse_str(docker, "binary", "docker")),
        bus=BusConfig(capacity=_parse_int(bus, "capacity", "bus", minimum=1)),
        tasks=TasksConfig(
            single_flight=_parse_bool(tasks, "single_flight", "tasks"),
            cancel_on_disconnect=_parse_bool(tasks, "cancel_on_disconnect", "tasks"),
        ),
        log=_parse_log_config(_section(data, "log"), root),
    )


def load_dotenv_for_root(root: Path) -> None:
    """Best-effort load of `<root>/.env` into the process environment."""
    candidate = root / ".env"
    try:
        if candidate.exists():
            load_dotenv(dotenv_path=candidate, override=False)
    except OSError as exc:
        logger.debug("Failed to load .env file: %s", exc)


def load_config(
    root: Optional[Path] = None, *, env: Optional[Mapping[str, str]] = None
) -> AppConfig:
    """Load defaults, then mgdocker.yml, the override file and MGDOCKER_* env vars."""
    root = (root or Path.cwd()).resolve()
    if env is None:
        load_dotenv_for_root(root)
        env = os.environ
    merged = _default_config()
    for filename in (CONFIG_FILENAME, OVERRIDE_FILENAME):
        data = _load_yaml_dict(root / filename)
        if data:
            merged = _merge_defaults(merged, data)
    overrides = _env_overrides(env)
    if overrides:
        merged = _merge_defaults(merged, overrides)
    return parse_config(merged, root)


__all__ = [
    "AppConfig",
    "BusConfig",
    "CONFIG_FILENAME",
    "DockerConfig",
    "LogConfig",
    "OVERRIDE_FILENAME",
    "ServerConfig",
    "TasksConfig",
    "load_config",
    "load_dotenv_for_root",
    "parse_config",
]
