from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

ROOT_LOGGER_NAME = "mgdocker"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_MAX_VALUE_CHARS = 500


def _encode_value(value: Any) -> str:
    if isinstance(value, BaseException):
        value = f"{type(value).__name__}: {value}"
    elif isinstance(value, Path):
        value = str(value)
    try:
        encoded = json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        encoded = json.dumps(repr(value))
    if len(encoded) > _MAX_VALUE_CHARS:
        encoded = encoded[: _MAX_VALUE_CHARS - 3] + "..."
    return encoded


def format_event(event: str, **fields: Any) -> str:
    parts = [event]
    for key in sorted(fields):
        parts.append(f"{key}={_encode_value(fields[key])}")
    return " ".join(parts)


def log_event(
    logger: Optional[logging.Logger], level: int, event: str, **fields: Any
) -> None:
    """Emit one structured `event key=value ...` log line.

    Values are JSON-encoded so they stay on one line. An `exc` field that is an
    exception also attaches its traceback at ERROR level and above.
    """
    if logger is None or not logger.isEnabledFor(level):
        return
    exc = fields.get("exc")
    exc_info = exc if isinstance(exc, BaseException) and level >= logging.ERROR else None
    try:
        logger.log(level, format_event(event, **fields), exc_info=exc_info)
    except Exception:
        pass


def safe_log(
    logger: Optional[logging.Logger],
    level: int,
    message: str,
    exc: Optional[BaseException] = None,
) -> None:
    if logger is None:
        return
    try:
        if exc is not None:
            logger.log(level, "%s: %s", message, exc)
        else:
            logger.log(level, message)
    except Exception:
        pass


def setup_logging(
    *,
    level: str = "INFO",
    path: Optional[Path] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """Configure the package logger; safe to call more than once."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.upper())
    for handler in list(logger.handlers):
        if getattr(handler, "_mgdocker_handler", False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(_LOG_FORMAT)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    stream_handler._mgdocker_handler = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        file_handler._mgdocker_handler = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)
    logger.propagate = False
    return logger


__all__ = ["format_event", "log_event", "safe_log", "setup_logging"]
