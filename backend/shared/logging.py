"""Structured logging configuration with structlog.

Environment variables:
- LOG_FORMAT: "json" for production log aggregation, "console" or unset for
  human-readable colored output.
- LOG_LEVEL: "DEBUG", "INFO" (default), "WARNING", "ERROR", or "CRITICAL".

Every event carries a ``service`` key; the race websocket endpoint binds
``room_id`` and ``connection_id`` through structlog contextvars.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any

    from structlog.typing import Processor

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
DEFAULT_SERVICE = "race"

_LOG_FORMATS = ("json", "console", "")
_LOG_LEVELS = ("CRITICAL", "DEBUG", "ERROR", "INFO", "WARNING")

# per-frame chatter at INFO
_QUIET_LOGGERS = ("uvicorn.access", "websockets", "httpx", "httpcore")


def _serialize_enums(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Render Enum values (room phases, message types) as their plain value."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def _service_stamper(service: str) -> Processor:
    def stamp(
        _logger: object,
        _method_name: str,
        event_dict: MutableMapping[str, Any],
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("service", service)
        return event_dict

    return stamp


def shared_processors(service: str = DEFAULT_SERVICE) -> list[Processor]:
    """Processor chain used by the server and by the test configuration."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _service_stamper(service),
        _serialize_enums,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _is_test() -> bool:
    return "pytest" in sys.modules


def _json_mode_from_env() -> bool:
    value = os.environ.get("LOG_FORMAT", "").lower()
    if value not in _LOG_FORMATS:
        msg = f"Invalid LOG_FORMAT={value!r}. Must be 'json', 'console', or unset."
        raise ValueError(msg)
    return value == "json"


def _level_from_env() -> int:
    value = os.environ.get("LOG_LEVEL", "INFO").upper()
    if value not in _LOG_LEVELS:
        msg = f"Invalid LOG_LEVEL={value!r}. Must be one of {', '.join(_LOG_LEVELS)}."
        raise ValueError(msg)
    return logging.getLevelNamesMapping()[value]


def _handler(file_path: Path | None, *, json_mode: bool) -> logging.Handler:
    """Stdout handler (colors on a tty) or plain file handler, rendering structlog events."""
    if file_path is None:
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
        colors = sys.stdout.isatty()
    else:
        handler = logging.FileHandler(file_path)
        colors = False
    renderer = structlog.processors.JSONRenderer() if json_mode else structlog.dev.ConsoleRenderer(colors=colors)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        ),
    )
    return handler


def setup_logging(
    log_dir: Path | str | None = None,
    level: int | None = None,
    *,
    name: str = DEFAULT_SERVICE,
) -> Path | None:
    """Route structlog through the stdlib root logger.

    Output goes to stdout and, when log_dir is given outside of tests, to
    ``<log_dir>/<name>_<timestamp>.log``. Returns that file's path, or None.
    """
    json_mode = _json_mode_from_env()
    if level is None:
        level = _level_from_env()

    # tracebacks are rendered by each handler's formatter (format_exc_info)
    structlog.configure(
        processors=[*shared_processors(name), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    for quiet in _QUIET_LOGGERS:
        logging.getLogger(quiet).setLevel(logging.WARNING)
    root.addHandler(_handler(None, json_mode=json_mode))

    if log_dir is None or _is_test():
        return None

    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    file_path = directory / f"{name}_{datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"
    root.addHandler(_handler(file_path, json_mode=json_mode))
    return file_path
