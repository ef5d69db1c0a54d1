"""Structured logging for querycache.

Every line carries the bound request id plus whatever cache context the
caller passes through ``extra`` (entity, cache_key, record_count, ...).
Deployments emit one JSON object per line; interactive terminals get
rich's console handler and any other stream a pipe-separated line.

Usage:
    configure_logging(json_format=True, level="INFO")

    logger = logging.getLogger(__name__)
    logger.info("Cache invalidated", extra={"entity": "Account"})
"""

from __future__ import annotations

import contextvars
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import orjson

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")

# Per-request access lines drown out cache events
QUIET_LOGGERS = ("uvicorn.access", "httpx")

_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def log_context(record: logging.LogRecord) -> dict[str, Any]:
    """Return the request id and ``extra`` fields attached to a record."""
    context: dict[str, Any] = {}
    request_id = request_id_var.get()
    if request_id:
        context["request_id"] = request_id
    for key, value in vars(record).items():
        if key not in _RECORD_ATTRS and not key.startswith("_"):
            context[key] = value
    return context


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Values orjson can't encode natively (sets, enums, exceptions) are
    written as their ``str()``.
    """

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in log_context(record).items():
            data.setdefault(key, value)
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        return orjson.dumps(data, default=str, option=orjson.OPT_NON_STR_KEYS).decode()


class ConsoleFormatter(logging.Formatter):
    """Pipe-separated line for development logs.

    2026-01-10 12:34:56 | INFO     | querycache.cache.invalidation | Flushed ... | entity=Account

    With ``bare=True`` only the message and its context are rendered, for
    handlers that print the time and level themselves.
    """

    def __init__(self, bare: bool = False) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.bare = bare

    def format(self, record: logging.LogRecord) -> str:
        parts = [record.getMessage()]
        context = " ".join(f"{key}={value}" for key, value in log_context(record).items())
        if context:
            parts.append(context)
        if self.bare:
            return " | ".join(parts)

        line = " | ".join(
            [self.formatTime(record, self.datefmt), f"{record.levelname:8}", record.name, *parts]
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    use_colors: bool = True,
) -> None:
    """Replace the root handlers with a single querycache handler.

    Args:
        json_format: Emit JSON lines (for production)
        level: Root log level name
        use_colors: Use rich's console handler when stderr is a terminal
    """
    handler: logging.Handler
    if json_format:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter())
    elif use_colors and sys.stderr.isatty():
        from rich.console import Console
        from rich.logging import RichHandler

        handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
        handler.setFormatter(ConsoleFormatter(bare=True))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ConsoleFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def bound_request_id(request_id: str) -> Iterator[None]:
    """Attach ``request_id`` to every log line written inside the block."""
    token = request_id_var.set(request_id)
    try:
        yield
    finally:
        request_id_var.reset(token)
