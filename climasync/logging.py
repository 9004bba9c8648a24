"""Logging setup using Loguru.

Every module logs through the shared ``logger`` with keyword fields
(``logger.info("Mutation applied", kind="reaction")``). Three context
variables follow the work across awaits and end up in JSON records and in
trace spans:

- ``request_id``: one refresh or mutation
- ``user_id``: the signed-in viewer
- ``view``: the synchronized view doing the work (e.g. "community-feed")

Example:
    >>> from climasync.logging import logger, log_context
    >>> with log_context(view="community-feed"):
    ...     logger.info("Refreshing")
"""

import json
import sys
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from loguru import logger as loguru_logger

from climasync.config import settings

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
view_var: ContextVar[str | None] = ContextVar("view", default=None)

CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "view": view_var,
}

HUMAN_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def get_request_context() -> dict[str, str | None]:
    return {name: var.get() for name, var in CONTEXT_VARS.items()}


def serialize(record: dict[str, Any]) -> str:
    """Render a record as one JSON line with the context fields that are set."""
    payload: dict[str, Any] = {
        "time": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": f'{record["name"]}:{record["function"]}:{record["line"]}',
    }
    payload.update({k: v for k, v in get_request_context().items() if v})
    payload.update(record["extra"])

    if exc := record["exception"]:
        payload["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value),
            "traceback": traceback.format_exception(exc.type, exc.value, exc.traceback),
        }
    return json.dumps(payload, default=str)


def _patch(record: dict[str, Any]) -> None:
    record["serialized"] = serialize(record)


def _json_format(record: dict[str, Any]) -> str:
    # Callable format: loguru appends no traceback, it is already in the JSON
    return "{serialized}\n"


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Path | None = None,
) -> Any:
    """Replace all sinks with a stderr sink (and optionally a rotating file).

    Args:
        level: Minimum log level
        json_logs: Emit one JSON object per line instead of the colored format
        log_file: Optional file receiving the same records

    Returns:
        The patched logger
    """
    loguru_logger.remove()
    patched = loguru_logger.patch(_patch)
    fmt = _json_format if json_logs else HUMAN_FORMAT

    patched.add(sys.stderr, level=level, format=fmt, colorize=not json_logs)
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        patched.add(
            log_file,
            level=level,
            format=_json_format,
            rotation="50 MB",
            retention="14 days",
            compression="zip",
            enqueue=True,
        )
    return patched


logger = setup_logging(
    level=settings.log_level,
    json_logs=settings.log_json,
    log_file=Path(settings.log_file) if settings.log_file else None,
)


def set_request_context(**values: str | None) -> None:
    """Set context fields for the current task; None leaves a field unchanged."""
    for name, value in values.items():
        if value is not None:
            CONTEXT_VARS[name].set(value)


def clear_request_context() -> None:
    for var in CONTEXT_VARS.values():
        var.set(None)


@contextmanager
def log_context(**values: str | None) -> Iterator[None]:
    """Set context fields for the duration of a block, restoring them afterwards."""
    tokens = [(CONTEXT_VARS[name], CONTEXT_VARS[name].set(value)) for name, value in values.items()]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


__all__ = [
    "logger",
    "request_id_var",
    "user_id_var",
    "view_var",
    "set_request_context",
    "clear_request_context",
    "get_request_context",
    "log_context",
    "setup_logging",
]
