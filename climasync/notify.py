"""User-visible notifications.

:class:`NotificationCenter` is the non-blocking message surface views and
mutations report to (the equivalent of a toast). Messages are kept in a
bounded history and optionally echoed to a rich console.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from rich.console import Console

from climasync.logging import logger
from climasync.utils import utc_now


class Level(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: Level
    message: str
    created_at: datetime = field(default_factory=utc_now)


_STYLES = {Level.INFO: "cyan", Level.SUCCESS: "green", Level.ERROR: "bold red"}


class NotificationCenter:
    """Collects notifications in arrival order.

    Args:
        console: Rich console to echo notifications to (None to stay silent)
        history: Number of notifications kept

    Example:
        >>> center = NotificationCenter()
        >>> center.info("Already completed")
        >>> center.messages()
        ['Already completed']
    """

    def __init__(self, console: Console | None = None, history: int = 100):
        self._console = console
        self._items: deque[Notification] = deque(maxlen=history)

    def _push(self, level: Level, message: str) -> None:
        self._items.append(Notification(level, message))
        logger.debug("Notification", level=level.value, message=message)
        if self._console is not None:
            self._console.print(f"[{_STYLES[level]}]{message}[/]")

    def info(self, message: str) -> None:
        self._push(Level.INFO, message)

    def success(self, message: str) -> None:
        self._push(Level.SUCCESS, message)

    def error(self, message: str) -> None:
        self._push(Level.ERROR, message)

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    def messages(self, level: Level | None = None) -> list[str]:
        """Messages in arrival order, optionally only those of ``level``."""
        return [n.message for n in self._items if level is None or n.level is level]

    def clear(self) -> None:
        self._items.clear()


__all__ = ["Level", "Notification", "NotificationCenter"]
