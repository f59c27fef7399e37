# core/notify.py
from __future__ import annotations
from typing import Callable, List

from .logs import get_logger

log = get_logger(__name__)

LEVELS = ("info", "success", "warning", "error")

Listener = Callable[[str, str], None]


class Notifier:
    """
    Per-view observer for user-facing messages (toasts).
    Listeners get (level, message). Every message is also logged.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def notify(self, level: str, message: str) -> None:
        level = level if level in LEVELS else "info"
        if level == "error":
            log.error(message)
        elif level == "warning":
            log.warning(message)
        else:
            log.info(message)
        for listener in list(self._listeners):
            try:
                listener(level, message)
            except Exception:
                log.exception("notification listener failed")

    def info(self, message: str) -> None:
        self.notify("info", message)

    def success(self, message: str) -> None:
        self.notify("success", message)

    def warning(self, message: str) -> None:
        self.notify("warning", message)

    def error(self, message: str) -> None:
        self.notify("error", message)


class CollectingListener:
    """Keeps every (level, message) it receives; handy for batch reports and tests."""

    def __init__(self) -> None:
        self.messages: List[tuple[str, str]] = []

    def __call__(self, level: str, message: str) -> None:
        self.messages.append((level, message))

    def levels(self) -> List[str]:
        return [lvl for lvl, _ in self.messages]

    def drain(self) -> List[tuple[str, str]]:
        out, self.messages = self.messages, []
        return out
