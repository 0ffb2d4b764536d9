"""Minimal observer used by the watcher and proposal services."""

import threading
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """
    Named-event publish/subscribe.

    Listeners run synchronously on the emitting thread. A listener that
    raises is logged and skipped; the emitting operation always continues.
    """

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._listeners_lock = threading.Lock()

    def on(self, event: str, listener: Listener) -> Listener:
        """Register a listener for an event. Returns the listener."""
        with self._listeners_lock:
            self._listeners[event].append(listener)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove a previously registered listener (no-op if absent)."""
        with self._listeners_lock:
            if listener in self._listeners.get(event, []):
                self._listeners[event].remove(listener)

    def listener_count(self, event: str) -> int:
        with self._listeners_lock:
            return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> None:
        """Invoke every listener registered for ``event`` with ``args``."""
        with self._listeners_lock:
            listeners = list(self._listeners.get(event, []))

        for listener in listeners:
            try:
                listener(*args)
            except Exception:
                logger.exception(f"Listener for '{event}' failed")
