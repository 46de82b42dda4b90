"""Run events and a minimal emitter for listeners such as reporters."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Events:
    UPDATE_REFERENCE = "update_reference"
    SESSION_BROKEN = "session_broken"


class Emitter:
    """Register callbacks per event name and call them in order."""

    def __init__(self):
        self._listeners: dict[str, list[Callable[[Any], None]]] = defaultdict(list)

    def on(self, event: str, callback: Callable[[Any], None]) -> None:
        self._listeners[event].append(callback)

    def off(self, event: str, callback: Callable[[Any], None]) -> None:
        if callback in self._listeners[event]:
            self._listeners[event].remove(callback)

    def emit(self, event: str, payload: Any = None) -> None:
        logger.debug("Emitting %s to %d listener(s)", event, len(self._listeners[event]))
        for callback in list(self._listeners[event]):
            callback(payload)
