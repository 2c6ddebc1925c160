from __future__ import annotations

import logging
from typing import Any, Callable

LOGGER = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]


class Signal:
    """Observer list whose registrations hand back their own unsubscribe."""

    def __init__(self, name: str):
        self.name = name
        self._listeners: list[Callable[..., Any]] = []

    def subscribe(self, listener: Callable[..., Any]) -> Unsubscribe:
        self._listeners.append(listener)

        def _unsubscribe():
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    def emit(self, *args, **kwargs):
        for listener in list(self._listeners):
            try:
                listener(*args, **kwargs)
            except Exception as exc:
                LOGGER.warning("Listener for %s failed: %s", self.name, exc)

    def __len__(self) -> int:
        return len(self._listeners)
