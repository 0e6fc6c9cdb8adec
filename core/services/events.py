"""Minimal listener registry used for outbound notifications."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from loguru import logger


class EventHook:
    """A named list of callbacks invoked synchronously on `emit`."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Callable[..., None]] = []

    def subscribe(self, callback: Callable[..., None]) -> Callable[[], None]:
        """Register `callback`; returns a function that unregisters it."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def emit(self, *args: Any) -> None:
        """Invoke every listener; a failing listener does not stop the others."""
        for callback in list(self._listeners):
            try:
                callback(*args)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Listener for {} failed", self._name)

    def __len__(self) -> int:
        return len(self._listeners)
