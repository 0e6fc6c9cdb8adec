"""Cancellable one-shot timer slots guarded by a generation counter."""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from core.services.interfaces import IScheduler, ITimerHandle


class TimerSlot:
    """Owns at most one pending callback on a scheduler.

    Every `arm` or `cancel` bumps the generation. A callback only runs if the
    generation it was armed with is still current, so a late fire from a
    cancelled or re-armed timer has no effect even when the underlying
    scheduler could not retract it.
    """

    def __init__(self, scheduler: IScheduler, name: str) -> None:
        self._scheduler = scheduler
        self._name = name
        self._generation = 0
        self._handle: ITimerHandle | None = None

    @property
    def name(self) -> str:
        """Identifier used in log lines."""
        return self._name

    @property
    def is_armed(self) -> bool:
        """True while a callback is pending."""
        return self._handle is not None

    @property
    def generation(self) -> int:
        """Current generation; changes on every arm/cancel."""
        return self._generation

    def arm(self, delay: float, callback: Callable[[], None]) -> None:
        """Replace any pending callback with `callback` after `delay` seconds."""
        self.cancel()
        token = self._generation

        def _fire() -> None:
            if token != self._generation:
                logger.debug("Ignoring stale {} timer", self._name)
                return
            self._handle = None
            callback()

        self._handle = self._scheduler.call_later(max(0.0, float(delay)), _fire)

    def cancel(self) -> None:
        """Drop the pending callback, if any."""
        self._generation += 1
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()
