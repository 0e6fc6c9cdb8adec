"""On-demand and periodic cleanup of the photo store."""

from __future__ import annotations

from collections.abc import Callable
import time
from typing import Any

from loguru import logger

from core.errors import CleanupInProgress
from core.models import CacheStatistics, RetentionPolicy
from core.services.events import EventHook
from core.services.interfaces import EvictionReport, IScheduler, ITaskRunner
from core.services.timers import TimerSlot

CLEANUP_INTERVAL_SECONDS = 24 * 60 * 60


class CacheMaintenance:
    """Runs retention cleanups off the serialized context and publishes results.

    When automatic cleanup is enabled a run happens at most every 24 hours,
    measured from `policy.last_cleanup_at`. Policy changes and completed runs
    are handed to `persist` so they survive a restart.
    """

    def __init__(
        self,
        retention: Any,
        policy: RetentionPolicy,
        scheduler: IScheduler,
        runner: ITaskRunner,
        persist: Callable[[RetentionPolicy], None] | None = None,
        interval_seconds: float = CLEANUP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._retention = retention
        self._policy = policy
        self._runner = runner
        self._persist = persist
        self._interval = float(interval_seconds)
        self._clock = clock
        self._timer = TimerSlot(scheduler, "automatic-cleanup")
        self._running = False
        self._last_statistics: CacheStatistics | None = None

        self.statistics_changed = EventHook("maintenance.statistics_changed")
        self.cleanup_finished = EventHook("maintenance.cleanup_finished")
        self.cleanup_failed = EventHook("maintenance.cleanup_failed")

    @property
    def policy(self) -> RetentionPolicy:
        return self._policy

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_scheduled(self) -> bool:
        return self._timer.is_armed

    @property
    def last_statistics(self) -> CacheStatistics | None:
        return self._last_statistics

    # Scheduling
    def start(self) -> None:
        """Arm the periodic cleanup if it is enabled."""
        if not self._policy.automatic_cleanup_enabled:
            self._timer.cancel()
            return
        delay = 0.0
        last = self._policy.last_cleanup_at
        if last is not None:
            elapsed = self._clock() - last.timestamp()
            delay = max(0.0, self._interval - elapsed)
        logger.info("Automatic cleanup scheduled in {:.0f}s", delay)
        self._timer.arm(delay, self._on_timer)

    def stop(self) -> None:
        self._timer.cancel()

    def _on_timer(self) -> None:
        if not self.run_cleanup():
            # A manual run is in flight; try again after the interval
            self._timer.arm(self._interval, self._on_timer)

    # Policy changes
    def set_automatic_cleanup(self, enabled: bool) -> None:
        self._policy.automatic_cleanup_enabled = bool(enabled)
        logger.info("Automatic cleanup {}", "enabled" if enabled else "disabled")
        self._save()
        self.start()

    def set_max_age_days(self, days: int) -> None:
        self._policy.max_age_days = max(0, int(days))
        self._save()
        self.refresh_statistics()

    def set_max_pair_count(self, count: int | None) -> None:
        self._policy.max_pair_count = None if count is None else max(0, int(count))
        self._save()
        self.refresh_statistics()

    # Work
    def refresh_statistics(self) -> None:
        """Recompute statistics on a worker and publish them."""
        self._runner.run_async(
            lambda: self._retention.statistics(self._policy),
            self._on_statistics,
            lambda ex: logger.error("Statistics refresh failed: {}", ex),
        )

    def run_cleanup(self) -> bool:
        """Start a cleanup run; returns False if one is already running."""
        if self._running:
            logger.warning("Cleanup already running; request ignored")
            return False
        self._running = True
        self._runner.run_async(
            lambda: self._retention.cleanup(self._policy),
            self._on_cleanup_done,
            self._on_cleanup_error,
        )
        return True

    def _on_statistics(self, stats: CacheStatistics) -> None:
        self._last_statistics = stats
        self.statistics_changed.emit(stats)

    def _on_cleanup_done(self, report: EvictionReport) -> None:
        self._running = False
        if report.has_failures:
            logger.warning("Cleanup finished with {} failures", len(report.failures))
        self._save()
        self.cleanup_finished.emit(report)
        self._reschedule()
        self.refresh_statistics()

    def _on_cleanup_error(self, error: Exception) -> None:
        self._running = False
        if isinstance(error, CleanupInProgress):
            logger.warning("{}", error)
        else:
            logger.error("Cleanup failed: {}", error)
        self.cleanup_failed.emit(error)
        self._reschedule()

    def _reschedule(self) -> None:
        if self._policy.automatic_cleanup_enabled:
            self._timer.arm(self._interval, self._on_timer)

    def _save(self) -> None:
        if self._persist is None:
            return
        try:
            self._persist(self._policy)
        except OSError as ex:
            logger.error("Failed to persist retention settings: {}", ex)
