"""Qt-facing view model for cache statistics and cleanup controls."""

from __future__ import annotations

from PySide6.QtCore import QObject, Signal

from core.models import CacheStatistics
from core.services.cache_maintenance import CacheMaintenance
from core.services.interfaces import EvictionReport


def format_statistics(stats: CacheStatistics) -> str:
    """One-line summary for an operator panel."""
    text = f"{stats.pair_count} pairs, {stats.total_files} files, {stats.formatted_size}"
    if stats.total_files:
        text += f", oldest {stats.oldest_age_days} days"
    if stats.needs_cleanup:
        text += " (cleanup recommended)"
    return text


def format_report(report: EvictionReport) -> str:
    text = f"Deleted {report.files_removed} files ({report.pairs_removed} pairs)"
    if report.has_failures:
        text += f", {len(report.failures)} could not be deleted"
    return text


class CacheVM(QObject):
    """Publishes statistics and cleanup outcomes as Qt signals."""

    statisticsChanged = Signal(object)
    summaryChanged = Signal(str)
    cleanupFinished = Signal(object)
    cleanupFailed = Signal(str)
    busyChanged = Signal(bool)

    def __init__(self, maintenance: CacheMaintenance, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._maintenance = maintenance
        self._subscriptions = [
            maintenance.statistics_changed.subscribe(self._on_statistics),
            maintenance.cleanup_finished.subscribe(self._on_finished),
            maintenance.cleanup_failed.subscribe(self._on_failed),
        ]

    @property
    def automatic_cleanup_enabled(self) -> bool:
        return self._maintenance.policy.automatic_cleanup_enabled

    def refresh(self) -> None:
        self._maintenance.refresh_statistics()

    def cleanup_now(self) -> bool:
        if self._maintenance.is_running:
            return False
        self.busyChanged.emit(True)
        return self._maintenance.run_cleanup()

    def set_automatic_cleanup(self, enabled: bool) -> None:
        self._maintenance.set_automatic_cleanup(enabled)

    def set_max_age_days(self, days: int) -> None:
        self._maintenance.set_max_age_days(days)

    def dispose(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

    def _on_statistics(self, stats: CacheStatistics) -> None:
        self.statisticsChanged.emit(stats)
        self.summaryChanged.emit(format_statistics(stats))

    def _on_finished(self, report: EvictionReport) -> None:
        self.busyChanged.emit(False)
        self.cleanupFinished.emit(report)

    def _on_failed(self, error: Exception) -> None:
        self.busyChanged.emit(False)
        self.cleanupFailed.emit(str(error))
