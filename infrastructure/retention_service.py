"""Retention planning and eviction for the photo store.

Plans which pairs and stray files a `RetentionPolicy` removes, executes the
deletions best-effort per file, computes store statistics and writes an audit
CSV for every run that deleted something.
"""

from __future__ import annotations

from collections.abc import Callable
import csv
from datetime import datetime
import os
from pathlib import Path
import threading
import time

from loguru import logger

from core.errors import CleanupInProgress, CleanupPartialFailure
from core.models import CacheStatistics, PhotoPair, RetentionPolicy, StoreFile
from core.services.interfaces import CleanupPlan, EvictionReport, ScanResult
from infrastructure.pair_discovery import PairDiscoveryService, parse_timestamp
from infrastructure.photo_store import PhotoStore, list_store_files

SECONDS_PER_DAY = 24 * 60 * 60


def _file_epoch(f: StoreFile) -> float:
    """Age reference of a stray file: its filename timestamp, else its mtime."""
    ts = parse_timestamp(f.timestamp_key)
    return ts if ts is not None else f.modified_at.timestamp()


def plan_cleanup(scan: ScanResult, policy: RetentionPolicy, now: float) -> CleanupPlan:
    """Compute the deletion set for `policy` at time `now`.

    Expired pairs are those older than `max_age_days`. If `max_pair_count` is
    set and the surviving pairs still exceed it, the oldest survivors are
    added. Orphaned and rejected files older than the same cutoff are
    included because they can never become valid pairs.
    """
    cutoff = policy.cutoff_timestamp(now)
    expired = [p for p in scan.pairs if p.id < cutoff]
    remaining = [p for p in scan.pairs if p.id >= cutoff]

    excess: list[PhotoPair] = []
    cap = policy.max_pair_count
    if cap is not None and cap >= 0 and len(remaining) > cap:
        # Newest-first order puts the oldest at the tail
        ordered = sorted(remaining, key=lambda p: Path(p.original_path).name)
        ordered.sort(key=lambda p: p.id, reverse=True)
        excess = ordered[cap:]

    stale = [f for f in (*scan.orphans, *scan.rejected) if _file_epoch(f) < cutoff]
    return CleanupPlan(expired_pairs=expired, excess_pairs=excess, stale_files=stale)


class RetentionService:
    """Coordinates cleanup runs and statistics for one photo store."""

    def __init__(
        self,
        store: PhotoStore,
        discovery: PairDiscoveryService | None = None,
        audit_log_dir: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._discovery = discovery or PairDiscoveryService()
        self._audit_log_dir = audit_log_dir
        self._clock = clock
        self._busy = threading.Lock()

    @property
    def is_cleaning_up(self) -> bool:
        """True while a cleanup run is in flight."""
        return self._busy.locked()

    def cleanup(
        self, policy: RetentionPolicy, directory: str | Path | None = None
    ) -> EvictionReport:
        """Apply `policy` to the store.

        Raises:
            CleanupInProgress: Another run has not finished yet.
            DirectoryPermissionDenied: The store cannot be read.
            DirectoryReadFailed: Listing the store failed.
        """
        if not self._busy.acquire(blocking=False):
            logger.warning("Cleanup requested while another run is in progress")
            raise CleanupInProgress()
        try:
            target = directory or self._store.directory
            logger.info(
                "Starting cleanup of {} (max_age_days={}, max_pair_count={})",
                target,
                policy.max_age_days,
                policy.max_pair_count,
            )
            scan = self._discovery.scan(target)
            plan = plan_cleanup(scan, policy, self._clock())
            report = self._execute(plan)
            report.finished_at = datetime.fromtimestamp(self._clock())
            policy.last_cleanup_at = report.finished_at
            if report.files_removed or report.failures:
                report.log_path = self._write_audit_log(plan, report)
            logger.info(
                "Cleanup completed: {} files deleted, {} bytes freed, {} failures",
                report.files_removed,
                report.bytes_freed,
                len(report.failures),
            )
            return report
        finally:
            self._busy.release()

    def statistics(
        self, policy: RetentionPolicy, directory: str | Path | None = None
    ) -> CacheStatistics:
        """Recompute store statistics from a fresh listing."""
        target = directory or self._store.directory
        files = list_store_files(target)
        scan = self._discovery.scan(target)
        now = self._clock()

        total_size = sum(f.size_bytes for f in files)
        epochs = [_file_epoch(f) for f in files]
        oldest = min(epochs) if epochs else None
        newest = max(epochs) if epochs else None
        oldest_age_days = 0
        if oldest is not None:
            oldest_age_days = int(max(0.0, now - oldest) // SECONDS_PER_DAY)

        return CacheStatistics(
            total_files=len(files),
            total_size_bytes=total_size,
            oldest_age_days=oldest_age_days,
            needs_cleanup=not plan_cleanup(scan, policy, now).is_empty,
            pair_count=scan.pair_count,
            oldest_file_at=datetime.fromtimestamp(oldest) if oldest is not None else None,
            newest_file_at=datetime.fromtimestamp(newest) if newest is not None else None,
        )

    def _execute(self, plan: CleanupPlan) -> EvictionReport:
        report = EvictionReport()
        for pair in plan.pairs:
            removed_any = False
            for path in (pair.original_path, pair.themed_path):
                if self._delete_one(path, report):
                    removed_any = True
            if removed_any:
                report.pairs_removed += 1
        for f in plan.stale_files:
            if self._delete_one(f.path, report):
                report.orphans_removed += 1
        return report

    def _delete_one(self, path: str, report: EvictionReport) -> bool:
        try:
            freed = self._store.delete_file(path)
        except FileNotFoundError:
            logger.debug("File already gone before deletion: {}", path)
            return False
        except OSError as ex:
            logger.error("Failed to delete {}: {}", path, ex)
            report.failures.append(CleanupPartialFailure(path, str(ex)))
            return False
        report.files_removed += 1
        report.bytes_freed += freed
        return True

    def _write_audit_log(self, plan: CleanupPlan, report: EvictionReport) -> str | None:
        if not self._audit_log_dir:
            return None
        try:
            base_dir = Path(os.path.expandvars(self._audit_log_dir))
            base_dir.mkdir(parents=True, exist_ok=True)
            ts = datetime.fromtimestamp(self._clock()).strftime("%Y%m%d_%H%M%S")
            log_path = base_dir / f"cleanup_{ts}.csv"
            failed = {f.path: f.reason for f in report.failures}
            with log_path.open("w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(["Reason", "Timestamp", "FilePath", "Success", "Error"])
                rows: list[tuple[str, str, str]] = []
                for pair in plan.expired_pairs:
                    rows += [("expired", pair.timestamp_key, pair.original_path)]
                    rows += [("expired", pair.timestamp_key, pair.themed_path)]
                for pair in plan.excess_pairs:
                    rows += [("over_count", pair.timestamp_key, pair.original_path)]
                    rows += [("over_count", pair.timestamp_key, pair.themed_path)]
                for sf in plan.stale_files:
                    rows.append(("stale", sf.timestamp_key, sf.path))
                for reason, key, path in rows:
                    error = failed.get(path, "")
                    writer.writerow([reason, key, path, 0 if error else 1, error])
            logger.info("Cleanup log written: {}", log_path)
            return str(log_path)
        except (OSError, ValueError) as ex:
            logger.error("Write cleanup log failed: {}", ex)
            return None
