"""Core service interfaces and shared data structures.

This module defines the value objects exchanged between discovery, eviction
and the state machines, plus the scheduling ports that keep the state machines
independent of any UI toolkit.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from core.errors import CleanupPartialFailure
from core.models import PhotoPair, StoreFile


@dataclass
class ScanResult:
    """Outcome of a discovery scan.

    Attributes:
        pairs: Valid pairs ordered newest-first.
        orphans: Convention-matching files without a valid twin.
        rejected: Files skipped because they were below the size threshold.
    """

    pairs: list[PhotoPair]
    orphans: list[StoreFile] = field(default_factory=list)
    rejected: list[StoreFile] = field(default_factory=list)

    @property
    def pair_count(self) -> int:
        """Number of valid pairs."""
        return len(self.pairs)


@dataclass
class CleanupPlan:
    """Files chosen for deletion by a retention run.

    Attributes:
        expired_pairs: Pairs older than the age threshold.
        excess_pairs: Oldest pairs removed to honour the count cap.
        stale_files: Orphaned or rejected files older than the age threshold.
    """

    expired_pairs: list[PhotoPair]
    excess_pairs: list[PhotoPair]
    stale_files: list[StoreFile]

    @property
    def pairs(self) -> list[PhotoPair]:
        """All pairs in the deletion set."""
        return [*self.expired_pairs, *self.excess_pairs]

    @property
    def is_empty(self) -> bool:
        """True when nothing would be deleted."""
        return not self.expired_pairs and not self.excess_pairs and not self.stale_files


@dataclass
class EvictionReport:
    """Outcome of a cleanup run.

    Attributes:
        files_removed: Number of files deleted.
        bytes_freed: Sum of the sizes of deleted files.
        pairs_removed: Number of complete pairs deleted.
        orphans_removed: Number of orphaned/rejected files deleted.
        failures: Per-file delete failures; the run continued past them.
        finished_at: Completion time of the run.
        log_path: Optional audit CSV describing every deletion.
    """

    files_removed: int = 0
    bytes_freed: int = 0
    pairs_removed: int = 0
    orphans_removed: int = 0
    failures: list[CleanupPartialFailure] = field(default_factory=list)
    finished_at: datetime | None = None
    log_path: str | None = None

    @property
    def has_failures(self) -> bool:
        """True when at least one file could not be deleted."""
        return bool(self.failures)


@dataclass(frozen=True)
class PairReady:
    """Notification raised when both halves of a pair are persisted."""

    timestamp_key: str
    original_path: str
    themed_path: str


class ITimerHandle:
    """Handle returned by a scheduler for a pending callback."""

    def cancel(self) -> None:
        """Prevent the callback from running if it has not run yet."""
        raise NotImplementedError


class IScheduler:
    """Schedules callbacks on the serialized state-machine context."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ITimerHandle:
        """Run `callback` once after `delay` seconds."""
        raise NotImplementedError


class ITaskRunner:
    """Runs blocking work off the serialized context.

    `submit` returns a future resolved on a worker thread. `run_async` delivers
    the result (or the raised exception) back on the serialized context.
    """

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Start `fn(*args)` on a worker and return its future."""
        raise NotImplementedError

    def run_async(
        self,
        fn: Callable[[], Any],
        on_done: Callable[[Any], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        """Run `fn` on a worker and report back on the serialized context."""
        raise NotImplementedError
