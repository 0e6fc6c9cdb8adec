"""Slideshow state machine replaying stored photo pairs.

Each pair is shown twice per cycle: the original first, then the themed
image. Playback wraps around endlessly. A background rescan merges newly
arrived pairs without restarting playback; the pair on screen keeps being
shown and its index follows it when newer pairs are inserted ahead of it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from loguru import logger

from core.error_messages import slideshow_error_message
from core.errors import NoPairsAvailable
from core.models import PhotoPair
from core.services.events import EventHook
from core.services.interfaces import IScheduler, ITaskRunner
from core.services.prefetch_cache import PrefetchCache
from core.services.timers import TimerSlot

DEFAULT_DISPLAY_DURATION = 5.0
MIN_DISPLAY_DURATION = 2.0
MAX_DISPLAY_DURATION = 10.0
DEFAULT_RESCAN_INTERVAL = 10.0


def clamp_display_duration(seconds: float) -> float:
    """Clamp a per-image display duration to the supported 2-10 s range."""
    return float(max(MIN_DISPLAY_DURATION, min(MAX_DISPLAY_DURATION, float(seconds))))


class SlideshowState(str, Enum):
    """Playback states."""

    INACTIVE = "inactive"
    ACTIVE = "active"


@dataclass(frozen=True)
class SlideshowSnapshot:
    """Observable view of the slideshow."""

    state: SlideshowState
    pair_index: int
    showing_original: bool
    display_duration: float
    pair_count: int
    current_pair: PhotoPair | None
    message: str = ""
    loading: bool = False

    @property
    def is_active(self) -> bool:
        return self.state is SlideshowState.ACTIVE


class SlideshowStateMachine:
    """Timer-driven playback over the pairs found in one store directory."""

    def __init__(
        self,
        discovery: Any,
        directory: str | Path,
        scheduler: IScheduler,
        runner: ITaskRunner,
        prefetch_cache: PrefetchCache,
        display_duration: float = DEFAULT_DISPLAY_DURATION,
        rescan_interval: float = DEFAULT_RESCAN_INTERVAL,
    ) -> None:
        """Create an inactive slideshow.

        Args:
            discovery: Object with `discover(directory) -> list[PhotoPair]`.
            directory: Store directory to scan.
            scheduler: Serialized context for the advance and rescan timers.
            runner: Runs discovery scans off the serialized context.
            prefetch_cache: Decoded-pair window owned by this slideshow.
            display_duration: Seconds each image stays on screen (2-10).
            rescan_interval: Seconds between background rescans.
        """
        self._discovery = discovery
        self._directory = directory
        self._runner = runner
        self._cache = prefetch_cache
        self._display_duration = clamp_display_duration(display_duration)
        self._rescan_interval = max(0.1, float(rescan_interval))

        self._advance_timer = TimerSlot(scheduler, "slideshow-advance")
        self._rescan_timer = TimerSlot(scheduler, "slideshow-rescan")

        self._state = SlideshowState.INACTIVE
        self._pairs: list[PhotoPair] = []
        self._index = 0
        self._showing_original = True
        self._message = ""
        self._loading = False
        self._rescanning = False
        self._rescan_pending = False
        # Bumped by start/stop so results of an abandoned scan are ignored
        self._run_id = 0

        self.state_changed = EventHook("slideshow.state_changed")

    # Observation
    @property
    def state(self) -> SlideshowState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SlideshowState.ACTIVE

    @property
    def is_loading(self) -> bool:
        """True while the initial discovery scan is running."""
        return self._loading

    @property
    def pair_index(self) -> int:
        return self._index

    @property
    def showing_original(self) -> bool:
        return self._showing_original

    @property
    def display_duration(self) -> float:
        return self._display_duration

    @property
    def pairs(self) -> list[PhotoPair]:
        return list(self._pairs)

    @property
    def pair_count(self) -> int:
        return len(self._pairs)

    @property
    def message(self) -> str:
        """Empty-state or error message while inactive."""
        return self._message

    @property
    def current_pair(self) -> PhotoPair | None:
        if not self.is_active or not self._pairs:
            return None
        return self._pairs[self._index]

    @property
    def current_path(self) -> str | None:
        """Path of the image on screen."""
        pair = self.current_pair
        if pair is None:
            return None
        return pair.original_path if self._showing_original else pair.themed_path

    @property
    def progress_text(self) -> str:
        """Position indicator such as `Themed 2 of 5`."""
        if not self.is_active or not self._pairs:
            return ""
        label = "Original" if self._showing_original else "Themed"
        return f"{label} {self._index + 1} of {len(self._pairs)}"

    def snapshot(self) -> SlideshowSnapshot:
        return SlideshowSnapshot(
            state=self._state,
            pair_index=self._index,
            showing_original=self._showing_original,
            display_duration=self._display_duration,
            pair_count=len(self._pairs),
            current_pair=self.current_pair,
            message=self._message,
            loading=self._loading,
        )

    def subscribe(self, callback: Callable[[SlideshowSnapshot], None]) -> Callable[[], None]:
        """Observe playback changes; returns an unsubscribe function."""
        return self.state_changed.subscribe(callback)

    def current_image(self) -> Any | None:
        """Decoded image on screen, or None when the pair is no longer available."""
        if not self.is_active or not self._pairs:
            return None
        decoded = self._cache.get(self._index)
        if decoded is None:
            return None
        return decoded.decoded_original if self._showing_original else decoded.decoded_themed

    # Control
    def start(self) -> bool:
        """Scan the store and begin playback; returns False if already running."""
        if self.is_active or self._loading:
            logger.debug("Slideshow start ignored: already running")
            return False
        self._run_id += 1
        run_id = self._run_id
        self._loading = True
        self._message = ""
        logger.info("Starting slideshow from {}", self._directory)
        self._notify()
        self._runner.run_async(
            lambda: self._discovery.discover(self._directory),
            lambda pairs: self._on_start_scan(run_id, pairs),
            lambda ex: self._on_start_failed(run_id, ex),
        )
        return True

    def stop(self) -> None:
        """Cancel both timers, drop the cache and go inactive."""
        was_running = self.is_active or self._loading
        self._run_id += 1
        self._advance_timer.cancel()
        self._rescan_timer.cancel()
        self._cache.clear()
        self._state = SlideshowState.INACTIVE
        self._loading = False
        self._rescanning = False
        self._rescan_pending = False
        self._pairs = []
        self._index = 0
        self._showing_original = True
        if was_running:
            logger.info("Slideshow stopped")
            self._notify()

    def advance(self) -> bool:
        """Step to the next image: original to themed, then the next pair."""
        if not self.is_active or not self._pairs:
            return False
        if self._showing_original:
            self._showing_original = False
        else:
            self._index = (self._index + 1) % len(self._pairs)
            self._showing_original = True
            self._cache.recenter(self._index)
        self._notify()
        self._advance_timer.arm(self._display_duration, self.advance)
        return True

    def update_display_duration(self, seconds: float) -> float:
        """Set the per-image duration (clamped to 2-10 s); applies immediately."""
        self._display_duration = clamp_display_duration(seconds)
        logger.info("Slideshow display duration set to {}s", self._display_duration)
        if self.is_active:
            self._advance_timer.arm(self._display_duration, self.advance)
            self._notify()
        return self._display_duration

    def request_rescan(self) -> bool:
        """Rescan the store now, e.g. after a new pair was persisted."""
        if not self.is_active:
            return False
        if self._rescanning:
            self._rescan_pending = True
            return True
        self._rescanning = True
        run_id = self._run_id
        self._runner.run_async(
            lambda: self._discovery.discover(self._directory),
            lambda pairs: self._on_rescan(run_id, pairs),
            lambda ex: self._on_rescan_failed(run_id, ex),
        )
        return True

    # Scan results
    def _on_start_scan(self, run_id: int, pairs: list[PhotoPair]) -> None:
        if run_id != self._run_id:
            return
        self._loading = False
        if not pairs:
            self._message = slideshow_error_message(NoPairsAvailable(str(self._directory)))
            logger.info("Slideshow not started: no valid pairs in {}", self._directory)
            self._notify()
            return
        self._pairs = list(pairs)
        self._index = 0
        self._showing_original = True
        self._state = SlideshowState.ACTIVE
        self._cache.update_pairs(self._pairs, center=0)
        logger.info("Slideshow started with {} pairs", len(self._pairs))
        self._notify()
        self._advance_timer.arm(self._display_duration, self.advance)
        self._rescan_timer.arm(self._rescan_interval, self._on_rescan_timer)

    def _on_start_failed(self, run_id: int, error: Exception) -> None:
        if run_id != self._run_id:
            return
        self._loading = False
        self._message = slideshow_error_message(error)
        logger.error("Slideshow scan failed: {}", error)
        self._notify()

    def _on_rescan_timer(self) -> None:
        # Every completed rescan re-arms this timer
        self.request_rescan()

    def _on_rescan(self, run_id: int, pairs: list[PhotoPair]) -> None:
        if run_id != self._run_id or not self.is_active:
            return
        self._rescanning = False
        if not pairs:
            logger.warning("All pairs disappeared from {}; stopping slideshow", self._directory)
            self.stop()
            self._message = slideshow_error_message(NoPairsAvailable(str(self._directory)))
            self._notify()
            return
        self._merge(list(pairs))
        self._after_rescan()

    def _on_rescan_failed(self, run_id: int, error: Exception) -> None:
        if run_id != self._run_id or not self.is_active:
            return
        self._rescanning = False
        # Keep playing the pairs we already have
        logger.warning("Slideshow rescan failed: {}", error)
        self._after_rescan()

    def _after_rescan(self) -> None:
        self._rescan_timer.arm(self._rescan_interval, self._on_rescan_timer)
        if self._rescan_pending:
            self._rescan_pending = False
            self.request_rescan()

    def _merge(self, pairs: list[PhotoPair]) -> None:
        current_key = self._pairs[self._index].timestamp_key if self._pairs else None
        new_keys = [p.timestamp_key for p in pairs]
        if new_keys == [p.timestamp_key for p in self._pairs]:
            self._pairs = pairs
            return

        if current_key in new_keys:
            self._index = new_keys.index(current_key)
        else:
            # Pair on screen was evicted; whatever now occupies its slot comes next
            self._index = min(self._index, len(pairs) - 1)
            self._showing_original = True
        logger.info(
            "Slideshow list updated: {} -> {} pairs (index {})",
            len(self._pairs),
            len(pairs),
            self._index,
        )
        self._pairs = pairs
        self._cache.update_pairs(self._pairs, center=self._index)
        self._notify()

    def _notify(self) -> None:
        self.state_changed.emit(self.snapshot())
