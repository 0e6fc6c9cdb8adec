"""Routes collaborator events into the store and the two state machines."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from loguru import logger

from core.errors import CameraFailure, StylizationFailure
from core.models import FileKind
from core.services.capture_session import CaptureStateMachine
from core.services.events import EventHook
from core.services.interfaces import PairReady
from core.services.slideshow import SlideshowStateMachine


class BoothCoordinator:
    """Single entry point for camera, stylization and operator events.

    Persists capture results through the store, advances the capture session
    and keeps the slideshow out of the way of a running capture.
    """

    def __init__(
        self,
        store: Any,
        capture: CaptureStateMachine,
        slideshow: SlideshowStateMachine,
    ) -> None:
        self._store = store
        self._capture = capture
        self._slideshow = slideshow
        self.pair_ready = EventHook("booth.pair_ready")
        capture.on_theme_selected(self._on_theme_selected)

    @property
    def capture(self) -> CaptureStateMachine:
        return self._capture

    @property
    def slideshow(self) -> SlideshowStateMachine:
        return self._slideshow

    def on_pair_ready(self, callback: Callable[[PairReady], None]) -> Callable[[], None]:
        """Observe pairs whose two halves are both persisted."""
        return self.pair_ready.subscribe(callback)

    # Operator events
    def select_theme(self, theme_id: int) -> bool:
        """Forward a theme selection; an accepted selection stops the slideshow."""
        return self._capture.select_theme(theme_id)

    def request_capture(self) -> bool:
        """Stop the slideshow and start a countdown."""
        self._slideshow.stop()
        return self._capture.start_countdown()

    # Collaborator events
    def handle_capture_completed(self, data: bytes, timestamp: float | str) -> Path | None:
        """Persist the captured frame and move the session into processing."""
        try:
            path = self._store.save_original(data, timestamp)
        except OSError as ex:
            self._capture.fail(CameraFailure(f"Could not save captured photo: {ex}"))
            return None
        self._capture.begin_processing(timestamp_key=path.stem.split("_", 1)[1])
        return path

    def handle_stylization_completed(self, data: bytes, timestamp: float | str) -> PairReady | None:
        """Persist the themed image; announce the pair once both halves exist."""
        try:
            themed_path = self._store.save_themed(data, timestamp)
        except OSError as ex:
            self._capture.fail(StylizationFailure(f"Could not save themed photo: {ex}"))
            return None

        ready = None
        original_path = self._store.path_for(FileKind.ORIGINAL, timestamp)
        if original_path.is_file():
            ready = PairReady(
                timestamp_key=themed_path.stem.split("_", 1)[1],
                original_path=str(original_path),
                themed_path=str(themed_path),
            )
            logger.info("Pair ready: {}", ready.timestamp_key)
            self.pair_ready.emit(ready)
            self._slideshow.request_rescan()
        else:
            logger.warning("Themed image saved without its original: {}", themed_path)
        self._capture.complete_processing()
        return ready

    def handle_stylization_failed(self, error: BaseException | str) -> bool:
        """Fail the running session with a categorized error."""
        if not isinstance(error, BaseException):
            error = StylizationFailure(str(error))
        return self._capture.fail(error)

    def _on_theme_selected(self, theme_id: int) -> None:
        if self._slideshow.is_active or self._slideshow.is_loading:
            logger.info("Stopping slideshow for theme {}", theme_id)
        self._slideshow.stop()
