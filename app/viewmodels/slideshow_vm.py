"""Qt-facing view model for the secondary-display slideshow."""

from __future__ import annotations

from typing import Any

from PySide6.QtCore import QObject, Signal

from core.services.slideshow import SlideshowSnapshot, SlideshowStateMachine


class SlideshowVM(QObject):
    """Re-publishes slideshow changes as Qt signals.

    `imageChanged` carries a `QImage` (or None while nothing can be shown).
    The image is converted only when the displayed image actually changes.
    """

    stateChanged = Signal(object)
    imageChanged = Signal(object)
    progressChanged = Signal(str)
    messageChanged = Signal(str)

    def __init__(
        self,
        slideshow: SlideshowStateMachine,
        image_service: Any,
        settings: Any | None = None,
        parent: QObject | None = None,
    ) -> None:
        """Create the view model.

        Args:
            slideshow: The shared slideshow instance.
            image_service: Object with `to_qimage(pil_image)`.
            settings: Optional `BoothSettings` used to persist the display duration.
        """
        super().__init__(parent)
        self._slideshow = slideshow
        self._images = image_service
        self._settings = settings
        self._shown: tuple[str, bool] | None = None
        self._unsubscribe = slideshow.subscribe(self._on_changed)

    @property
    def slideshow(self) -> SlideshowStateMachine:
        return self._slideshow

    @property
    def progress_text(self) -> str:
        return self._slideshow.progress_text

    def start(self) -> bool:
        return self._slideshow.start()

    def stop(self) -> None:
        self._slideshow.stop()

    def next_image(self) -> bool:
        return self._slideshow.advance()

    def set_display_duration(self, seconds: float) -> float:
        applied = self._slideshow.update_display_duration(seconds)
        if self._settings is not None:
            self._settings.save_display_duration(applied)
        return applied

    def dispose(self) -> None:
        self._unsubscribe()

    def _on_changed(self, snap: SlideshowSnapshot) -> None:
        self.stateChanged.emit(snap)
        self.progressChanged.emit(self._slideshow.progress_text)
        if not snap.is_active:
            self.messageChanged.emit(snap.message)
            if self._shown is not None:
                self._shown = None
                self.imageChanged.emit(None)
            return

        pair = snap.current_pair
        key = (pair.timestamp_key, snap.showing_original) if pair is not None else None
        if key == self._shown:
            return
        self._shown = key
        image = self._slideshow.current_image()
        self.imageChanged.emit(self._images.to_qimage(image) if image is not None else None)
