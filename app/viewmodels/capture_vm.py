"""Qt-facing view model for the capture flow on the operator display."""

from __future__ import annotations

from typing import Any

from PySide6.QtCore import QObject, Signal

from core.services.booth_coordinator import BoothCoordinator
from core.services.capture_session import CaptureSession, CaptureState
from core.services.interfaces import PairReady


class CaptureVM(QObject):
    """Signals for countdown, reveal hold, errors and finished pairs."""

    sessionChanged = Signal(object)
    stateChanged = Signal(str)
    countdownChanged = Signal(int)
    minimumDisplayChanged = Signal(int)
    errorRaised = Signal(str, str)
    recoveryAvailable = Signal()
    captureTriggered = Signal(object)
    pairReady = Signal(object)

    def __init__(
        self,
        coordinator: BoothCoordinator,
        settings: Any | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._coordinator = coordinator
        self._settings = settings
        self._last: CaptureSession | None = None
        capture = coordinator.capture
        self._subscriptions = [
            capture.subscribe(self._on_session),
            capture.on_capture_trigger(self.captureTriggered.emit),
            coordinator.on_pair_ready(self._on_pair_ready),
        ]

    @property
    def status_text(self) -> str:
        return self._coordinator.capture.session.status_text

    def select_theme(self, theme_id: int) -> bool:
        return self._coordinator.select_theme(theme_id)

    def take_photo(self) -> bool:
        return self._coordinator.request_capture()

    def set_countdown_seconds(self, seconds: int) -> int:
        applied = self._coordinator.capture.update_countdown_seconds(seconds)
        if self._settings is not None:
            self._settings.save_countdown_seconds(applied)
        return applied

    def set_minimum_display_seconds(self, seconds: float) -> int:
        applied = self._coordinator.capture.update_minimum_display_duration(seconds)
        if self._settings is not None:
            self._settings.save_minimum_display_seconds(applied)
        return applied

    def dispose(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

    def _on_session(self, session: CaptureSession) -> None:
        last, self._last = self._last, session
        self.sessionChanged.emit(session)
        if last is None or last.state is not session.state:
            self.stateChanged.emit(session.state.value)
            if session.state is CaptureState.ERROR and session.error is not None:
                self.errorRaised.emit(session.error.category, session.error.message)
        if session.state is CaptureState.COUNTING_DOWN:
            self.countdownChanged.emit(session.countdown_remaining)
        elif session.state is CaptureState.MINIMUM_DISPLAY:
            self.minimumDisplayChanged.emit(session.minimum_display_remaining)
        if session.recovery_available and not (last is not None and last.recovery_available):
            self.recoveryAvailable.emit()

    def _on_pair_ready(self, ready: PairReady) -> None:
        self.pairReady.emit(ready)
