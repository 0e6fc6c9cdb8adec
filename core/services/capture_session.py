"""Capture session state machine: countdown, capture, processing, reveal, hold.

One `CaptureStateMachine` instance owns the single active session and is
shared by every surface that renders it. All transitions run on the
scheduler's serialized context; each timer lives in its own `TimerSlot` so a
cancelled tick can never mutate a newer session.

After the minimum display hold the themed image stays on screen in
`READY_FOR_NEXT`. Selecting a theme is what returns the display to a live
view; there is no automatic return.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum

from loguru import logger

from core.error_messages import categorize_error, friendly_message
from core.errors import CaptureTimeout
from core.services.events import EventHook
from core.services.interfaces import IScheduler
from core.services.timers import TimerSlot

DEFAULT_COUNTDOWN_SECONDS = 3
DEFAULT_MINIMUM_DISPLAY_SECONDS = 10
MIN_MINIMUM_DISPLAY_SECONDS = 5
MAX_MINIMUM_DISPLAY_SECONDS = 30
DEFAULT_RECOVERY_PROMPT_SECONDS = 2.0
DEFAULT_ERROR_RECOVERY_SECONDS = 5.0
DEFAULT_REVEAL_SECONDS = 0.1
DEFAULT_CAPTURE_TIMEOUT_SECONDS = 15.0
DEFAULT_PROCESSING_TIMEOUT_SECONDS = 120.0


class CaptureState(str, Enum):
    """States of a capture session."""

    IDLE = "idle"
    COUNTING_DOWN = "counting_down"
    CAPTURED = "captured"
    PROCESSING = "processing"
    REVEALING = "revealing"
    MINIMUM_DISPLAY = "minimum_display"
    READY_FOR_NEXT = "ready_for_next"
    ERROR = "error"


ACTIVE_STATES = frozenset(
    {
        CaptureState.COUNTING_DOWN,
        CaptureState.CAPTURED,
        CaptureState.PROCESSING,
        CaptureState.REVEALING,
    }
)

_TRANSITIONS: dict[CaptureState, frozenset[CaptureState]] = {
    CaptureState.IDLE: frozenset({CaptureState.COUNTING_DOWN}),
    CaptureState.COUNTING_DOWN: frozenset({CaptureState.CAPTURED, CaptureState.ERROR}),
    CaptureState.CAPTURED: frozenset({CaptureState.PROCESSING, CaptureState.ERROR}),
    CaptureState.PROCESSING: frozenset({CaptureState.REVEALING, CaptureState.ERROR}),
    CaptureState.REVEALING: frozenset({CaptureState.MINIMUM_DISPLAY, CaptureState.ERROR}),
    CaptureState.MINIMUM_DISPLAY: frozenset({CaptureState.READY_FOR_NEXT}),
    CaptureState.READY_FOR_NEXT: frozenset(),
    CaptureState.ERROR: frozenset(),
}


def clamp_minimum_display(seconds: float) -> int:
    """Clamp a minimum display duration to the supported 5-30 s range."""
    return int(max(MIN_MINIMUM_DISPLAY_SECONDS, min(MAX_MINIMUM_DISPLAY_SECONDS, seconds)))


@dataclass(frozen=True)
class CaptureErrorInfo:
    """Error attached to a failed session.

    Attributes:
        category: Display category (network, camera, ai_service, timeout, generic).
        message: Friendly paraphrase shown to guests.
        detail: Full technical description, kept for logs and operators.
    """

    category: str
    message: str
    detail: str


@dataclass
class CaptureSession:
    """Transient state of one photo being taken."""

    session_id: int
    state: CaptureState = CaptureState.IDLE
    countdown_remaining: int = 0
    selected_theme_id: int | None = None
    minimum_display_remaining: int = 0
    armed_theme_id: int | None = None
    timestamp_key: str | None = None
    error: CaptureErrorInfo | None = None
    recovery_available: bool = False

    @property
    def is_active(self) -> bool:
        """True between the start of the countdown and the reveal."""
        return self.state in ACTIVE_STATES

    @property
    def is_ready_for_photo(self) -> bool:
        """True when a new countdown would be accepted."""
        return self.state in (CaptureState.IDLE, CaptureState.READY_FOR_NEXT)

    @property
    def status_text(self) -> str:
        """Short operator-facing description of the session."""
        if self.state is CaptureState.COUNTING_DOWN:
            return f"Countdown: {self.countdown_remaining}"
        if self.state is CaptureState.MINIMUM_DISPLAY:
            return f"Display period: {self.minimum_display_remaining}s remaining"
        if self.state is CaptureState.PROCESSING:
            return "AI is creating your themed image..."
        if self.state is CaptureState.ERROR:
            return "Error displayed"
        if self.is_ready_for_photo:
            return "Ready for photo"
        return self.state.value.replace("_", " ").capitalize()


class CaptureStateMachine:
    """Drives capture sessions through their timed states."""

    def __init__(
        self,
        scheduler: IScheduler,
        countdown_seconds: int = DEFAULT_COUNTDOWN_SECONDS,
        minimum_display_seconds: float = DEFAULT_MINIMUM_DISPLAY_SECONDS,
        recovery_prompt_seconds: float = DEFAULT_RECOVERY_PROMPT_SECONDS,
        error_recovery_seconds: float = DEFAULT_ERROR_RECOVERY_SECONDS,
        reveal_seconds: float = DEFAULT_REVEAL_SECONDS,
        capture_timeout_seconds: float = DEFAULT_CAPTURE_TIMEOUT_SECONDS,
        processing_timeout_seconds: float = DEFAULT_PROCESSING_TIMEOUT_SECONDS,
    ) -> None:
        self._countdown_seconds = max(1, int(countdown_seconds))
        self._minimum_display_seconds = clamp_minimum_display(minimum_display_seconds)
        self._recovery_prompt_seconds = float(recovery_prompt_seconds)
        self._error_recovery_seconds = max(
            float(error_recovery_seconds), self._recovery_prompt_seconds
        )
        self._reveal_seconds = float(reveal_seconds)
        self._capture_timeout = float(capture_timeout_seconds)
        self._processing_timeout = float(processing_timeout_seconds)

        self._countdown_timer = TimerSlot(scheduler, "countdown")
        self._hold_timer = TimerSlot(scheduler, "minimum-display")
        self._reveal_timer = TimerSlot(scheduler, "reveal")
        self._watchdog = TimerSlot(scheduler, "capture-watchdog")
        self._prompt_timer = TimerSlot(scheduler, "recovery-prompt")
        self._recovery_timer = TimerSlot(scheduler, "error-recovery")

        self._next_id = 1
        self._session = self._new_session()

        self.state_changed = EventHook("capture.state_changed")
        self.capture_triggered = EventHook("capture.capture_triggered")
        self.theme_selected = EventHook("capture.theme_selected")

    # Observation
    @property
    def session(self) -> CaptureSession:
        """Snapshot of the current session."""
        return replace(self._session)

    @property
    def state(self) -> CaptureState:
        """State of the current session."""
        return self._session.state

    @property
    def countdown_seconds(self) -> int:
        """Default countdown length."""
        return self._countdown_seconds

    @property
    def minimum_display_seconds(self) -> int:
        """Enforced display duration of a revealed image."""
        return self._minimum_display_seconds

    def on_capture_trigger(self, callback: Callable[[CaptureSession], None]) -> Callable[[], None]:
        """Observe the end of the countdown, when the camera should fire."""
        return self.capture_triggered.subscribe(callback)

    def on_theme_selected(self, callback: Callable[[int], None]) -> Callable[[], None]:
        """Observe accepted theme selections."""
        return self.theme_selected.subscribe(callback)

    def subscribe(self, callback: Callable[[CaptureSession], None]) -> Callable[[], None]:
        """Observe state changes; returns an unsubscribe function."""
        return self.state_changed.subscribe(callback)

    # Settings
    def update_countdown_seconds(self, seconds: int) -> int:
        """Change the default countdown length (at least 1 s)."""
        self._countdown_seconds = max(1, int(seconds))
        logger.info("Countdown length set to {}s", self._countdown_seconds)
        return self._countdown_seconds

    def update_minimum_display_duration(self, seconds: float) -> int:
        """Change the minimum display hold, clamped to 5-30 s."""
        self._minimum_display_seconds = clamp_minimum_display(seconds)
        logger.info("Minimum display duration set to {}s", self._minimum_display_seconds)
        return self._minimum_display_seconds

    # Operator inputs
    def select_theme(self, theme_id: int) -> bool:
        """Select the theme for the next photo.

        During the minimum display hold the theme only pre-arms the next
        session. Otherwise a fresh idle session with the theme begins, which
        returns the display to the live view.
        """
        state = self._session.state
        if state in ACTIVE_STATES:
            logger.warning("Theme {} ignored: session busy in {}", theme_id, state.value)
            return False

        logger.info("Theme selected: {}", theme_id)
        self.theme_selected.emit(theme_id)
        if state is CaptureState.MINIMUM_DISPLAY:
            self._session.armed_theme_id = theme_id
            self._notify()
            return True

        self._cancel_all()
        self._session = self._new_session(selected_theme_id=theme_id)
        self._notify()
        return True

    def start_countdown(self, seconds: int | None = None) -> bool:
        """Begin a countdown; returns False when the trigger is rejected."""
        state = self._session.state
        if state in ACTIVE_STATES:
            logger.warning("Countdown rejected: session already in {}", state.value)
            return False
        if state is CaptureState.MINIMUM_DISPLAY:
            logger.warning(
                "Countdown rejected: minimum display ({}s remaining)",
                self._session.minimum_display_remaining,
            )
            return False
        if state is CaptureState.ERROR:
            logger.warning("Countdown rejected: waiting for error recovery")
            return False
        if state is CaptureState.READY_FOR_NEXT:
            armed = self._session.armed_theme_id or self._session.selected_theme_id
            self._session = self._new_session(selected_theme_id=armed)

        count = self._countdown_seconds if seconds is None else max(0, int(seconds))
        logger.info("Starting countdown with duration: {}", count)
        self._session.countdown_remaining = count
        self._transition(CaptureState.COUNTING_DOWN)
        if count == 0:
            self._countdown_finished()
        else:
            self._countdown_timer.arm(1.0, self._tick_countdown)
        return True

    # Collaborator inputs
    def begin_processing(
        self, theme_id: int | None = None, timestamp_key: str | None = None
    ) -> bool:
        """Mark that the stylization collaborator has been invoked."""
        if self._session.state is not CaptureState.CAPTURED:
            logger.warning("begin_processing ignored in {}", self._session.state.value)
            return False
        if theme_id is not None:
            self._session.selected_theme_id = theme_id
        if timestamp_key is not None:
            self._session.timestamp_key = timestamp_key
        logger.info(
            "Processing session {} with theme {}",
            self._session.session_id,
            self._session.selected_theme_id,
        )
        self._transition(CaptureState.PROCESSING)
        self._watchdog.arm(
            self._processing_timeout,
            lambda: self.fail(CaptureTimeout("Stylization timeout: no result received")),
        )
        return True

    def complete_processing(self) -> bool:
        """Report a successful stylization; starts the reveal."""
        if self._session.state is not CaptureState.PROCESSING:
            logger.warning("complete_processing ignored in {}", self._session.state.value)
            return False
        self._watchdog.cancel()
        self._transition(CaptureState.REVEALING)
        self._reveal_timer.arm(self._reveal_seconds, self._enter_minimum_display)
        return True

    def fail(self, error: BaseException) -> bool:
        """Move the active session to ERROR and schedule the automatic recovery."""
        state = self._session.state
        if state not in ACTIVE_STATES:
            logger.warning("Error ignored in {}: {!r}", state.value, error)
            return False

        category = categorize_error(error)
        logger.error(
            "Capture session {} failed in {} ({}): {!r}",
            self._session.session_id,
            state.value,
            category,
            error,
        )
        self._cancel_all()
        self._session.error = CaptureErrorInfo(
            category=category, message=friendly_message(error), detail=repr(error)
        )
        self._transition(CaptureState.ERROR)
        self._prompt_timer.arm(self._recovery_prompt_seconds, self._show_recovery)
        self._recovery_timer.arm(self._error_recovery_seconds, self._recover)
        return True

    def reset(self) -> None:
        """Abandon the current session and return to IDLE."""
        self._cancel_all()
        theme = self._session.selected_theme_id
        self._session = self._new_session(selected_theme_id=theme)
        self._notify()

    # Timer callbacks
    def _tick_countdown(self) -> None:
        self._session.countdown_remaining = max(0, self._session.countdown_remaining - 1)
        logger.debug("Countdown: {}", self._session.countdown_remaining)
        if self._session.countdown_remaining <= 0:
            self._countdown_finished()
            return
        self._notify()
        self._countdown_timer.arm(1.0, self._tick_countdown)

    def _countdown_finished(self) -> None:
        logger.info("Countdown completed")
        self._session.countdown_remaining = 0
        self._transition(CaptureState.CAPTURED)
        self._watchdog.arm(
            self._capture_timeout,
            lambda: self.fail(CaptureTimeout("Camera capture timeout: no photo delivered")),
        )
        self.capture_triggered.emit(self.session)

    def _enter_minimum_display(self) -> None:
        self._session.minimum_display_remaining = self._minimum_display_seconds
        self._transition(CaptureState.MINIMUM_DISPLAY)
        logger.info("Starting minimum display period: {} seconds", self._minimum_display_seconds)
        self._hold_timer.arm(1.0, self._tick_minimum_display)

    def _tick_minimum_display(self) -> None:
        self._session.minimum_display_remaining = max(
            0, self._session.minimum_display_remaining - 1
        )
        if self._session.minimum_display_remaining > 0:
            self._notify()
            self._hold_timer.arm(1.0, self._tick_minimum_display)
            return
        logger.info("Minimum display period completed; photo stays until a theme is selected")
        self._transition(CaptureState.READY_FOR_NEXT)

    def _show_recovery(self) -> None:
        self._session.recovery_available = True
        self._notify()

    def _recover(self) -> None:
        logger.info("Recovering from capture error; returning to idle")
        theme = self._session.selected_theme_id
        self._prompt_timer.cancel()
        self._session = self._new_session(selected_theme_id=theme)
        self._notify()

    # Helpers
    def _new_session(self, selected_theme_id: int | None = None) -> CaptureSession:
        session = CaptureSession(session_id=self._next_id, selected_theme_id=selected_theme_id)
        self._next_id += 1
        return session

    def _transition(self, new_state: CaptureState) -> None:
        current = self._session.state
        if new_state not in _TRANSITIONS[current]:
            raise RuntimeError(f"Invalid capture transition {current.value} -> {new_state.value}")
        self._session.state = new_state
        logger.debug(
            "Capture session {}: {} -> {}", self._session.session_id, current.value, new_state.value
        )
        self._notify()

    def _notify(self) -> None:
        self.state_changed.emit(self.session)

    def _cancel_all(self) -> None:
        for slot in (
            self._countdown_timer,
            self._hold_timer,
            self._reveal_timer,
            self._watchdog,
            self._prompt_timer,
            self._recovery_timer,
        ):
            slot.cancel()
