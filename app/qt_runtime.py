"""Qt implementations of the scheduling ports.

`QtScheduler` runs callbacks on the thread owning it via single-shot
`QTimer`s. `QtTaskRunner` dispatches blocking work to a `QThreadPool` and
posts results back through a queued signal, so completion callbacks run on the
main thread where the state machines live.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

from PySide6.QtCore import QObject, QRunnable, Qt, QThreadPool, QTimer, Signal, Slot
from loguru import logger

from core.services.interfaces import IScheduler, ITaskRunner, ITimerHandle


class _QtTimerHandle(ITimerHandle):
    def __init__(self, owner: QtScheduler, timer: QTimer) -> None:
        self._owner = owner
        self._timer = timer

    def cancel(self) -> None:
        self._owner.release(self._timer)


class QtScheduler(QObject, IScheduler):
    """Single-shot timers on the Qt event loop."""

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._timers: set[QTimer] = set()

    @property
    def pending_count(self) -> int:
        return len(self._timers)

    def call_later(self, delay: float, callback: Callable[[], None]) -> ITimerHandle:
        timer = QTimer(self)
        timer.setSingleShot(True)

        def _fire() -> None:
            self.release(timer)
            callback()

        timer.timeout.connect(_fire)
        self._timers.add(timer)
        timer.start(max(0, int(round(float(delay) * 1000))))
        return _QtTimerHandle(self, timer)

    def release(self, timer: QTimer) -> None:
        """Stop and dispose of `timer` if it is still pending."""
        if timer in self._timers:
            self._timers.discard(timer)
            timer.stop()
            timer.deleteLater()


class _Task(QRunnable):
    """QRunnable resolving a `Future` with the result of `fn(*args)`."""

    def __init__(self, future: Future, fn: Callable[..., Any], args: tuple) -> None:
        super().__init__()
        self._future = future
        self._fn = fn
        self._args = args

    def run(self) -> None:  # type: ignore[override]
        if not self._future.set_running_or_notify_cancel():
            return
        try:
            result = self._fn(*self._args)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            self._future.set_exception(ex)
        else:
            self._future.set_result(result)


class _Delivery(QObject):
    """Lives on the main thread; receives completed futures from workers."""

    completed = Signal(object, object, object)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        # Queued: callbacks never run inside run_async, even for finished futures
        self.completed.connect(self._deliver, Qt.QueuedConnection)

    @Slot(object, object, object)
    def _deliver(self, future: Future, on_done: Any, on_error: Any) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is None:
            on_done(future.result())
        elif on_error is not None:
            on_error(error)
        else:
            logger.error("Background task failed: {}", error)


class QtTaskRunner(QObject, ITaskRunner):
    """Runs blocking work on a `QThreadPool`."""

    def __init__(self, pool: QThreadPool | None = None, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._pool = pool or QThreadPool.globalInstance()
        self._delivery = _Delivery(self)

    @property
    def pool(self) -> QThreadPool:
        return self._pool

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        future: Future = Future()
        self._pool.start(_Task(future, fn, args))
        return future

    def run_async(
        self,
        fn: Callable[[], Any],
        on_done: Callable[[Any], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        future = self.submit(fn)
        future.add_done_callback(
            lambda f: self._delivery.completed.emit(f, on_done, on_error)
        )

    def wait_for_done(self, msecs: int = -1) -> bool:
        """Block until every queued task has finished."""
        return self._pool.waitForDone(msecs)
