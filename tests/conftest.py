from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import replace
import heapq
import itertools
import os
from pathlib import Path
from typing import Any

from PIL import Image
import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from core.models import PhotoPair  # noqa: E402
from core.services.interfaces import IScheduler, ITaskRunner, ITimerHandle  # noqa: E402

NOW = 1_700_000_000.0
DAY = 24 * 60 * 60


class _ManualHandle(ITimerHandle):
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(IScheduler):
    """Deterministic scheduler driven by `advance(seconds)`."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, _ManualHandle, Callable[[], None]]] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ITimerHandle:
        handle = _ManualHandle()
        heapq.heappush(self._queue, (self.now + delay, next(self._seq), handle, callback))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h, _ in self._queue if not h.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target + 1e-9:
            due, _, handle, callback = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            if not handle.cancelled:
                callback()
        self.now = target


class InlineTaskRunner(ITaskRunner):
    """Runs work synchronously on the calling thread."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        self.submitted += 1
        future: Future = Future()
        future.set_running_or_notify_cancel()
        try:
            future.set_result(fn(*args))
        except Exception as ex:  # pylint: disable=broad-exception-caught
            future.set_exception(ex)
        return future

    def run_async(self, fn, on_done, on_error=None) -> None:
        try:
            result = fn()
        except Exception as ex:  # pylint: disable=broad-exception-caught
            if on_error is None:
                raise
            on_error(ex)
            return
        on_done(result)


class DeferredTaskRunner(InlineTaskRunner):
    """Queues `run_async` work until `flush()` is called."""

    def __init__(self) -> None:
        super().__init__()
        self.queued: list[tuple[Callable, Callable, Callable | None]] = []

    def run_async(self, fn, on_done, on_error=None) -> None:
        self.queued.append((fn, on_done, on_error))

    def flush(self) -> None:
        queued, self.queued = self.queued, []
        for fn, on_done, on_error in queued:
            super().run_async(fn, on_done, on_error)


def write_file(path: Path, size: int = 2048) -> Path:
    path.write_bytes(b"\xff" * size)
    return path


def write_pair(
    directory: Path, key: str, original_size: int = 2048, themed_size: int = 3072
) -> tuple[Path, Path]:
    original = write_file(directory / f"original_{key}.jpg", original_size)
    themed = write_file(directory / f"themed_{key}.jpg", themed_size)
    return original, themed


def write_jpeg(path: Path, size: tuple[int, int] = (64, 48), color: str = "red") -> Path:
    Image.new("RGB", size, color).save(path, "JPEG")
    return path


def fake_loader(pair: PhotoPair) -> PhotoPair:
    """Stands in for `ImageService.load_pair` without touching the disk."""
    return replace(
        pair, decoded_original=f"img:{pair.original_path}", decoded_themed=f"img:{pair.themed_path}"
    )


def make_pairs(count: int, start: float = NOW) -> list[PhotoPair]:
    """Newest-first pairs with keys `start`, `start - 1`, ..."""
    pairs = []
    for i in range(count):
        key = repr(start - i)
        pairs.append(
            PhotoPair(
                id=start - i,
                timestamp_key=key,
                original_path=f"/store/original_{key}.jpg",
                themed_path=f"/store/themed_{key}.jpg",
            )
        )
    return pairs


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def runner() -> InlineTaskRunner:
    return InlineTaskRunner()


@pytest.fixture()
def store_dir(tmp_path: Path) -> Path:
    d = tmp_path / "booth"
    d.mkdir()
    return d
