from __future__ import annotations

from pathlib import Path

from PySide6.QtGui import QImage

from app.viewmodels.cache_vm import CacheVM, format_statistics
from app.viewmodels.capture_vm import CaptureVM
from app.viewmodels.slideshow_vm import SlideshowVM
from conftest import DAY, NOW, InlineTaskRunner, ManualScheduler, write_jpeg, write_pair
from core.models import CacheStatistics, RetentionPolicy
from core.services.booth_coordinator import BoothCoordinator
from core.services.cache_maintenance import CacheMaintenance
from core.services.capture_session import CaptureStateMachine
from core.services.prefetch_cache import PrefetchCache
from core.services.slideshow import SlideshowStateMachine
from infrastructure.image_service import ImageService
from infrastructure.pair_discovery import PairDiscoveryService
from infrastructure.photo_store import PhotoStore
from infrastructure.retention_service import RetentionService
from infrastructure.settings import BoothSettings, JsonSettings

PROJECT_SETTINGS = Path(__file__).resolve().parent.parent / "settings.json"


def _slideshow(store_dir: Path, scheduler, runner, images: ImageService):
    return SlideshowStateMachine(
        PairDiscoveryService(),
        store_dir,
        scheduler,
        runner,
        PrefetchCache(runner, images.load_pair),
    )


def test_slideshow_vm_emits_images_and_progress(
    qtbot, store_dir: Path, scheduler: ManualScheduler, runner: InlineTaskRunner
) -> None:
    write_jpeg(store_dir / "original_100.jpg", size=(80, 60), color="red")
    write_jpeg(store_dir / "themed_100.jpg", size=(80, 60), color="blue")
    images = ImageService()
    show = _slideshow(store_dir, scheduler, runner, images)
    vm = SlideshowVM(show, images)
    frames: list[QImage | None] = []
    progress: list[str] = []
    vm.imageChanged.connect(frames.append)
    vm.progressChanged.connect(progress.append)

    vm.start()
    scheduler.advance(5)

    assert len(frames) == 2
    assert all(isinstance(f, QImage) and f.width() == 80 for f in frames)
    assert progress[-1] == "Themed 1 of 1"

    vm.stop()
    assert frames[-1] is None


def test_slideshow_vm_reports_empty_store(
    qtbot, store_dir: Path, scheduler: ManualScheduler, runner: InlineTaskRunner
) -> None:
    images = ImageService()
    vm = SlideshowVM(_slideshow(store_dir, scheduler, runner, images), images)
    messages: list[str] = []
    vm.messageChanged.connect(messages.append)

    vm.start()

    assert "No valid photo pairs" in messages[-1]


def test_capture_vm_signals(
    qtbot, store_dir: Path, scheduler: ManualScheduler, runner: InlineTaskRunner
) -> None:
    store = PhotoStore(store_dir)
    capture = CaptureStateMachine(scheduler)
    images = ImageService()
    coordinator = BoothCoordinator(
        store, capture, _slideshow(store_dir, scheduler, runner, images)
    )
    vm = CaptureVM(coordinator)
    states: list[str] = []
    counts: list[int] = []
    errors: list[tuple[str, str]] = []
    recovered: list[bool] = []
    triggered = []
    vm.stateChanged.connect(states.append)
    vm.countdownChanged.connect(counts.append)
    vm.errorRaised.connect(lambda cat, msg: errors.append((cat, msg)))
    vm.recoveryAvailable.connect(lambda: recovered.append(True))
    vm.captureTriggered.connect(triggered.append)

    assert vm.take_photo()
    scheduler.advance(3)
    coordinator.handle_capture_completed(b"\xff" * 2048, "100")
    coordinator.handle_stylization_failed(RuntimeError("network down"))
    scheduler.advance(5)

    assert counts == [3, 2, 1]
    assert len(triggered) == 1
    assert states == ["counting_down", "captured", "processing", "error", "idle"]
    assert errors and errors[0][0] == "network"
    assert recovered == [True]


def test_capture_vm_announces_pairs(
    qtbot, store_dir: Path, scheduler: ManualScheduler, runner: InlineTaskRunner
) -> None:
    capture = CaptureStateMachine(scheduler)
    images = ImageService()
    coordinator = BoothCoordinator(
        PhotoStore(store_dir), capture, _slideshow(store_dir, scheduler, runner, images)
    )
    vm = CaptureVM(coordinator)
    vm.take_photo()
    scheduler.advance(3)
    coordinator.handle_capture_completed(b"\xff" * 2048, "100")

    with qtbot.waitSignal(vm.pairReady, timeout=1000) as blocker:
        coordinator.handle_stylization_completed(b"\xff" * 2048, "100")

    assert blocker.args[0].timestamp_key == "100"


def test_cache_vm_summaries(
    qtbot, store_dir: Path, scheduler: ManualScheduler, runner: InlineTaskRunner
) -> None:
    write_pair(store_dir, repr(NOW - 10 * DAY))
    retention = RetentionService(PhotoStore(store_dir), clock=lambda: NOW)
    maintenance = CacheMaintenance(
        retention, RetentionPolicy(), scheduler, runner, clock=lambda: NOW
    )
    vm = CacheVM(maintenance)
    summaries: list[str] = []
    busy: list[bool] = []
    vm.summaryChanged.connect(summaries.append)
    vm.busyChanged.connect(busy.append)

    vm.refresh()
    assert summaries[-1].endswith("(cleanup recommended)")

    with qtbot.waitSignal(vm.cleanupFinished, timeout=1000) as blocker:
        assert vm.cleanup_now()

    assert blocker.args[0].pairs_removed == 1
    assert busy == [True, False]
    assert summaries[-1] == "0 pairs, 0 files, 0 bytes"


def test_format_statistics() -> None:
    stats = CacheStatistics(
        total_files=4, total_size_bytes=4096, oldest_age_days=3, needs_cleanup=False, pair_count=2
    )
    assert format_statistics(stats) == "2 pairs, 4 files, 4.0 KB, oldest 3 days"


def test_capture_vm_persists_capture_timings(
    qtbot, tmp_path: Path, store_dir: Path, scheduler: ManualScheduler, runner: InlineTaskRunner
) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(PROJECT_SETTINGS.read_text(encoding="utf-8"), encoding="utf-8")
    images = ImageService()
    coordinator = BoothCoordinator(
        PhotoStore(store_dir),
        CaptureStateMachine(scheduler),
        _slideshow(store_dir, scheduler, runner, images),
    )
    vm = CaptureVM(coordinator, BoothSettings(JsonSettings(settings_path)))
    counts: list[int] = []
    vm.countdownChanged.connect(counts.append)

    assert vm.set_countdown_seconds(5) == 5
    assert vm.set_minimum_display_seconds(99) == 30
    vm.take_photo()
    scheduler.advance(5)

    assert counts == [5, 4, 3, 2, 1]
    reloaded = BoothSettings(JsonSettings(settings_path))
    assert reloaded.countdown_seconds == 5
    assert reloaded.minimum_display_seconds == 30
