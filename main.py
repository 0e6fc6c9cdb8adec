from __future__ import annotations

import sys
from pathlib import Path

from PySide6.QtGui import QGuiApplication
from loguru import logger

from app.qt_runtime import QtScheduler, QtTaskRunner
from app.viewmodels.cache_vm import CacheVM
from app.viewmodels.capture_vm import CaptureVM
from app.viewmodels.slideshow_vm import SlideshowVM
from core.errors import PhotoStoreError
from core.services.booth_coordinator import BoothCoordinator
from core.services.cache_maintenance import CacheMaintenance
from core.services.capture_session import CaptureStateMachine
from core.services.prefetch_cache import PrefetchCache
from core.services.slideshow import SlideshowStateMachine
from infrastructure.image_service import ImageService
from infrastructure.logging import get_cleanup_log_directory, init_logging
from infrastructure.pair_discovery import PairDiscoveryService
from infrastructure.photo_store import PhotoStore
from infrastructure.retention_service import RetentionService
from infrastructure.settings import BoothSettings, JsonSettings


BASE_DIR = Path(__file__).parent


def main() -> int:
    settings = JsonSettings(BASE_DIR / "settings.json")
    booth = BoothSettings(settings)
    init_logging(booth.log_directory, booth.log_level)

    app = QGuiApplication(sys.argv)

    store = PhotoStore(booth.store_directory, use_recycle_bin=booth.use_recycle_bin)
    try:
        store.ensure_directory()
    except PhotoStoreError as ex:
        logger.error("Photo store unavailable: {}", ex)
        return 1
    logger.info("Photo store: {}", store.directory)

    discovery = PairDiscoveryService(min_file_bytes=booth.min_file_bytes)
    retention = RetentionService(store, discovery, audit_log_dir=get_cleanup_log_directory())
    images = ImageService(settings)

    scheduler = QtScheduler()
    runner = QtTaskRunner()

    cache = PrefetchCache(runner, images.load_pair, window_size=booth.prefetch_window)
    slideshow = SlideshowStateMachine(
        discovery,
        store.directory,
        scheduler,
        runner,
        cache,
        display_duration=booth.display_duration,
        rescan_interval=booth.rescan_interval,
    )
    capture = CaptureStateMachine(
        scheduler,
        countdown_seconds=booth.countdown_seconds,
        minimum_display_seconds=booth.minimum_display_seconds,
        error_recovery_seconds=booth.error_recovery_seconds,
        capture_timeout_seconds=booth.capture_timeout_seconds,
        processing_timeout_seconds=booth.processing_timeout_seconds,
    )
    coordinator = BoothCoordinator(store, capture, slideshow)
    maintenance = CacheMaintenance(
        retention,
        booth.retention_policy(),
        scheduler,
        runner,
        persist=booth.save_retention_policy,
    )

    slideshow_vm = SlideshowVM(slideshow, images, settings=booth)
    capture_vm = CaptureVM(coordinator, settings=booth)
    cache_vm = CacheVM(maintenance)
    slideshow_vm.progressChanged.connect(lambda text: logger.debug("Slideshow: {}", text))
    slideshow_vm.messageChanged.connect(lambda text: text and logger.info("Slideshow: {}", text))
    capture_vm.stateChanged.connect(lambda state: logger.debug("Capture state: {}", state))
    cache_vm.summaryChanged.connect(lambda text: logger.info("Cache: {}", text))

    def _shutdown() -> None:
        maintenance.stop()
        slideshow.stop()
        capture.reset()
        runner.wait_for_done(5000)
        logger.info("Shutdown complete")

    app.aboutToQuit.connect(_shutdown)

    maintenance.start()
    maintenance.refresh_statistics()
    slideshow.start()

    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
