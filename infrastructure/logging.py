"""Logging initialization utilities using loguru."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

APP_DIR_NAME = "PhotoBooth"


def _app_data_directory() -> Path:
    return Path.home() / "AppData" / "Local" / APP_DIR_NAME


def init_logging(log_dir: str | None = None, level: str = "INFO") -> Path:
    """Initialize rotating file logging under the given directory."""
    log_path = Path(log_dir) if log_dir else Path(get_log_directory())
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        str(log_path / "app_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        level=level,
    )
    logger.info("Logging initialized in {} at level {}", log_path, level)
    return log_path


def get_log_directory() -> str:
    """Get the main log directory path."""
    return str(_app_data_directory() / "logs")


def get_cleanup_log_directory() -> str:
    """Get the directory holding cleanup audit CSVs."""
    return str(_app_data_directory() / "cleanup_logs")


def _latest(directory: str, pattern: str) -> Path | None:
    try:
        base = Path(directory)
        if not base.exists():
            return None
        files = list(base.glob(pattern))
        if not files:
            return None
        # Return the most recently modified file
        return max(files, key=lambda p: p.stat().st_mtime)
    except (OSError, ValueError):
        return None


def find_latest_log_file(log_dir: str | None = None) -> Path | None:
    """Find the latest log file in the specified directory."""
    return _latest(log_dir or get_log_directory(), "app_*.log")


def find_latest_cleanup_log_file(log_dir: str | None = None) -> Path | None:
    """Find the latest cleanup audit CSV."""
    return _latest(log_dir or get_cleanup_log_directory(), "cleanup_*.csv")
