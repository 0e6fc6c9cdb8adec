"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

from datetime import datetime
import json
import os
from pathlib import Path
from typing import Any

from loguru import logger

from core.models import RetentionPolicy


class JsonSettings:
    """Lightweight JSON settings store with dotted-key access."""

    def __init__(self, settings_path: str | Path) -> None:
        self._path = Path(settings_path)
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            self._data = json.load(f)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Assign `value` to dotted `key`, creating intermediate sections."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    def save(self) -> None:
        """Write the settings back to disk atomically."""
        tmp = self._path.with_name(self._path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2)
            f.write("\n")
        os.replace(tmp, self._path)
        logger.debug("Settings saved: {}", self._path)


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class BoothSettings:
    """Typed view over the booth's persisted scalar settings."""

    def __init__(self, settings: JsonSettings) -> None:
        self._settings = settings

    @property
    def store_directory(self) -> str | None:
        value = self._settings.get("store.directory")
        return os.path.expanduser(os.path.expandvars(str(value))) if value else None

    @property
    def use_recycle_bin(self) -> bool:
        return bool(self._settings.get("store.use_recycle_bin", False))

    @property
    def min_file_bytes(self) -> int:
        return max(0, _as_int(self._settings.get("store.min_file_bytes", 1024), 1024))

    @property
    def display_duration(self) -> float:
        return _as_float(self._settings.get("slideshow.display_duration", 5.0), 5.0)

    @property
    def rescan_interval(self) -> float:
        return _as_float(self._settings.get("slideshow.rescan_interval", 10.0), 10.0)

    @property
    def prefetch_window(self) -> int:
        return max(0, _as_int(self._settings.get("slideshow.prefetch_window", 5), 5))

    @property
    def countdown_seconds(self) -> int:
        return max(1, _as_int(self._settings.get("capture.countdown_seconds", 3), 3))

    @property
    def minimum_display_seconds(self) -> int:
        return _as_int(self._settings.get("capture.minimum_display_seconds", 10), 10)

    @property
    def error_recovery_seconds(self) -> float:
        return _as_float(self._settings.get("capture.error_recovery_seconds", 5.0), 5.0)

    @property
    def capture_timeout_seconds(self) -> float:
        return _as_float(self._settings.get("capture.capture_timeout_seconds", 15.0), 15.0)

    @property
    def processing_timeout_seconds(self) -> float:
        return _as_float(self._settings.get("capture.processing_timeout_seconds", 120.0), 120.0)

    @property
    def log_directory(self) -> str | None:
        value = self._settings.get("logging.directory")
        return os.path.expanduser(os.path.expandvars(str(value))) if value else None

    @property
    def log_level(self) -> str:
        return str(self._settings.get("logging.level", "INFO")).upper()

    def retention_policy(self) -> RetentionPolicy:
        """Build a `RetentionPolicy` from the `retention` section."""
        raw_cap = self._settings.get("retention.max_pair_count", 500)
        cap = None if raw_cap is None else max(0, _as_int(raw_cap, 500))
        last = self._settings.get("retention.last_cleanup_at")
        last_at = None
        if last:
            try:
                last_at = datetime.fromisoformat(str(last))
            except ValueError:
                logger.warning("Ignoring malformed retention.last_cleanup_at: {}", last)
        return RetentionPolicy(
            max_age_days=max(0, _as_int(self._settings.get("retention.max_age_days", 7), 7)),
            max_pair_count=cap,
            automatic_cleanup_enabled=bool(
                self._settings.get("retention.automatic_cleanup_enabled", False)
            ),
            last_cleanup_at=last_at,
        )

    def save_retention_policy(self, policy: RetentionPolicy) -> None:
        """Persist the retention toggles and the last cleanup time."""
        self._settings.set("retention.max_age_days", int(policy.max_age_days))
        self._settings.set("retention.max_pair_count", policy.max_pair_count)
        self._settings.set(
            "retention.automatic_cleanup_enabled", bool(policy.automatic_cleanup_enabled)
        )
        self._settings.set(
            "retention.last_cleanup_at",
            policy.last_cleanup_at.isoformat() if policy.last_cleanup_at else None,
        )
        self._settings.save()

    def save_display_duration(self, seconds: float) -> None:
        self._settings.set("slideshow.display_duration", float(seconds))
        self._settings.save()

    def save_minimum_display_seconds(self, seconds: int) -> None:
        self._settings.set("capture.minimum_display_seconds", int(seconds))
        self._settings.save()

    def save_countdown_seconds(self, seconds: int) -> None:
        self._settings.set("capture.countdown_seconds", int(seconds))
        self._settings.save()
