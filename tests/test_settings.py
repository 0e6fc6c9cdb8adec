from __future__ import annotations

from datetime import datetime
import json
from pathlib import Path

import pytest

from core.models import RetentionPolicy
from infrastructure.settings import BoothSettings, JsonSettings

PROJECT_SETTINGS = Path(__file__).resolve().parent.parent / "settings.json"


@pytest.fixture()
def settings_file(tmp_path: Path) -> Path:
    path = tmp_path / "settings.json"
    path.write_text(PROJECT_SETTINGS.read_text(encoding="utf-8"), encoding="utf-8")
    return path


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        JsonSettings(tmp_path / "nope.json")


def test_dotted_get_and_set_round_trip(settings_file: Path) -> None:
    settings = JsonSettings(settings_file)
    assert settings.get("slideshow.display_duration") == 5.0
    assert settings.get("slideshow.missing", "fallback") == "fallback"

    settings.set("ui.theme.accent", "teal")
    settings.save()

    reloaded = JsonSettings(settings_file)
    assert reloaded.get("ui.theme.accent") == "teal"
    assert not settings_file.with_name("settings.json.tmp").exists()


def test_booth_defaults(settings_file: Path) -> None:
    booth = BoothSettings(JsonSettings(settings_file))

    assert booth.store_directory is None
    assert booth.min_file_bytes == 1024
    assert booth.countdown_seconds == 3
    assert booth.minimum_display_seconds == 10
    assert booth.prefetch_window == 5
    policy = booth.retention_policy()
    assert policy == RetentionPolicy(max_age_days=7, max_pair_count=500)


def test_retention_policy_persists(settings_file: Path) -> None:
    booth = BoothSettings(JsonSettings(settings_file))
    stamp = datetime(2024, 5, 1, 12, 30)

    booth.save_retention_policy(
        RetentionPolicy(
            max_age_days=3,
            max_pair_count=None,
            automatic_cleanup_enabled=True,
            last_cleanup_at=stamp,
        )
    )

    reloaded = BoothSettings(JsonSettings(settings_file)).retention_policy()
    assert reloaded.max_age_days == 3
    assert reloaded.max_pair_count is None
    assert reloaded.automatic_cleanup_enabled
    assert reloaded.last_cleanup_at == stamp


def test_malformed_values_fall_back(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "capture": {"countdown_seconds": "soon"},
                "retention": {"last_cleanup_at": "yesterday", "max_pair_count": -4},
            }
        ),
        encoding="utf-8",
    )
    booth = BoothSettings(JsonSettings(path))

    assert booth.countdown_seconds == 3
    policy = booth.retention_policy()
    assert policy.last_cleanup_at is None
    assert policy.max_pair_count == 0


def test_scalar_setters_persist(settings_file: Path) -> None:
    booth = BoothSettings(JsonSettings(settings_file))
    booth.save_display_duration(8)
    booth.save_minimum_display_seconds(20)
    booth.save_countdown_seconds(5)

    reloaded = BoothSettings(JsonSettings(settings_file))
    assert reloaded.display_duration == 8.0
    assert reloaded.minimum_display_seconds == 20
    assert reloaded.countdown_seconds == 5
