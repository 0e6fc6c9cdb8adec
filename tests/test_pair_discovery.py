from __future__ import annotations

from pathlib import Path

from conftest import write_file, write_pair
from infrastructure.pair_discovery import PairDiscoveryService, parse_timestamp


def test_single_pair_is_discovered(store_dir: Path) -> None:
    write_file(store_dir / "original_100.jpg", 2048)
    write_file(store_dir / "themed_100.jpg", 3072)

    pairs = PairDiscoveryService().discover(store_dir)

    assert len(pairs) == 1
    assert pairs[0].id == 100.0
    assert pairs[0].timestamp_key == "100"
    assert pairs[0].original_size == 2048
    assert pairs[0].themed_size == 3072


def test_lone_original_is_an_orphan_not_a_pair(store_dir: Path) -> None:
    original = write_file(store_dir / "original_100.jpg", 2048)

    result = PairDiscoveryService().scan(store_dir)

    assert result.pairs == []
    assert [f.path for f in result.orphans] == [str(original)]
    assert original.exists()


def test_small_files_are_rejected(store_dir: Path) -> None:
    write_pair(store_dir, "200", original_size=2048, themed_size=512)

    result = PairDiscoveryService().scan(store_dir)

    assert result.pairs == []
    assert [f.file_name for f in result.rejected] == ["themed_200.jpg"]
    assert [f.file_name for f in result.orphans] == ["original_200.jpg"]


def test_size_threshold_is_inclusive(store_dir: Path) -> None:
    write_pair(store_dir, "300", original_size=1024, themed_size=1024)
    assert PairDiscoveryService().scan(store_dir).pair_count == 1


def test_timestamps_must_match_exactly(store_dir: Path) -> None:
    write_file(store_dir / "original_1700000000.5.jpg")
    write_file(store_dir / "themed_1700000000.50.jpg")

    result = PairDiscoveryService().scan(store_dir)

    assert result.pairs == []
    assert sorted(f.file_name for f in result.orphans) == [
        "original_1700000000.5.jpg",
        "themed_1700000000.50.jpg",
    ]


def test_unparsable_timestamps_become_orphans(store_dir: Path) -> None:
    write_pair(store_dir, "abc")
    write_pair(store_dir, "nan")

    result = PairDiscoveryService().scan(store_dir)

    assert result.pairs == []
    assert len(result.orphans) == 4


def test_pairs_are_newest_first_with_filename_tiebreak(store_dir: Path) -> None:
    for key in ("100", "300", "200.50", "200.5"):
        write_pair(store_dir, key)

    pairs = PairDiscoveryService().discover(store_dir)

    assert [p.timestamp_key for p in pairs] == ["300", "200.5", "200.50", "100"]


def test_scan_is_idempotent(store_dir: Path) -> None:
    write_pair(store_dir, "100")
    write_pair(store_dir, "101")
    write_file(store_dir / "themed_99.jpg")
    service = PairDiscoveryService()

    assert service.scan(store_dir) == service.scan(store_dir)


def test_parse_timestamp() -> None:
    assert parse_timestamp("1700000000.25") == 1700000000.25
    assert parse_timestamp("x") is None
    assert parse_timestamp("inf") is None
    assert parse_timestamp("1e20") is None
    assert parse_timestamp("-1e20") is None


def test_out_of_range_timestamp_is_not_a_pair(store_dir: Path) -> None:
    write_pair(store_dir, "100")
    write_pair(store_dir, "1e20")

    result = PairDiscoveryService().scan(store_dir)

    assert [p.timestamp_key for p in result.pairs] == ["100"]
    assert result.pairs[0].created_at.timestamp() == 100.0
    assert sorted(f.file_name for f in result.orphans) == ["original_1e20.jpg", "themed_1e20.jpg"]
