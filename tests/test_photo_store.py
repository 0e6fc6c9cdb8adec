from __future__ import annotations

import os
from pathlib import Path

import pytest

from conftest import write_file
from core.errors import DirectoryPermissionDenied, DirectoryReadFailed
from core.models import FileKind
from infrastructure import photo_store as photo_store_module
from infrastructure.photo_store import (
    PhotoStore,
    format_timestamp,
    list_store_files,
    parse_store_filename,
)


def test_format_timestamp_keeps_strings_verbatim() -> None:
    assert format_timestamp("1700000000.50") == "1700000000.50"
    assert format_timestamp(1700000000.5) == "1700000000.5"


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("original_100.jpg", (FileKind.ORIGINAL, "100")),
        ("themed_1700000000.5.jpg", (FileKind.THEMED, "1700000000.5")),
        ("original_.jpg", None),
        ("original_100.png", None),
        ("notes.txt", None),
        (".original_100.jpg.partial", None),
    ],
)
def test_parse_store_filename(name: str, expected) -> None:
    assert parse_store_filename(name) == expected


def test_save_pair_uses_naming_convention(store_dir: Path) -> None:
    store = PhotoStore(store_dir)
    original = store.save_original(b"a" * 2000, 1700000000.25)
    themed = store.save_themed(b"b" * 3000, 1700000000.25)

    assert original.name == "original_1700000000.25.jpg"
    assert themed.name == "themed_1700000000.25.jpg"
    assert original.read_bytes() == b"a" * 2000
    assert store.exists(FileKind.THEMED, "1700000000.25")
    # No temporary file is left behind
    assert sorted(p.name for p in store_dir.iterdir()) == [original.name, themed.name]


def test_save_creates_missing_directory(tmp_path: Path) -> None:
    store = PhotoStore(tmp_path / "nested" / "booth")
    path = store.save_original(b"x" * 1500, "42")
    assert path.is_file()


def test_list_store_files_creates_missing_directory(tmp_path: Path) -> None:
    target = tmp_path / "missing"
    assert list_store_files(target) == []
    assert target.is_dir()


def test_list_store_files_skips_foreign_names_and_directories(store_dir: Path) -> None:
    write_file(store_dir / "original_1.jpg", 2000)
    write_file(store_dir / "readme.txt", 2000)
    (store_dir / "themed_2.jpg").mkdir()

    files = list_store_files(store_dir)

    assert [(f.file_name, f.kind, f.timestamp_key, f.size_bytes) for f in files] == [
        ("original_1.jpg", FileKind.ORIGINAL, "1", 2000)
    ]


def test_list_store_files_permission_denied(store_dir: Path, monkeypatch) -> None:
    monkeypatch.setattr(photo_store_module.os, "access", lambda *_: False)
    with pytest.raises(DirectoryPermissionDenied):
        list_store_files(store_dir)


def test_list_store_files_read_failure(store_dir: Path, monkeypatch) -> None:
    def broken_scandir(_path):
        raise OSError(5, "Input/output error")

    monkeypatch.setattr(photo_store_module.os, "scandir", broken_scandir)

    with pytest.raises(DirectoryReadFailed) as info:
        list_store_files(store_dir)
    assert info.value.path == str(store_dir)


class _VanishingEntry:
    def __init__(self, entry: os.DirEntry, vanished: bool) -> None:
        self.name = entry.name
        self.path = entry.path
        self._entry = entry
        self._vanished = vanished

    def is_file(self) -> bool:
        return self._entry.is_file()

    def stat(self):
        if self._vanished:
            raise FileNotFoundError(self.path)
        return self._entry.stat()


class _Listing:
    def __init__(self, entries: list) -> None:
        self._entries = entries

    def __enter__(self):
        return iter(self._entries)

    def __exit__(self, *exc) -> None:
        return None


def test_file_removed_during_listing_is_skipped(store_dir: Path, monkeypatch) -> None:
    write_file(store_dir / "original_1.jpg", 2000)
    write_file(store_dir / "themed_1.jpg", 2000)
    write_file(store_dir / "original_2.jpg", 2000)
    real_scandir = os.scandir

    def scandir_with_vanishing_file(path):
        with real_scandir(path) as it:
            entries = [_VanishingEntry(e, e.name == "themed_1.jpg") for e in it]
        return _Listing(entries)

    monkeypatch.setattr(photo_store_module.os, "scandir", scandir_with_vanishing_file)

    files = list_store_files(store_dir)

    assert sorted(f.file_name for f in files) == ["original_1.jpg", "original_2.jpg"]


def test_delete_file_returns_size(store_dir: Path) -> None:
    path = write_file(store_dir / "original_1.jpg", 1234)
    store = PhotoStore(store_dir)

    assert store.delete_file(path) == 1234
    assert not path.exists()
    with pytest.raises(FileNotFoundError):
        store.delete_file(path)


def test_delete_file_uses_recycle_bin_when_enabled(store_dir: Path, monkeypatch) -> None:
    path = write_file(store_dir / "themed_1.jpg", 1500)
    trashed: list[str] = []

    def fake_send2trash(p: str) -> None:
        trashed.append(p)
        os.remove(p)

    monkeypatch.setattr(photo_store_module, "send2trash", fake_send2trash)
    store = PhotoStore(store_dir, use_recycle_bin=True)

    assert store.delete_file(path) == 1500
    assert trashed == [str(path)]
