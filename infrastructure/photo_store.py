"""Flat-directory photo store holding `original_<ts>.jpg` / `themed_<ts>.jpg` files.

The directory is shared with external writers without locking. Listing
tolerates files that appear or disappear mid-scan, and writes go through a
temporary name followed by an atomic rename so a half-written JPEG never
matches the naming convention.
"""

from __future__ import annotations

from datetime import datetime
import os
from pathlib import Path
import time

from loguru import logger
from send2trash import send2trash

from core.errors import DirectoryPermissionDenied, DirectoryReadFailed
from core.models import ORIGINAL_PREFIX, PHOTO_SUFFIX, THEMED_PREFIX, FileKind, StoreFile

DEFAULT_STORE_SUBFOLDER = "booth"


def default_store_directory() -> Path:
    """Default photo library location: the user's pictures folder + `booth`."""
    return Path.home() / "Pictures" / DEFAULT_STORE_SUBFOLDER


def format_timestamp(timestamp: float | str) -> str:
    """Return the filename timestamp substring for `timestamp`.

    Strings are used verbatim so both halves of a pair share exactly the same
    key; floats are rendered as fractional seconds since the epoch.
    """
    if isinstance(timestamp, str):
        return timestamp
    return repr(float(timestamp))


def parse_store_filename(name: str) -> tuple[FileKind, str] | None:
    """Split a store filename into (kind, timestamp substring).

    Returns None for names outside the naming convention.
    """
    if not name.endswith(PHOTO_SUFFIX):
        return None
    if name.startswith(ORIGINAL_PREFIX):
        key = name[len(ORIGINAL_PREFIX) : -len(PHOTO_SUFFIX)]
        kind = FileKind.ORIGINAL
    elif name.startswith(THEMED_PREFIX):
        key = name[len(THEMED_PREFIX) : -len(PHOTO_SUFFIX)]
        kind = FileKind.THEMED
    else:
        return None
    if not key:
        return None
    return kind, key


def ensure_store_directory(directory: str | Path) -> bool:
    """Create `directory` if missing. Returns True when it was created."""
    path = Path(directory)
    if path.is_dir():
        return False
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as ex:
        raise DirectoryPermissionDenied(str(path)) from ex
    except OSError as ex:
        raise DirectoryReadFailed(str(path), str(ex)) from ex
    logger.info("Created photo store directory: {}", path)
    return True


def list_store_files(directory: str | Path) -> list[StoreFile]:
    """List convention-matching files in `directory`.

    A missing directory is created and yields an empty list. Permission
    problems raise `DirectoryPermissionDenied`; other listing failures raise
    `DirectoryReadFailed`. Entries that vanish between listing and stat are
    skipped.
    """
    path = Path(directory)
    if ensure_store_directory(path):
        return []
    if not os.access(path, os.R_OK | os.X_OK):
        raise DirectoryPermissionDenied(str(path))

    files: list[StoreFile] = []
    try:
        with os.scandir(path) as it:
            for entry in it:
                parsed = parse_store_filename(entry.name)
                if parsed is None:
                    continue
                kind, key = parsed
                try:
                    if not entry.is_file():
                        continue
                    st = entry.stat()
                except FileNotFoundError:
                    logger.debug("File disappeared during scan: {}", entry.name)
                    continue
                except OSError as ex:
                    logger.warning("Could not stat {}: {}", entry.name, ex)
                    continue
                files.append(
                    StoreFile(
                        path=entry.path,
                        kind=kind,
                        timestamp_key=key,
                        size_bytes=int(st.st_size),
                        modified_at=datetime.fromtimestamp(st.st_mtime),
                    )
                )
    except PermissionError as ex:
        raise DirectoryPermissionDenied(str(path)) from ex
    except FileNotFoundError:
        logger.warning("Photo store directory vanished during scan: {}", path)
        return []
    except OSError as ex:
        raise DirectoryReadFailed(str(path), str(ex)) from ex
    return files


class PhotoStore:
    """Reads and writes pair files in one flat directory."""

    def __init__(self, directory: str | Path | None = None, use_recycle_bin: bool = False) -> None:
        self._directory = Path(directory) if directory else default_store_directory()
        self._use_recycle_bin = bool(use_recycle_bin)

    @property
    def directory(self) -> Path:
        """Directory holding the pair files."""
        return self._directory

    def ensure_directory(self) -> None:
        """Create the store directory if needed."""
        ensure_store_directory(self._directory)

    def list_files(self) -> list[StoreFile]:
        """List convention-matching files currently in the store."""
        return list_store_files(self._directory)

    def path_for(self, kind: FileKind, timestamp: float | str) -> Path:
        """Path of the `kind` file for `timestamp`."""
        prefix = ORIGINAL_PREFIX if kind is FileKind.ORIGINAL else THEMED_PREFIX
        return self._directory / f"{prefix}{format_timestamp(timestamp)}{PHOTO_SUFFIX}"

    def exists(self, kind: FileKind, timestamp: float | str) -> bool:
        """True when the `kind` file for `timestamp` is present."""
        return self.path_for(kind, timestamp).is_file()

    def save_original(self, data: bytes, timestamp: float | str | None = None) -> Path:
        """Persist captured image bytes as `original_<ts>.jpg`."""
        if timestamp is None:
            timestamp = time.time()
        return self._write(FileKind.ORIGINAL, timestamp, data)

    def save_themed(self, data: bytes, timestamp: float | str) -> Path:
        """Persist stylized image bytes as `themed_<ts>.jpg`."""
        return self._write(FileKind.THEMED, timestamp, data)

    def delete_file(self, path: str | Path) -> int:
        """Remove one file and return its size in bytes.

        Raises `FileNotFoundError` if the file is already gone and `OSError`
        on any other failure.
        """
        p = Path(path)
        size = p.stat().st_size
        if self._use_recycle_bin:
            send2trash(str(p))
        else:
            p.unlink()
        logger.info("Deleted store file: {} ({} bytes)", p.name, size)
        return int(size)

    def _write(self, kind: FileKind, timestamp: float | str, data: bytes) -> Path:
        self.ensure_directory()
        target = self.path_for(kind, timestamp)
        tmp = target.with_name(f".{target.name}.partial")
        try:
            tmp.write_bytes(data)
            os.replace(tmp, target)
        except OSError as ex:
            logger.error("Failed to save {} image {}: {}", kind.value, target, ex)
            try:
                tmp.unlink()
            except OSError:
                pass
            raise
        logger.info("Saved {} image: {} ({} bytes)", kind.value, target, len(data))
        return target
