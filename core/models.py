"""Core domain models for photo pairs, store files and retention."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

ORIGINAL_PREFIX = "original_"
THEMED_PREFIX = "themed_"
PHOTO_SUFFIX = ".jpg"


class FileKind(str, Enum):
    """Which half of a pair a stored file belongs to."""

    ORIGINAL = "original"
    THEMED = "themed"


@dataclass(frozen=True)
class StoreFile:
    """A convention-matching file observed in the photo store."""

    path: str
    kind: FileKind
    timestamp_key: str
    size_bytes: int
    modified_at: datetime

    @property
    def file_name(self) -> str:
        """Base name of the file."""
        return self.path.replace("\\", "/").rsplit("/", 1)[-1]


@dataclass
class PhotoPair:
    """One original capture and its stylized counterpart."""

    id: float
    timestamp_key: str
    original_path: str
    themed_path: str
    original_size: int = 0
    themed_size: int = 0
    # Only populated on copies held by the prefetch cache
    decoded_original: Any = field(default=None, compare=False, repr=False)
    decoded_themed: Any = field(default=None, compare=False, repr=False)

    @property
    def created_at(self) -> datetime:
        """Capture time derived from `id`."""
        return datetime.fromtimestamp(self.id)

    @property
    def is_decoded(self) -> bool:
        """True when both images have been decoded into memory."""
        return self.decoded_original is not None and self.decoded_themed is not None


@dataclass
class RetentionPolicy:
    """Age- and count-bounded retention settings for the photo store.

    Attributes:
        max_age_days: Pairs older than this many days are eligible for deletion.
        max_pair_count: Optional cap; the oldest pairs beyond it are deleted.
        automatic_cleanup_enabled: Whether the periodic cleanup runs.
        last_cleanup_at: Completion time of the last successful run.
    """

    max_age_days: int = 7
    max_pair_count: int | None = None
    automatic_cleanup_enabled: bool = False
    last_cleanup_at: datetime | None = None

    def cutoff_timestamp(self, now: float) -> float:
        """Epoch seconds before which content is considered expired."""
        return now - max(0, int(self.max_age_days)) * 24 * 60 * 60


@dataclass
class CacheStatistics:
    """Snapshot of the store contents, recomputed from a fresh listing."""

    total_files: int
    total_size_bytes: int
    oldest_age_days: int
    needs_cleanup: bool
    pair_count: int = 0
    oldest_file_at: datetime | None = None
    newest_file_at: datetime | None = None

    @property
    def formatted_size(self) -> str:
        """Human-readable size such as `1.4 MB`."""
        size = float(self.total_size_bytes)
        for unit in ("bytes", "KB", "MB", "GB"):
            if size < 1024 or unit == "GB":
                if unit == "bytes":
                    return f"{int(size)} bytes"
                return f"{size:.1f} {unit}"
            size /= 1024
        return f"{size:.1f} GB"

