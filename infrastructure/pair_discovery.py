"""Pair discovery: rebuild valid photo pairs from the loose files in the store.

Pairing is by exact string equality of the timestamp substring. Numeric
tolerance is deliberately not applied, so two captures that happen to be close
in time are never paired with each other.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
import math
from pathlib import Path

from loguru import logger

from core.models import FileKind, PhotoPair, StoreFile
from core.services.interfaces import ScanResult
from infrastructure.photo_store import list_store_files

MIN_FILE_BYTES = 1024


def parse_timestamp(key: str) -> float | None:
    """Parse a filename timestamp; None unless it is a representable epoch time."""
    try:
        value = float(key)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    try:
        datetime.fromtimestamp(value)
    except (OverflowError, OSError, ValueError):
        return None
    return value


class PairDiscoveryService:
    """Scans a store directory and emits an ordered list of valid pairs."""

    def __init__(self, min_file_bytes: int = MIN_FILE_BYTES) -> None:
        self._min_file_bytes = max(0, int(min_file_bytes))

    @property
    def min_file_bytes(self) -> int:
        """Files smaller than this are treated as truncated writes."""
        return self._min_file_bytes

    def discover(self, directory: str | Path) -> list[PhotoPair]:
        """Return only the valid pairs of `directory`, newest first."""
        return self.scan(directory).pairs

    def scan(self, directory: str | Path) -> ScanResult:
        """Scan `directory` and classify every convention-matching file.

        Raises:
            DirectoryPermissionDenied: The directory cannot be read.
            DirectoryReadFailed: Listing failed for another reason.
        """
        files = list_store_files(directory)

        rejected: list[StoreFile] = []
        originals: dict[str, list[StoreFile]] = defaultdict(list)
        themed: dict[str, list[StoreFile]] = defaultdict(list)
        for f in files:
            if f.size_bytes < self._min_file_bytes:
                logger.warning(
                    "Skipping suspiciously small file: {} ({} bytes)", f.file_name, f.size_bytes
                )
                rejected.append(f)
                continue
            if f.kind is FileKind.ORIGINAL:
                originals[f.timestamp_key].append(f)
            else:
                themed[f.timestamp_key].append(f)

        pairs: list[PhotoPair] = []
        orphans: list[StoreFile] = []
        for key in sorted(originals):
            original = originals[key][0]
            twin = themed.get(key)
            if not twin:
                logger.warning("No matching themed file found for {}", original.file_name)
                orphans.append(original)
                continue
            ts = parse_timestamp(key)
            if ts is None:
                logger.warning("Invalid timestamp format: {}", key)
                orphans.extend([original, twin[0]])
                continue
            pairs.append(
                PhotoPair(
                    id=ts,
                    timestamp_key=key,
                    original_path=original.path,
                    themed_path=twin[0].path,
                    original_size=original.size_bytes,
                    themed_size=twin[0].size_bytes,
                )
            )

        for key in sorted(set(themed) - set(originals)):
            logger.debug("Themed file without original: {}", themed[key][0].file_name)
            orphans.append(themed[key][0])

        pairs.sort(key=lambda p: Path(p.original_path).name)
        pairs.sort(key=lambda p: p.id, reverse=True)

        logger.debug(
            "Scanned {}: {} pairs, {} orphans, {} rejected",
            directory,
            len(pairs),
            len(orphans),
            len(rejected),
        )
        return ScanResult(pairs=pairs, orphans=orphans, rejected=rejected)
