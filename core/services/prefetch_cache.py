"""Bounded prefetch window of decoded photo pairs around the playback position.

Decoding is dispatched to a task runner so the display path is not blocked;
`get` waits for a pending decode only when the requested pair is needed right
now. The cache holds memory only: evicting an entry never touches the disk.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import CancelledError, Future

from loguru import logger

from core.errors import CorruptOrIncompletePair
from core.models import PhotoPair
from core.services.interfaces import ITaskRunner

DEFAULT_WINDOW_SIZE = 5


class PrefetchCache:
    """Keeps pairs `[center - 1, center + window_size]` decoded in memory.

    Owned by the slideshow; every method must be called from the slideshow's
    serialized context. Only the decode work itself runs on worker threads.
    """

    def __init__(
        self,
        runner: ITaskRunner,
        loader: Callable[[PhotoPair], PhotoPair],
        window_size: int = DEFAULT_WINDOW_SIZE,
    ) -> None:
        """Create an empty cache.

        Args:
            runner: Dispatches decode work to worker threads.
            loader: Returns a decoded copy of a pair; raises
                `CorruptOrIncompletePair` when the files are unusable.
            window_size: Number of pairs ahead of the center to keep decoded.
        """
        self._runner = runner
        self._loader = loader
        self._window_size = max(0, int(window_size))
        self._pairs: list[PhotoPair] = []
        self._entries: dict[int, Future] = {}
        self._center: int | None = None

    @property
    def window_size(self) -> int:
        """Pairs kept ahead of the center."""
        return self._window_size

    @property
    def max_entries(self) -> int:
        """Upper bound on simultaneously cached pairs."""
        return self._window_size + 2

    @property
    def center_index(self) -> int | None:
        """Index the window is currently centered on."""
        return self._center

    @property
    def cached_indices(self) -> list[int]:
        """Indices with a pending or completed decode, ascending."""
        return sorted(self._entries)

    @property
    def pairs(self) -> list[PhotoPair]:
        """The ordered pair list the indices refer to."""
        return list(self._pairs)

    def window_for(self, index: int) -> range:
        """Indices that belong in the window centered on `index`."""
        if not self._pairs:
            return range(0)
        last = len(self._pairs) - 1
        return range(max(0, index - 1), min(last, index + self._window_size) + 1)

    def recenter(self, index: int) -> None:
        """Move the window to `index`, evicting and scheduling as needed."""
        if not self._pairs:
            self.clear()
            return
        index = max(0, min(int(index), len(self._pairs) - 1))
        self._center = index
        wanted = self.window_for(index)

        for i in [i for i in self._entries if i not in wanted]:
            self._drop(i)
        for i in wanted:
            if i not in self._entries:
                self._entries[i] = self._runner.submit(self._loader, self._pairs[i])
        logger.debug("Prefetch window centered on {}: {}", index, self.cached_indices)

    def get(self, index: int) -> PhotoPair | None:
        """Return the decoded pair at `index`, or None if it is no longer available.

        Blocks while a scheduled decode for `index` is still running. An index
        that was never scheduled is decoded inline.
        """
        if index < 0 or index >= len(self._pairs):
            return None
        pair = self._pairs[index]
        future = self._entries.get(index)
        if future is None:
            try:
                decoded = self._loader(pair)
            except CorruptOrIncompletePair as ex:
                logger.warning("{}", ex)
                return None
            if self._center is not None and index in self.window_for(self._center):
                done: Future = Future()
                done.set_result(decoded)
                self._entries[index] = done
            return decoded

        try:
            decoded = future.result()
        except (CorruptOrIncompletePair, OSError, CancelledError) as ex:
            logger.warning("Pair {} no longer available: {}", pair.timestamp_key, ex)
            self._entries.pop(index, None)
            return None
        if decoded.timestamp_key != pair.timestamp_key:
            # Stale entry left from a previous list; decode again
            self._entries.pop(index, None)
            return self.get(index)
        return decoded

    def update_pairs(self, pairs: Iterable[PhotoPair], center: int | None = None) -> None:
        """Replace the pair list, keeping decoded entries whose pair survived.

        Entries are remapped by pair identity. If the new list no longer
        reaches the current center the cache is cleared entirely.
        """
        old = self._pairs
        self._pairs = list(pairs)
        if self._center is not None and len(self._pairs) <= self._center:
            logger.debug("Pair list shrank below center {}; clearing cache", self._center)
            self.clear()
        else:
            new_index = {p.timestamp_key: i for i, p in enumerate(self._pairs)}
            remapped: dict[int, Future] = {}
            for i, future in self._entries.items():
                key = old[i].timestamp_key if i < len(old) else None
                target = new_index.get(key) if key is not None else None
                if target is None:
                    future.cancel()
                    continue
                remapped[target] = future
            self._entries = remapped

        if center is None:
            center = self._center
        if center is not None and self._pairs:
            self.recenter(center)

    def invalidate(self, indices: Iterable[int]) -> None:
        """Forget the decoded entries at `indices`."""
        for i in indices:
            self._drop(i)

    def clear(self) -> None:
        """Drop every decoded entry."""
        for future in self._entries.values():
            future.cancel()
        self._entries.clear()
        self._center = None

    def _drop(self, index: int) -> None:
        future = self._entries.pop(index, None)
        if future is not None:
            future.cancel()
