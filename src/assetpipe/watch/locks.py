"""Per-path mutual exclusion for concurrent reprocessing."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator

from assetpipe.ingestion.models import normalize_asset_path


@dataclass(slots=True)
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class PathLockRegistry:
    """Hand out one lock per normalized path.

    Locks are created on first use and dropped once no thread holds or waits
    on them, so the registry only grows with the number of paths in flight.
    Distinct paths never contend with each other.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    @contextmanager
    def hold(self, path: str) -> Iterator[str]:
        """Block until ``path`` is free, then hold it for the duration of the block.

        Yields:
            str: The normalized key that was locked.
        """
        key = normalize_asset_path(path)
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.holders += 1
        entry.lock.acquire()
        try:
            yield key
        finally:
            entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


__all__ = ["PathLockRegistry"]
