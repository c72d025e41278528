"""File discovery utilities."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from .detectors import ExtensionClassifier
from .models import PendingFile

LOGGER = logging.getLogger(__name__)

ProgressSink = Callable[[int, Path], None]


def _is_hidden(path: Path) -> bool:
    return any(part.startswith(".") for part in path.parts if part not in (".", ".."))


class DirectoryScanner:
    """Lazily enumerate supported files beneath a root directory.

    Each call to :meth:`scan` performs a fresh walk. Entries that cannot be
    listed or stat'ed are skipped so one unreadable file never stops the scan.
    """

    def __init__(
        self,
        classifier: ExtensionClassifier,
        *,
        include_hidden: bool = True,
        follow_symlinks: bool = False,
    ) -> None:
        self.classifier = classifier
        self.include_hidden = include_hidden
        self.follow_symlinks = follow_symlinks

    def scan(self, root: Path, on_progress: Optional[ProgressSink] = None) -> Iterator[PendingFile]:
        """Yield supported files discovered under ``root``.

        Args:
            root: Directory (or single file) to enumerate.
            on_progress: Optional sink called with a running count and the path
                of each yielded candidate.

        Yields:
            PendingFile: Candidate with its size and modification time.
        """
        root = Path(root).expanduser().absolute()
        if not root.exists():
            return

        count = 0
        for path in self._iter_paths(root):
            if not self.classifier.is_supported(path):
                continue
            try:
                relative = path.relative_to(root)
            except ValueError:
                relative = Path(path.name)
            if not self.include_hidden and _is_hidden(relative):
                continue
            try:
                stat = path.stat() if self.follow_symlinks else path.lstat()
            except OSError as exc:
                LOGGER.debug("Skipping %s during scan: %s", path, exc)
                continue
            if not self.follow_symlinks and path.is_symlink():
                continue

            try:
                modified_at: Optional[datetime] = datetime.fromtimestamp(
                    stat.st_mtime, tz=timezone.utc
                )
            except (OverflowError, OSError, ValueError) as exc:
                LOGGER.debug("Unreadable modification time for %s: %s", path, exc)
                modified_at = None

            count += 1
            if on_progress is not None:
                on_progress(count, path)
            yield PendingFile(path=path, size_bytes=stat.st_size, modified_at=modified_at)

    def _iter_paths(self, root: Path) -> Iterable[Path]:
        """Internal helper to iterate candidate file paths."""
        if root.is_file():
            yield root
            return

        def _on_error(exc: OSError) -> None:
            LOGGER.debug("Skipping unreadable directory %s: %s", exc.filename, exc)

        for dirpath, dirnames, filenames in os.walk(
            root, onerror=_on_error, followlinks=self.follow_symlinks
        ):
            dirnames.sort()
            base = Path(dirpath)
            for name in sorted(filenames):
                yield base / name
