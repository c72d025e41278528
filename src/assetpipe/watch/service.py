"""Filesystem watch service that feeds notifications through the asset pipeline."""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from assetpipe.config import AssetPipeConfig
from assetpipe.ingestion import (
    AssetPipeline,
    AssetStatus,
    DirectoryScanner,
    ExtensionClassifier,
    HashComputer,
    MetadataExtractor,
    PipelineRun,
    normalize_asset_path,
)
from assetpipe.ingestion.discovery import ProgressSink
from assetpipe.state import CatalogRepository, ChangeCoordinator, ReconcileAction, ReconcileOutcome

from .locks import PathLockRegistry

LOGGER = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    """Filesystem notification kinds the watcher reacts to."""

    CREATED = "created"
    MODIFIED = "modified"
    MOVED = "moved"
    DELETED = "deleted"


class UpdateKind(str, Enum):
    """Kinds of updates reported to the watch callback."""

    PROCESSED = "processed"
    RENAMED = "renamed"
    DELETED = "deleted"
    ERROR = "error"


@dataclass(slots=True)
class WatchUpdate:
    """Operator-facing report for one handled notification.

    Attributes:
        kind: What happened.
        path: Identity key of the affected file.
        message: Short human-readable description.
        run: Pipeline run for processed notifications.
        outcome: Coordinator decision for processed notifications.
        dest_path: New location for renames.
    """

    kind: UpdateKind
    path: str
    message: str = ""
    run: Optional[PipelineRun] = None
    outcome: Optional[ReconcileOutcome] = None
    dest_path: Optional[str] = None


@dataclass(slots=True)
class ScanReport:
    """Counts and outcomes for one bulk scan of the root."""

    root: Path
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    outcomes: List[ReconcileOutcome] = field(default_factory=list)

    def add(self, run: PipelineRun, outcome: ReconcileOutcome) -> None:
        self.processed += 1
        self.outcomes.append(outcome)
        if run.status is AssetStatus.FAILED:
            self.failed += 1
        if outcome.action is ReconcileAction.INSERTED:
            self.inserted += 1
        elif outcome.action is ReconcileAction.UPDATED:
            self.updated += 1
        elif outcome.action is ReconcileAction.UNCHANGED:
            self.unchanged += 1
        else:
            self.skipped += 1


@dataclass(slots=True)
class _WorkItem:
    kind: NotificationKind
    path: str
    dest_path: Optional[str] = None


WatchCallback = Callable[[WatchUpdate], None]


class WatchService:
    """Keep the catalog in sync with a directory tree.

    ``process_once`` performs a full scan. ``start`` subscribes to filesystem
    notifications and hands them to a pool of worker threads through a bounded
    queue. Repeated create/modify notifications for a path that is still
    waiting out its settle delay only push that delay back, and every
    reprocessing of a path (scan or watcher) holds that path's lock, so the
    catalog always reflects the last bytes read.
    """

    def __init__(
        self,
        config: AssetPipeConfig,
        root: Path,
        catalog: CatalogRepository,
        *,
        pipeline: Optional[AssetPipeline] = None,
        scanner: Optional[DirectoryScanner] = None,
        settle_delay: Optional[float] = None,
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        """Initialize the watch service.

        Args:
            config: Loaded assetpipe configuration.
            root: Directory to scan and monitor.
            catalog: Open catalog repository.
            pipeline: Optional pre-built pipeline; built from ``config`` otherwise.
            scanner: Optional pre-built scanner; built from ``config`` otherwise.
            settle_delay: Optional override for ``watch.settle_delay_seconds``.
            observer_factory: Callable returning a watchdog-compatible observer.
        """
        self.root = Path(normalize_asset_path(root))
        processing = config.processing
        classifier = ExtensionClassifier.from_options(processing)
        self._pipeline = pipeline or AssetPipeline(
            classifier,
            HashComputer(chunk_size=processing.hash_chunk_size_kb * 1024),
            MetadataExtractor(header_bytes=processing.header_bytes),
            thumbnail_dir=Path(config.storage.thumbnail_dir).expanduser(),
        )
        self._scanner = scanner or DirectoryScanner(
            classifier,
            include_hidden=processing.include_hidden_files,
            follow_symlinks=processing.follow_symlinks,
        )
        self._coordinator = ChangeCoordinator(catalog)
        self._locks = PathLockRegistry()

        settings = config.watch
        self._settle_delay = max(
            0.0, settle_delay if settle_delay is not None else settings.settle_delay_seconds
        )
        self._worker_count = settings.workers
        self._recursive = settings.recursive
        self._queue: queue.Queue[Optional[_WorkItem]] = queue.Queue(maxsize=settings.queue_size)
        self._pending: Dict[str, float] = {}
        self._pending_lock = threading.Lock()
        self._in_flight = 0
        self._idle = threading.Condition()
        self._stop_event = threading.Event()
        self._observer_factory = observer_factory
        self._observer: Any | None = None
        self._workers: List[threading.Thread] = []
        self._callback: Optional[WatchCallback] = None

    @property
    def settle_delay(self) -> float:
        return self._settle_delay

    @property
    def running(self) -> bool:
        return self._observer is not None

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def process_once(
        self,
        on_progress: Optional[ProgressSink] = None,
        callback: Optional[WatchCallback] = None,
    ) -> ScanReport:
        """Scan the whole root once and reconcile every supported file.

        The scan stops between files once :meth:`stop` has been called.

        Args:
            on_progress: Optional sink forwarded to the directory scanner.
            callback: Receives a :class:`WatchUpdate` for every file processed.

        Returns:
            ScanReport: Per-action counts for the scan.
        """
        report = ScanReport(root=self.root)
        for pending in self._scanner.scan(self.root, on_progress=on_progress):
            if self._stop_event.is_set():
                report.cancelled = True
                break
            run, outcome = self.reprocess(pending.path)
            report.add(run, outcome)
            if callback is not None:
                callback(
                    WatchUpdate(
                        kind=UpdateKind.PROCESSED,
                        path=run.path,
                        message=f"Scanned: {Path(run.path).name}",
                        run=run,
                        outcome=outcome,
                    )
                )
        LOGGER.info(
            "Scan of %s: processed=%d inserted=%d updated=%d unchanged=%d failed=%d",
            self.root,
            report.processed,
            report.inserted,
            report.updated,
            report.unchanged,
            report.failed,
        )
        return report

    def reprocess(self, path: Path | str) -> tuple[PipelineRun, ReconcileOutcome]:
        """Run one path through the pipeline and coordinator while holding its lock."""
        with self._locks.hold(str(path)) as key:
            run = self._pipeline.process(Path(key), self.root)
            outcome = self._coordinator.reconcile_one(run)
        return run, outcome

    def start(self, callback: Optional[WatchCallback] = None) -> None:
        """Start the worker pool and the filesystem observer.

        Args:
            callback: Receives a :class:`WatchUpdate` for every handled notification.

        Raises:
            RuntimeError: If the service is already running.
        """
        if self._observer is not None:
            raise RuntimeError("WatchService is already running.")

        self._callback = callback
        self._stop_event.clear()
        for index in range(self._worker_count):
            worker = threading.Thread(
                target=self._worker_loop, name=f"assetpipe-watch-{index}", daemon=True
            )
            worker.start()
            self._workers.append(worker)

        observer = self._observer_factory()
        observer.schedule(_WatchEventHandler(self), str(self.root), recursive=self._recursive)
        observer.start()
        self._observer = observer
        LOGGER.info("Watching %s with %d workers", self.root, self._worker_count)

    def stop(self) -> None:
        """Stop the observer and worker pool; queued notifications are discarded."""
        self._stop_event.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        for _ in self._workers:
            self._queue.put(None)
        for worker in self._workers:
            worker.join(timeout=5)
        self._workers.clear()
        with self._pending_lock:
            self._pending.clear()

    def dispatch(
        self, kind: NotificationKind, path: str, dest_path: Optional[str] = None
    ) -> None:
        """Queue a filesystem notification without blocking the caller."""
        key = normalize_asset_path(path)
        if kind in (NotificationKind.CREATED, NotificationKind.MODIFIED):
            deadline = time.monotonic() + self._settle_delay
            with self._pending_lock:
                already_queued = key in self._pending
                self._pending[key] = deadline
            if already_queued:
                return
        item = _WorkItem(kind=kind, path=key, dest_path=dest_path)
        self._track(1)
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            self._track(-1)
            with self._pending_lock:
                self._pending.pop(key, None)
            LOGGER.warning("Watch queue full; dropped %s notification for %s", kind.value, key)

    def wait_idle(self, timeout: float = 10.0) -> bool:
        """Block until every queued notification has been handled.

        Returns:
            bool: ``False`` if ``timeout`` elapsed first.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._in_flight == 0, timeout=timeout)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _worker_loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is None:
                    return
                if self._stop_event.is_set():
                    self._release(item.path)
                else:
                    self._handle(item)
            except Exception as exc:
                LOGGER.exception("Watch worker failed for %s", item.path if item else "<stop>")
                if item is not None:
                    self._emit(WatchUpdate(kind=UpdateKind.ERROR, path=item.path, message=str(exc)))
            finally:
                if item is not None:
                    self._track(-1)

    def _handle(self, item: _WorkItem) -> None:
        if item.kind is NotificationKind.MOVED:
            # Renames are reported only; neither path is reprocessed.
            LOGGER.info("Renamed %s -> %s", item.path, item.dest_path)
            self._emit(
                WatchUpdate(
                    kind=UpdateKind.RENAMED,
                    path=item.path,
                    dest_path=item.dest_path,
                    message=f"Renamed: {Path(item.path).name} -> {Path(item.dest_path or '').name}",
                )
            )
            return
        if item.kind is NotificationKind.DELETED:
            # The catalog keeps its record for deleted files.
            LOGGER.info("Deleted %s", item.path)
            self._emit(
                WatchUpdate(
                    kind=UpdateKind.DELETED,
                    path=item.path,
                    message=f"Deleted: {Path(item.path).name}",
                )
            )
            return

        if not self._wait_for_settle(item.path):
            return
        run, outcome = self.reprocess(item.path)
        self._emit(
            WatchUpdate(
                kind=UpdateKind.PROCESSED,
                path=run.path,
                run=run,
                outcome=outcome,
                message=f"{item.kind.value.capitalize()}: {Path(run.path).name}",
            )
        )

    def _track(self, delta: int) -> None:
        with self._idle:
            self._in_flight += delta
            if self._in_flight == 0:
                self._idle.notify_all()

    def _release(self, key: str) -> None:
        with self._pending_lock:
            self._pending.pop(key, None)

    def _wait_for_settle(self, key: str) -> bool:
        """Sleep until ``key`` has been quiet for the settle delay, then claim it."""
        while True:
            with self._pending_lock:
                deadline = self._pending.get(key)
                if deadline is None:
                    return True
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    del self._pending[key]
                    return True
            if self._stop_event.wait(remaining):
                self._release(key)
                return False

    def _emit(self, update: WatchUpdate) -> None:
        if self._callback is None:
            return
        try:
            self._callback(update)
        except Exception:
            LOGGER.exception("Watch callback failed for %s", update.path)


class _WatchEventHandler(FileSystemEventHandler):
    """Translate watchdog events into service notifications."""

    def __init__(self, service: WatchService) -> None:
        self._service = service

    def on_created(self, event: FileSystemEvent) -> None:
        self._forward(NotificationKind.CREATED, event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._forward(NotificationKind.MODIFIED, event)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._forward(NotificationKind.MOVED, event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._forward(NotificationKind.DELETED, event)

    def _forward(self, kind: NotificationKind, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        dest = getattr(event, "dest_path", None)
        self._service.dispatch(
            kind,
            os.fsdecode(event.src_path),
            os.fsdecode(dest) if dest else None,
        )


__all__ = [
    "NotificationKind",
    "ScanReport",
    "UpdateKind",
    "WatchCallback",
    "WatchService",
    "WatchUpdate",
]
