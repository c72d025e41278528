"""Helpers shared by assetpipe CLI commands."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Iterable, Optional

from rich.console import Console, RenderableType
from rich.markup import escape
from rich.table import Table

from assetpipe.config import AssetPipeConfig
from assetpipe.ingestion import AssetStatus
from assetpipe.state import (
    CatalogRepository,
    CatalogSummary,
    CategoryBreakdown,
    EventLogEntry,
    ReconcileAction,
    format_size,
)
from assetpipe.watch import ScanReport, UpdateKind, WatchUpdate


class ConsoleSink:
    """Serialize console output from the main thread and watch workers.

    The lock wraps only the print call, so a slow terminal never holds up
    catalog work.
    """

    def __init__(self, console: Console, *, quiet: bool = False) -> None:
        self.console = console
        self.quiet = quiet
        self._lock = threading.Lock()

    def emit(self, message: RenderableType, *, mode: str = "detail") -> None:
        """Print ``message``; quiet mode lets only errors through.

        Args:
            message: Renderable or markup string.
            mode: One of ``detail``, ``summary``, ``warning`` or ``error``.
        """
        if self.quiet and mode != "error":
            return
        with self._lock:
            self.console.print(message)

    def emit_json(self, payload: Any) -> None:
        with self._lock:
            self.console.print_json(data=payload)

    def watch_update(self, update: WatchUpdate) -> None:
        """Render a watcher update; unchanged and skipped files produce no output."""
        message = format_watch_update(update)
        if message is None:
            return
        mode = "error" if update.kind is UpdateKind.ERROR else "detail"
        self.emit(message, mode=mode)


def resolve_database_path(config: AssetPipeConfig, override: Optional[str] = None) -> Path:
    """Return the catalog database location, honoring a CLI override."""
    return Path(override or config.storage.database_path).expanduser()


def open_catalog(config: AssetPipeConfig, override: Optional[str] = None) -> CatalogRepository:
    """Open the catalog configured for this invocation.

    Raises:
        CatalogError: If the database cannot be opened or initialized.
    """
    return CatalogRepository(resolve_database_path(config, override)).open()


def format_watch_update(update: WatchUpdate) -> Optional[str]:
    """Return the console line for ``update`` or ``None`` when nothing changed."""
    if update.kind is UpdateKind.ERROR:
        return f"[red]Error processing {escape(update.path)}: {escape(update.message)}[/red]"
    if update.kind in (UpdateKind.RENAMED, UpdateKind.DELETED):
        return f"[yellow]{escape(update.message)}[/yellow]"

    outcome = update.outcome
    run = update.run
    if outcome is None or run is None:
        return None
    if outcome.action in (ReconcileAction.UNCHANGED, ReconcileAction.SKIPPED):
        return None
    if run.status is AssetStatus.FAILED:
        return (
            f"[red]Failed: {escape(run.relative_path)} "
            f"({escape(run.error_message or 'unknown error')})[/red]"
        )
    event_message = outcome.event.message if outcome.event else run.relative_path
    color = "green" if outcome.action is ReconcileAction.INSERTED else "cyan"
    return f"[{color}]{escape(event_message)}[/{color}]"


def format_scan_line(report: ScanReport) -> str:
    """Return the one-line summary printed after a scan."""
    parts = ", ".join(
        f"{key}={value}"
        for key, value in (
            ("processed", report.processed),
            ("new", report.inserted),
            ("updated", report.updated),
            ("unchanged", report.unchanged),
            ("failed", report.failed),
        )
    )
    suffix = " (cancelled)" if report.cancelled else ""
    return f"[green]Scan summary for {escape(str(report.root))}: {parts}.{suffix}[/green]"


def build_summary_table(summary: CatalogSummary) -> Table:
    """Render the pipeline summary as a two-column table."""
    table = Table(title="Pipeline Summary", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Total assets", str(summary.total_assets))
    table.add_row("Completed", str(summary.completed_assets))
    table.add_row("Failed", str(summary.failed_assets))
    table.add_row("Pending", str(summary.pending_assets))
    table.add_row("Total size", format_size(summary.total_size_bytes))
    table.add_row("Avg processing", f"{summary.avg_processing_ms:.2f} ms")
    for status, count in sorted(summary.by_status.items()):
        table.add_row(f"Status: {status}", str(count))
    return table


def build_category_table(breakdown: Iterable[CategoryBreakdown]) -> Table:
    table = Table(title="By Category")
    table.add_column("Category")
    table.add_column("Count", justify="right")
    table.add_column("Total size", justify="right")
    table.add_column("Avg ms", justify="right")
    for row in breakdown:
        table.add_row(
            row.category.value,
            str(row.count),
            format_size(row.total_size_bytes),
            f"{row.avg_processing_ms:.2f}",
        )
    return table


def build_events_table(events: Iterable[EventLogEntry]) -> Table:
    table = Table(title="Recent Events")
    table.add_column("Time")
    table.add_column("Event")
    table.add_column("Message", overflow="fold")
    for event in events:
        table.add_row(
            event.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            event.kind.value,
            escape(event.message),
        )
    return table


def status_payload(
    database: Path,
    summary: CatalogSummary,
    breakdown: Iterable[CategoryBreakdown],
    events: Iterable[EventLogEntry],
) -> dict[str, Any]:
    """Return the JSON document emitted by ``assetpipe status --json``."""
    return {
        "database": str(database),
        "summary": summary.model_dump(mode="json"),
        "categories": [row.model_dump(mode="json") for row in breakdown],
        "events": [event.model_dump(mode="json") for event in events],
    }


__all__ = [
    "ConsoleSink",
    "build_category_table",
    "build_events_table",
    "build_summary_table",
    "format_scan_line",
    "format_watch_update",
    "open_catalog",
    "resolve_database_path",
    "status_payload",
]
