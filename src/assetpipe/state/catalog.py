"""SQLite-backed catalog of asset records and the append-only event log."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional

from .errors import CatalogError
from .models import AssetRecord, CatalogSummary, CategoryBreakdown, EventLogEntry

LOGGER = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"

_ASSET_COLUMNS = (
    "path",
    "relative_path",
    "file_name",
    "extension",
    "category",
    "mime_type",
    "size_bytes",
    "fingerprint",
    "status",
    "error_message",
    "image_width",
    "image_height",
    "thumbnail_path",
    "file_created_at",
    "file_modified_at",
    "discovered_at",
    "processed_at",
    "processing_ms",
)

# Columns the change coordinator may rewrite; path and discovered_at never change.
_MUTABLE_COLUMNS = (
    "fingerprint",
    "size_bytes",
    "file_modified_at",
    "status",
    "processed_at",
    "processing_ms",
    "image_width",
    "image_height",
    "thumbnail_path",
    "error_message",
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS assets (
    id INTEGER PRIMARY KEY,
    path TEXT NOT NULL UNIQUE,
    relative_path TEXT NOT NULL,
    file_name TEXT NOT NULL,
    extension TEXT NOT NULL,
    category TEXT NOT NULL,
    mime_type TEXT,
    size_bytes INTEGER NOT NULL DEFAULT 0,
    fingerprint TEXT,
    status TEXT NOT NULL,
    error_message TEXT,
    image_width INTEGER,
    image_height INTEGER,
    thumbnail_path TEXT,
    file_created_at TEXT,
    file_modified_at TEXT,
    discovered_at TEXT NOT NULL,
    processed_at TEXT,
    processing_ms REAL NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_assets_fingerprint ON assets(fingerprint);
CREATE INDEX IF NOT EXISTS idx_assets_category ON assets(category);
CREATE INDEX IF NOT EXISTS idx_assets_status ON assets(status);
CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    path TEXT NOT NULL,
    message TEXT NOT NULL,
    timestamp TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_timestamp ON events(timestamp);
CREATE INDEX IF NOT EXISTS idx_events_kind ON events(kind);
"""


class CatalogRepository:
    """Persist asset records and event log entries in a single SQLite database.

    Writes are serialized through one connection guarded by a re-entrant lock,
    so the catalog behaves as a single-writer store. WAL journaling lets other
    processes read while the pipeline writes.
    """

    def __init__(self, database_path: Path | str) -> None:
        """Initialize the repository without opening the database.

        Args:
            database_path: SQLite file location, or ``":memory:"``.
        """
        if str(database_path) == MEMORY_DATABASE:
            self._path: Optional[Path] = None
        else:
            self._path = Path(database_path).expanduser()
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None
        self._depth = 0

    @property
    def database_path(self) -> str:
        return str(self._path) if self._path is not None else MEMORY_DATABASE

    def open(self) -> "CatalogRepository":
        """Open the database and ensure the schema exists.

        Returns:
            CatalogRepository: ``self`` for chaining.

        Raises:
            CatalogError: If the database cannot be created or migrated.
        """
        with self._lock:
            if self._conn is not None:
                return self
            try:
                if self._path is not None:
                    self._path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(
                    self.database_path, check_same_thread=False, isolation_level=None
                )
                conn.row_factory = sqlite3.Row
                if self._path is not None:
                    conn.execute("PRAGMA journal_mode=WAL;")
                conn.executescript(_SCHEMA)
            except (OSError, sqlite3.Error) as exc:
                raise CatalogError(f"Unable to open catalog at {self.database_path}: {exc}") from exc
            self._conn = conn
            LOGGER.debug("Catalog opened at %s", self.database_path)
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "CatalogRepository":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Write side (used by the change coordinator)                        #
    # ------------------------------------------------------------------ #

    @contextmanager
    def transaction(self) -> Iterator["CatalogRepository"]:
        """Hold the writer lock and wrap the block in one SQLite transaction.

        Nested use joins the outer transaction.

        Raises:
            CatalogError: If SQLite rejects the transaction.
        """
        with self._lock:
            conn = self._connection()
            outermost = self._depth == 0
            if outermost:
                conn.execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield self
            except sqlite3.Error as exc:
                self._depth -= 1
                if outermost:
                    conn.execute("ROLLBACK")
                raise CatalogError(f"Catalog transaction failed: {exc}") from exc
            except BaseException:
                self._depth -= 1
                if outermost:
                    conn.execute("ROLLBACK")
                raise
            else:
                self._depth -= 1
                if outermost:
                    conn.execute("COMMIT")

    def insert(self, record: AssetRecord) -> AssetRecord:
        """Insert a new asset record and return it with its row id."""
        params = _record_params(record)
        placeholders = ", ".join("?" for _ in _ASSET_COLUMNS)
        with self.transaction():
            cursor = self._connection().execute(
                f"INSERT INTO assets ({', '.join(_ASSET_COLUMNS)}) VALUES ({placeholders})",
                [params[column] for column in _ASSET_COLUMNS],
            )
        return record.model_copy(update={"id": cursor.lastrowid})

    def update(self, record: AssetRecord) -> AssetRecord:
        """Rewrite the mutable columns of the record identified by ``record.path``."""
        params = _record_params(record)
        assignments = ", ".join(f"{column} = ?" for column in _MUTABLE_COLUMNS)
        with self.transaction():
            cursor = self._connection().execute(
                f"UPDATE assets SET {assignments} WHERE path = ?",
                [params[column] for column in _MUTABLE_COLUMNS] + [record.path],
            )
            if cursor.rowcount != 1:
                raise CatalogError(f"No catalog record to update for {record.path}")
        return record

    def append_event(self, entry: EventLogEntry) -> EventLogEntry:
        """Append an entry to the event log."""
        data = entry.model_dump(mode="json")
        with self.transaction():
            cursor = self._connection().execute(
                "INSERT INTO events (kind, path, message, timestamp) VALUES (?, ?, ?, ?)",
                (data["kind"], data["path"], data["message"], data["timestamp"]),
            )
        return entry.model_copy(update={"id": cursor.lastrowid})

    # ------------------------------------------------------------------ #
    # Read side                                                          #
    # ------------------------------------------------------------------ #

    def get(self, path: str) -> Optional[AssetRecord]:
        """Return the record whose identity key is ``path``, if any."""
        row = self._fetchone("SELECT * FROM assets WHERE path = ?", (path,))
        return AssetRecord.model_validate(dict(row)) if row is not None else None

    def iter_assets(self) -> Iterator[AssetRecord]:
        """Yield every record ordered by path."""
        for row in self._fetchall("SELECT * FROM assets ORDER BY path"):
            yield AssetRecord.model_validate(dict(row))

    def count(self) -> int:
        row = self._fetchone("SELECT COUNT(*) AS total FROM assets")
        return int(row["total"]) if row is not None else 0

    def recent_events(self, limit: int = 50) -> List[EventLogEntry]:
        """Return up to ``limit`` event log entries, most recent first."""
        rows = self._fetchall("SELECT * FROM events ORDER BY id DESC LIMIT ?", (max(0, limit),))
        return [EventLogEntry.model_validate(dict(row)) for row in rows]

    def summary(self) -> CatalogSummary:
        """Return totals, counts per category/status and average processing time."""
        row = self._fetchone(
            """
            SELECT
                COUNT(*) AS total,
                COALESCE(SUM(status = 'Completed'), 0) AS completed,
                COALESCE(SUM(status = 'Failed'), 0) AS failed,
                COALESCE(SUM(status = 'Pending'), 0) AS pending,
                COALESCE(SUM(size_bytes), 0) AS total_size,
                COALESCE(AVG(processing_ms), 0) AS avg_ms
            FROM assets
            """
        )
        if row is None:
            return CatalogSummary()
        by_category = {
            item["category"]: item["total"]
            for item in self._fetchall(
                "SELECT category, COUNT(*) AS total FROM assets GROUP BY category"
            )
        }
        by_status = {
            item["status"]: item["total"]
            for item in self._fetchall("SELECT status, COUNT(*) AS total FROM assets GROUP BY status")
        }
        return CatalogSummary(
            total_assets=row["total"],
            completed_assets=row["completed"],
            failed_assets=row["failed"],
            pending_assets=row["pending"],
            total_size_bytes=row["total_size"],
            avg_processing_ms=round(row["avg_ms"], 2),
            by_category=by_category,
            by_status=by_status,
        )

    def category_breakdown(self) -> List[CategoryBreakdown]:
        """Return per-category count, size and average time, largest count first."""
        rows = self._fetchall(
            """
            SELECT
                category,
                COUNT(*) AS total,
                COALESCE(SUM(size_bytes), 0) AS total_size,
                COALESCE(AVG(processing_ms), 0) AS avg_ms
            FROM assets
            GROUP BY category
            ORDER BY total DESC, category
            """
        )
        return [
            CategoryBreakdown(
                category=row["category"],
                count=row["total"],
                total_size_bytes=row["total_size"],
                avg_processing_ms=round(row["avg_ms"], 2),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise CatalogError("Catalog is not open; call open() first.")
        return self._conn

    def _fetchone(self, sql: str, params: tuple[Any, ...] = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            return self._connection().execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: tuple[Any, ...] = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._connection().execute(sql, params).fetchall()


def _record_params(record: AssetRecord) -> dict[str, Any]:
    return record.model_dump(mode="json", exclude={"id"})


__all__ = ["CatalogRepository", "MEMORY_DATABASE"]
