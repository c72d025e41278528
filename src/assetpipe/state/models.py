"""Catalog record and event log models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field

from assetpipe.ingestion.models import AssetCategory, AssetStatus, PipelineRun


def format_size(size_bytes: int) -> str:
    """Render a byte count as B/KB/MB/GB for operator output."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    if size_bytes < 1024**3:
        return f"{size_bytes / 1024**2:.1f} MB"
    return f"{size_bytes / 1024**3:.2f} GB"


class AssetRecord(BaseModel):
    """Catalog entry for one file path.

    ``path`` is the identity key and never changes. ``fingerprint`` is the
    change-detection key and changes only when the bytes do.
    """

    id: Optional[int] = None
    path: str
    relative_path: str
    file_name: str
    extension: str
    category: AssetCategory = AssetCategory.OTHER
    mime_type: Optional[str] = None
    size_bytes: int = 0
    fingerprint: Optional[str] = None
    status: AssetStatus = AssetStatus.PENDING
    error_message: Optional[str] = None
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    thumbnail_path: Optional[str] = None
    file_created_at: Optional[datetime] = None
    file_modified_at: Optional[datetime] = None
    discovered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: Optional[datetime] = None
    processing_ms: float = 0.0

    @property
    def size_display(self) -> str:
        return format_size(self.size_bytes)

    @classmethod
    def from_run(cls, run: PipelineRun) -> "AssetRecord":
        """Build a new catalog record from a finished pipeline run."""
        return cls.model_validate(run.model_dump(exclude={"stage", "transitions"}))


class EventKind(str, Enum):
    """Kinds of entries written to the append-only event log."""

    FILE_DISCOVERED = "FileDiscovered"
    FILE_UPDATED = "FileUpdated"


class EventLogEntry(BaseModel):
    """Immutable audit entry describing a catalog change."""

    id: Optional[int] = None
    kind: EventKind
    path: str
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CatalogSummary(BaseModel):
    """Aggregate statistics over the catalog."""

    total_assets: int = 0
    completed_assets: int = 0
    failed_assets: int = 0
    pending_assets: int = 0
    total_size_bytes: int = 0
    avg_processing_ms: float = 0.0
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_status: Dict[str, int] = Field(default_factory=dict)


class CategoryBreakdown(BaseModel):
    """Per-category count, size and timing."""

    category: AssetCategory
    count: int
    total_size_bytes: int
    avg_processing_ms: float


__all__ = [
    "AssetRecord",
    "CatalogSummary",
    "CategoryBreakdown",
    "EventKind",
    "EventLogEntry",
    "format_size",
]
