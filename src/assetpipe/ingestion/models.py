"""Data models shared by discovery and the per-asset pipeline."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


class AssetCategory(str, Enum):
    """Broad asset family derived from the file extension."""

    IMAGE = "Image"
    AUDIO = "Audio"
    MODEL = "Model"
    CONFIG = "Config"
    SCRIPT = "Script"
    OTHER = "Other"


class AssetStatus(str, Enum):
    """Catalog-visible processing status of an asset."""

    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    SKIPPED = "Skipped"


class PipelineStage(str, Enum):
    """States of the per-asset pipeline state machine."""

    DISCOVERED = "Discovered"
    VALIDATING = "Validating"
    HASHING = "Hashing"
    METADATA_EXTRACTION = "MetadataExtraction"
    COMPLETED = "Completed"
    FAILED = "Failed"
    SKIPPED = "Skipped"


TERMINAL_STAGES = frozenset({PipelineStage.COMPLETED, PipelineStage.FAILED, PipelineStage.SKIPPED})


def normalize_asset_path(path: str | os.PathLike[str]) -> str:
    """Return the identity key for ``path``: absolute, normalized, case-folded where the OS is."""
    return os.path.normcase(os.path.abspath(os.path.expanduser(os.fspath(path))))


class Classification(BaseModel):
    """Result of classifying a file extension."""

    supported: bool
    category: AssetCategory = AssetCategory.OTHER
    mime_type: str = "application/octet-stream"


class PendingFile(BaseModel):
    """Candidate file yielded by the directory scanner."""

    path: Path
    size_bytes: int
    modified_at: Optional[datetime] = None


class PipelineRun(BaseModel):
    """Working record for one pass of a file through the pipeline.

    A run only becomes a catalog record once the change coordinator accepts it.
    """

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
    stage: PipelineStage = PipelineStage.DISCOVERED
    transitions: List[PipelineStage] = Field(
        default_factory=lambda: [PipelineStage.DISCOVERED]
    )

    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_STAGES


__all__ = [
    "AssetCategory",
    "AssetStatus",
    "PipelineStage",
    "TERMINAL_STAGES",
    "Classification",
    "PendingFile",
    "PipelineRun",
    "normalize_asset_path",
]
