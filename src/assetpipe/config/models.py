"""Configuration models describing assetpipe settings."""

from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AssetPipeBaseModel(BaseModel):
    """Shared configuration for assetpipe settings models."""

    model_config = ConfigDict(extra="forbid")


def _normalize_extensions(values: List[str]) -> List[str]:
    normalized: List[str] = []
    for value in values:
        ext = value.strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = f".{ext}"
        if ext not in normalized:
            normalized.append(ext)
    return normalized


class ExtensionSettings(AssetPipeBaseModel):
    """Allowlist of supported extensions grouped by asset category.

    Extensions listed under ``other`` are supported but carry the ``Other``
    category. Anything not listed anywhere is unsupported.

    Attributes:
        image: Raster and vector image formats.
        audio: Audio formats.
        model: 3D model and scene formats.
        config: Structured data and configuration formats.
        script: Source code and shader formats.
        other: Whitelisted files with no dedicated category.
    """

    image: List[str] = Field(
        default_factory=lambda: [
            ".png",
            ".jpg",
            ".jpeg",
            ".bmp",
            ".gif",
            ".tga",
            ".tiff",
            ".dds",
            ".svg",
        ]
    )
    audio: List[str] = Field(default_factory=lambda: [".wav", ".mp3", ".ogg", ".flac"])
    model: List[str] = Field(default_factory=lambda: [".fbx", ".obj", ".blend", ".gltf", ".glb"])
    config: List[str] = Field(
        default_factory=lambda: [".json", ".xml", ".yaml", ".yml", ".csv", ".ini", ".cfg"]
    )
    script: List[str] = Field(
        default_factory=lambda: [".cs", ".lua", ".py", ".shader", ".hlsl", ".glsl"]
    )
    other: List[str] = Field(default_factory=lambda: [".txt", ".md"])

    @field_validator("image", "audio", "model", "config", "script", "other")
    @classmethod
    def normalize_extensions(cls, values: List[str]) -> List[str]:
        """Lowercase entries and ensure each carries a leading dot."""
        return _normalize_extensions(values)


def _default_mime_types() -> Dict[str, str]:
    return {
        ".png": "image/png",
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".bmp": "image/bmp",
        ".gif": "image/gif",
        ".wav": "audio/wav",
        ".mp3": "audio/mpeg",
        ".json": "application/json",
        ".xml": "application/xml",
        ".csv": "text/csv",
    }


class ProcessingOptions(AssetPipeBaseModel):
    """Processing options governing discovery and the per-asset pipeline.

    Attributes:
        extensions: Supported extensions grouped by category.
        mime_types: MIME hints keyed by lowercase extension.
        include_hidden_files: Whether dot-files and dot-directories are scanned.
        follow_symlinks: Whether to traverse symbolic links while scanning.
        hash_chunk_size_kb: Read size used when streaming content into the fingerprint.
        header_bytes: Upper bound on bytes read when parsing image headers.
    """

    extensions: ExtensionSettings = Field(default_factory=ExtensionSettings)
    mime_types: Dict[str, str] = Field(default_factory=_default_mime_types)
    include_hidden_files: bool = True
    follow_symlinks: bool = False
    hash_chunk_size_kb: int = Field(default=1024, gt=0)
    header_bytes: int = Field(default=65_536, ge=32)


class WatchSettings(AssetPipeBaseModel):
    """Settings for the live filesystem watcher.

    Attributes:
        settle_delay_seconds: Quiet period after the last notification for a path
            before it is read.
        workers: Number of worker threads applying the pipeline.
        queue_size: Capacity of the notification work queue.
        recursive: Whether subdirectories of the root are watched.
    """

    settle_delay_seconds: float = Field(default=0.5, ge=0)
    workers: int = Field(default=4, ge=1)
    queue_size: int = Field(default=1024, ge=1)
    recursive: bool = True


class StorageSettings(AssetPipeBaseModel):
    """Locations of the catalog database and reserved thumbnail directory."""

    database_path: str = "~/.assetpipe/catalog.db"
    thumbnail_dir: str = "~/.assetpipe/thumbnails"


class LoggingSettings(AssetPipeBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional rotating log file; empty disables file logging.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    file: str = "~/.assetpipe/assetpipe.log"
    max_size_mb: int = 10
    backup_count: int = 5


class CLIOptions(AssetPipeBaseModel):
    """CLI behavior defaults.

    Attributes:
        quiet_default: Whether per-file output is suppressed by default.
        recent_events_limit: Number of event log entries shown by `status`.
    """

    quiet_default: bool = False
    recent_events_limit: int = Field(default=10, ge=0)


class AssetPipeConfig(AssetPipeBaseModel):
    """Top-level configuration struct for assetpipe."""

    processing: ProcessingOptions = Field(default_factory=ProcessingOptions)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "AssetPipeBaseModel",
    "ExtensionSettings",
    "ProcessingOptions",
    "WatchSettings",
    "StorageSettings",
    "LoggingSettings",
    "CLIOptions",
    "AssetPipeConfig",
]
