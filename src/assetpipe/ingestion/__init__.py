"""Ingestion pipeline: discovery, classification, fingerprinting and metadata."""

from .detectors import ExtensionClassifier, HashComputer
from .discovery import DirectoryScanner
from .extractors import MetadataExtractor
from .models import (
    AssetCategory,
    AssetStatus,
    Classification,
    PendingFile,
    PipelineRun,
    PipelineStage,
    normalize_asset_path,
)
from .pipeline import AssetPipeline, PipelineStateError

__all__ = [
    "AssetCategory",
    "AssetPipeline",
    "AssetStatus",
    "Classification",
    "DirectoryScanner",
    "ExtensionClassifier",
    "HashComputer",
    "MetadataExtractor",
    "PendingFile",
    "PipelineRun",
    "PipelineStage",
    "PipelineStateError",
    "normalize_asset_path",
]
