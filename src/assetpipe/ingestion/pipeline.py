"""Per-asset pipeline orchestration and its state machine."""

from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

from .detectors import ExtensionClassifier, HashComputer
from .extractors import MetadataExtractor
from .models import (
    AssetCategory,
    AssetStatus,
    PipelineRun,
    PipelineStage,
    normalize_asset_path,
)

LOGGER = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Mapping[PipelineStage, frozenset[PipelineStage]] = {
    PipelineStage.DISCOVERED: frozenset({PipelineStage.VALIDATING}),
    PipelineStage.VALIDATING: frozenset(
        {PipelineStage.SKIPPED, PipelineStage.FAILED, PipelineStage.HASHING}
    ),
    PipelineStage.HASHING: frozenset({PipelineStage.METADATA_EXTRACTION, PipelineStage.FAILED}),
    PipelineStage.METADATA_EXTRACTION: frozenset(
        {PipelineStage.COMPLETED, PipelineStage.FAILED}
    ),
    PipelineStage.COMPLETED: frozenset(),
    PipelineStage.FAILED: frozenset(),
    PipelineStage.SKIPPED: frozenset(),
}

_STAGE_STATUS = {
    PipelineStage.DISCOVERED: AssetStatus.PENDING,
    PipelineStage.COMPLETED: AssetStatus.COMPLETED,
    PipelineStage.FAILED: AssetStatus.FAILED,
    PipelineStage.SKIPPED: AssetStatus.SKIPPED,
}


class PipelineStateError(RuntimeError):
    """Raised when a run attempts a transition the state machine does not allow."""


def _file_created_at(stat: os.stat_result) -> datetime:
    created = getattr(stat, "st_birthtime", None) or stat.st_ctime
    return datetime.fromtimestamp(created, tz=timezone.utc)


def _relative_path(path: Path, root: Path) -> str:
    try:
        return os.path.relpath(path, root)
    except ValueError:
        return path.name


class AssetPipeline:
    """Run a single file through validation, hashing and metadata extraction."""

    def __init__(
        self,
        classifier: ExtensionClassifier,
        hasher: HashComputer,
        extractor: MetadataExtractor,
        thumbnail_dir: Path | None = None,
    ) -> None:
        self.classifier = classifier
        self.hasher = hasher
        self.extractor = extractor
        self.thumbnail_dir = thumbnail_dir

    def process(self, path: Path, root: Path) -> PipelineRun:
        """Process ``path`` and return a run in a terminal stage.

        Never raises for per-file problems: missing or unreadable files end in
        ``Failed`` with the error captured, unsupported extensions in ``Skipped``.

        Args:
            path: File to process.
            root: Root directory the file was discovered under.

        Returns:
            PipelineRun: Run in ``Completed``, ``Failed`` or ``Skipped``.
        """
        started = time.perf_counter()
        file_path = Path(path)
        run = PipelineRun(
            path=normalize_asset_path(file_path),
            relative_path=_relative_path(file_path, Path(root)),
            file_name=file_path.stem,
            extension=file_path.suffix.lower(),
        )

        self._advance(run, PipelineStage.VALIDATING)
        classification = self.classifier.classify(run.extension)
        if not classification.supported:
            run.error_message = f"Unsupported extension: {run.extension}"
            self._advance(run, PipelineStage.SKIPPED)
            LOGGER.debug("Skipped %s: %s", run.path, run.error_message)
            return run

        try:
            stat = file_path.stat()
        except OSError:
            stat = None
        if stat is None or not file_path.is_file():
            run.error_message = "File not found"
            return self._finish(run, PipelineStage.FAILED, started)

        try:
            run.size_bytes = stat.st_size
            run.file_created_at = _file_created_at(stat)
            run.file_modified_at = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        except Exception as exc:
            run.error_message = str(exc)
            LOGGER.info("Validation failed for %s: %s", run.path, exc)
            return self._finish(run, PipelineStage.FAILED, started)

        run.category = classification.category
        run.mime_type = classification.mime_type

        self._advance(run, PipelineStage.HASHING)
        try:
            run.fingerprint = self.hasher.compute(file_path)
        except Exception as exc:
            run.error_message = str(exc)
            LOGGER.info("Hashing failed for %s: %s", run.path, exc)
            return self._finish(run, PipelineStage.FAILED, started)

        self._advance(run, PipelineStage.METADATA_EXTRACTION)
        if run.category is AssetCategory.IMAGE:
            self._extract_image_metadata(run, file_path)

        return self._finish(run, PipelineStage.COMPLETED, started)

    def _extract_image_metadata(self, run: PipelineRun, file_path: Path) -> None:
        try:
            run.image_width, run.image_height = self.extractor.extract(file_path, run.extension)
            if self.thumbnail_dir is not None:
                run.thumbnail_path = str(
                    self.thumbnail_dir / f"{run.fingerprint}_thumb{run.extension}"
                )
        except Exception as exc:  # image metadata is non-critical
            LOGGER.debug("Image metadata unavailable for %s: %s", run.path, exc)

    def _finish(self, run: PipelineRun, stage: PipelineStage, started: float) -> PipelineRun:
        self._advance(run, stage)
        run.processing_ms = (time.perf_counter() - started) * 1000.0
        run.processed_at = datetime.now(timezone.utc)
        return run

    @staticmethod
    def _advance(run: PipelineRun, stage: PipelineStage) -> None:
        if stage not in ALLOWED_TRANSITIONS[run.stage]:
            raise PipelineStateError(
                f"Illegal pipeline transition {run.stage.value} -> {stage.value} for {run.path}"
            )
        run.stage = stage
        run.transitions.append(stage)
        run.status = _STAGE_STATUS.get(stage, AssetStatus.PROCESSING)


__all__ = ["ALLOWED_TRANSITIONS", "AssetPipeline", "PipelineStateError"]
