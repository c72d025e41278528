"""Tests covering the per-asset pipeline state machine."""

from datetime import datetime
from pathlib import Path

import pytest
from PIL import Image

from assetpipe.ingestion import pipeline as pipeline_module
from assetpipe.ingestion import (
    AssetCategory,
    AssetPipeline,
    AssetStatus,
    ExtensionClassifier,
    HashComputer,
    MetadataExtractor,
    PipelineRun,
    PipelineStage,
    PipelineStateError,
)


class _ExplodingHasher(HashComputer):
    def compute(self, path: Path) -> str:
        raise PermissionError(f"Access to the path '{path.name}' is denied.")


class _ExplodingExtractor(MetadataExtractor):
    def extract(self, path: Path, extension: str) -> tuple[int, int]:
        raise ValueError("corrupt header")


class _OutOfRangeDatetime(datetime):
    @classmethod
    def fromtimestamp(cls, *args: object, **kwargs: object) -> datetime:  # type: ignore[override]
        raise OverflowError("timestamp out of range for platform time_t")


def _pipeline(tmp_path: Path, **overrides: object) -> AssetPipeline:
    options: dict[str, object] = {
        "classifier": ExtensionClassifier(),
        "hasher": HashComputer(),
        "extractor": MetadataExtractor(),
        "thumbnail_dir": tmp_path / "thumbs",
    }
    options.update(overrides)
    return AssetPipeline(**options)  # type: ignore[arg-type]


def test_png_completes_with_dimensions_and_thumbnail_slot(tmp_path: Path) -> None:
    root = tmp_path / "assets"
    (root / "sprites").mkdir(parents=True)
    image_path = root / "sprites" / "hero.png"
    Image.new("RGB", (32, 64), color="green").save(image_path)

    run = _pipeline(tmp_path).process(image_path, root)

    assert run.status is AssetStatus.COMPLETED
    assert run.stage is PipelineStage.COMPLETED
    assert run.transitions == [
        PipelineStage.DISCOVERED,
        PipelineStage.VALIDATING,
        PipelineStage.HASHING,
        PipelineStage.METADATA_EXTRACTION,
        PipelineStage.COMPLETED,
    ]
    assert run.category is AssetCategory.IMAGE
    assert run.mime_type == "image/png"
    assert (run.image_width, run.image_height) == (32, 64)
    assert run.relative_path == str(Path("sprites") / "hero.png")
    assert run.file_name == "hero"
    assert run.extension == ".png"
    assert run.size_bytes == image_path.stat().st_size
    assert run.fingerprint is not None and len(run.fingerprint) == 32
    assert run.thumbnail_path == str(tmp_path / "thumbs" / f"{run.fingerprint}_thumb.png")
    assert run.processed_at is not None
    assert run.processing_ms >= 0
    assert run.error_message is None


def test_non_image_skips_dimension_parsing(tmp_path: Path) -> None:
    path = tmp_path / "level.json"
    path.write_text('{"level": 1}', encoding="utf-8")

    run = _pipeline(tmp_path).process(path, tmp_path)

    assert run.status is AssetStatus.COMPLETED
    assert run.category is AssetCategory.CONFIG
    assert run.image_width is None
    assert run.thumbnail_path is None


def test_unsupported_extension_is_skipped(tmp_path: Path) -> None:
    path = tmp_path / "notes.tmp"
    path.write_text("scratch", encoding="utf-8")

    run = _pipeline(tmp_path).process(path, tmp_path)

    assert run.status is AssetStatus.SKIPPED
    assert run.error_message == "Unsupported extension: .tmp"
    assert run.transitions == [
        PipelineStage.DISCOVERED,
        PipelineStage.VALIDATING,
        PipelineStage.SKIPPED,
    ]
    assert run.fingerprint is None


def test_missing_file_fails_with_message(tmp_path: Path) -> None:
    run = _pipeline(tmp_path).process(tmp_path / "gone.wav", tmp_path)

    assert run.status is AssetStatus.FAILED
    assert run.error_message == "File not found"
    assert run.transitions[-2:] == [PipelineStage.VALIDATING, PipelineStage.FAILED]
    assert run.processed_at is not None


def test_hashing_error_message_is_kept_verbatim(tmp_path: Path) -> None:
    path = tmp_path / "locked.ogg"
    path.write_bytes(b"ogg")

    run = _pipeline(tmp_path, hasher=_ExplodingHasher()).process(path, tmp_path)

    assert run.status is AssetStatus.FAILED
    assert run.error_message == "Access to the path 'locked.ogg' is denied."
    assert run.size_bytes == 3
    assert run.transitions[-2:] == [PipelineStage.HASHING, PipelineStage.FAILED]
    assert run.processed_at is not None


def test_extraction_failure_does_not_fail_asset(tmp_path: Path) -> None:
    path = tmp_path / "broken.png"
    path.write_bytes(b"\x89P")

    run = _pipeline(tmp_path, extractor=_ExplodingExtractor()).process(path, tmp_path)

    assert run.status is AssetStatus.COMPLETED
    assert run.image_width is None
    assert run.fingerprint is not None


def test_short_png_completes_with_zero_dimensions(tmp_path: Path) -> None:
    path = tmp_path / "tiny.png"
    path.write_bytes(b"\x89PNG")

    run = _pipeline(tmp_path).process(path, tmp_path)

    assert run.status is AssetStatus.COMPLETED
    assert (run.image_width, run.image_height) == (0, 0)


def test_illegal_transition_raises() -> None:
    run = PipelineRun(path="/x.png", relative_path="x.png", file_name="x", extension=".png")

    with pytest.raises(PipelineStateError):
        AssetPipeline._advance(run, PipelineStage.COMPLETED)


def test_unrepresentable_timestamp_fails_asset(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "theme.ogg"
    path.write_bytes(b"ogg")
    monkeypatch.setattr(pipeline_module, "datetime", _OutOfRangeDatetime)

    run = _pipeline(tmp_path).process(path, tmp_path)

    assert run.status is AssetStatus.FAILED
    assert run.error_message == "timestamp out of range for platform time_t"
    assert run.transitions[-2:] == [PipelineStage.VALIDATING, PipelineStage.FAILED]
    assert run.fingerprint is None
    assert run.processed_at is not None
