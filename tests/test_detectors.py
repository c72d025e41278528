"""Tests for extension classification and content fingerprinting."""

import hashlib
import io
from pathlib import Path

import pytest

from assetpipe.config import ExtensionSettings, ProcessingOptions
from assetpipe.ingestion import AssetCategory, ExtensionClassifier, HashComputer


@pytest.mark.parametrize(
    ("extension", "category", "mime_type"),
    [
        (".png", AssetCategory.IMAGE, "image/png"),
        (".PNG", AssetCategory.IMAGE, "image/png"),
        ("png", AssetCategory.IMAGE, "image/png"),
        (".mp3", AssetCategory.AUDIO, "audio/mpeg"),
        (".fbx", AssetCategory.MODEL, "application/octet-stream"),
        (".yaml", AssetCategory.CONFIG, "application/octet-stream"),
        (".lua", AssetCategory.SCRIPT, "application/octet-stream"),
        (".md", AssetCategory.OTHER, "application/octet-stream"),
    ],
)
def test_classifier_maps_supported_extensions(
    extension: str, category: AssetCategory, mime_type: str
) -> None:
    result = ExtensionClassifier().classify(extension)

    assert result.supported is True
    assert result.category is category
    assert result.mime_type == mime_type


def test_classifier_rejects_unknown_extensions() -> None:
    classifier = ExtensionClassifier()

    result = classifier.classify(".tmp")

    assert result.supported is False
    assert result.category is AssetCategory.OTHER
    assert result.mime_type == "application/octet-stream"
    assert classifier.classify("").supported is False


def test_classifier_uses_injected_allowlist() -> None:
    options = ProcessingOptions(
        extensions=ExtensionSettings(image=["psd"], audio=[], model=[], config=[], script=[]),
        mime_types={".psd": "image/vnd.adobe.photoshop"},
    )
    classifier = ExtensionClassifier.from_options(options)

    assert classifier.is_supported("art/cover.PSD")
    assert not classifier.is_supported("art/cover.png")
    assert classifier.classify(".psd").mime_type == "image/vnd.adobe.photoshop"
    assert classifier.supported_extensions == frozenset({".psd", ".txt", ".md"})


def test_hash_is_deterministic_and_path_independent(tmp_path: Path) -> None:
    first = tmp_path / "a.bin"
    second = tmp_path / "nested" / "b.bin"
    second.parent.mkdir()
    payload = b"asset-bytes" * 1000
    first.write_bytes(payload)
    second.write_bytes(payload)

    hasher = HashComputer(chunk_size=64)

    digest = hasher.compute(first)
    assert digest == hasher.compute(second)
    assert digest == hashlib.md5(payload).hexdigest()
    assert len(digest) == 32
    assert digest == digest.lower()


def test_hash_changes_with_single_byte(tmp_path: Path) -> None:
    path = tmp_path / "data.bin"
    path.write_bytes(b"\x00" * 128)
    hasher = HashComputer()
    before = hasher.compute(path)

    path.write_bytes(b"\x00" * 127 + b"\x01")

    assert hasher.compute(path) != before


def test_hash_stream_of_empty_input() -> None:
    assert HashComputer().compute_stream(io.BytesIO(b"")) == hashlib.md5(b"").hexdigest()


def test_hash_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        HashComputer().compute(tmp_path / "missing.png")
