"""Extension classification and content fingerprinting."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import BinaryIO, Dict, Mapping

from assetpipe.config.models import ExtensionSettings, ProcessingOptions

from .models import AssetCategory, Classification

DEFAULT_MIME_TYPE = "application/octet-stream"

_CATEGORY_FIELDS = {
    "image": AssetCategory.IMAGE,
    "audio": AssetCategory.AUDIO,
    "model": AssetCategory.MODEL,
    "config": AssetCategory.CONFIG,
    "script": AssetCategory.SCRIPT,
    "other": AssetCategory.OTHER,
}


def _normalize_extension(value: str) -> str:
    ext = value.strip().lower()
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return ext


class ExtensionClassifier:
    """Map file extensions onto a category and MIME hint using an injected allowlist."""

    def __init__(
        self,
        extensions: ExtensionSettings | None = None,
        mime_types: Mapping[str, str] | None = None,
    ) -> None:
        settings = extensions or ExtensionSettings()
        self._categories: Dict[str, AssetCategory] = {}
        for field_name, category in _CATEGORY_FIELDS.items():
            for ext in getattr(settings, field_name):
                # First category wins when an extension is listed twice.
                self._categories.setdefault(ext.lower(), category)
        if mime_types is None:
            mime_types = ProcessingOptions().mime_types
        self._mime_types = {key.lower(): value for key, value in mime_types.items()}

    @classmethod
    def from_options(cls, processing: ProcessingOptions) -> "ExtensionClassifier":
        """Build a classifier from the processing section of the configuration."""
        return cls(processing.extensions, processing.mime_types)

    @property
    def supported_extensions(self) -> frozenset[str]:
        return frozenset(self._categories)

    def classify(self, extension: str) -> Classification:
        """Return support, category and MIME hint for an extension.

        Args:
            extension: Extension with or without the leading dot (``".PNG"``, ``"png"``).

        Returns:
            Classification: ``supported=False`` with category ``Other`` when the
            extension is not on the allowlist.
        """
        ext = _normalize_extension(extension)
        category = self._categories.get(ext)
        mime_type = self._mime_types.get(ext, DEFAULT_MIME_TYPE)
        if category is None:
            return Classification(supported=False, category=AssetCategory.OTHER, mime_type=mime_type)
        return Classification(supported=True, category=category, mime_type=mime_type)

    def is_supported(self, path: str | os.PathLike[str]) -> bool:
        return Path(path).suffix.lower() in self._categories


class HashComputer:
    """Compute content fingerprints for change detection.

    The digest is MD5. It detects accidental content change only and must not be
    relied on for integrity or tamper detection.
    """

    def __init__(self, chunk_size: int = 1024 * 1024) -> None:
        self.chunk_size = max(1, chunk_size)

    def compute(self, path: Path) -> str:
        """Return a 32-character hex fingerprint of the file contents."""
        with Path(path).open("rb") as handle:
            return self.compute_stream(handle)

    def compute_stream(self, handle: BinaryIO) -> str:
        """Stream ``handle`` to EOF and return its hex fingerprint."""
        digest = hashlib.md5(usedforsecurity=False)
        for chunk in iter(lambda: handle.read(self.chunk_size), b""):
            digest.update(chunk)
        return digest.hexdigest()
