"""Binary header parsing for image dimensions."""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Tuple

Dimensions = Tuple[int, int]

PNG_SIGNATURE = b"\x89P"
BMP_SIGNATURE = b"BM"


def read_png_dimensions(data: bytes) -> Dimensions:
    """Return width/height from a PNG IHDR header.

    Width and height are big-endian 32-bit integers at offsets 16 and 20. Only
    the first two signature bytes are checked. Buffers of 24 bytes or fewer
    yield ``(0, 0)``.
    """
    if len(data) <= 24 or data[:2] != PNG_SIGNATURE:
        return 0, 0
    width, height = struct.unpack_from(">II", data, 16)
    return width, height


def read_bmp_dimensions(data: bytes) -> Dimensions:
    """Return width/height from a BMP info header.

    Width and height are little-endian signed 32-bit integers at offsets 18 and
    22. A negative height marks a top-down bitmap; its absolute value is returned.
    """
    if len(data) <= 26 or data[:2] != BMP_SIGNATURE:
        return 0, 0
    width, height = struct.unpack_from("<ii", data, 18)
    return width, abs(height)


_READERS = {
    ".png": read_png_dimensions,
    ".bmp": read_bmp_dimensions,
}


def image_dimensions(data: bytes, extension: str) -> Dimensions:
    """Dispatch to the header reader for ``extension``; unknown formats give ``(0, 0)``."""
    reader = _READERS.get(extension.lower())
    if reader is None:
        return 0, 0
    return reader(data)


class MetadataExtractor:
    """Extract structural metadata for image assets from a bounded header prefix."""

    def __init__(self, header_bytes: int = 65_536) -> None:
        self.header_bytes = header_bytes

    def supports(self, extension: str) -> bool:
        return extension.lower() in _READERS

    def extract(self, path: Path, extension: str) -> Dimensions:
        """Return ``(width, height)`` for the image at ``path``.

        Args:
            path: Image file to inspect.
            extension: Lowercase extension used to select the header reader.

        Returns:
            Dimensions: Parsed dimensions, or ``(0, 0)`` for unsupported formats
            and malformed headers.

        Raises:
            OSError: If the file cannot be read. Callers treat this as non-critical.
        """
        if not self.supports(extension):
            return 0, 0
        with Path(path).open("rb") as handle:
            header = handle.read(self.header_bytes)
        return image_dimensions(header, extension)


__all__ = [
    "Dimensions",
    "MetadataExtractor",
    "image_dimensions",
    "read_bmp_dimensions",
    "read_png_dimensions",
]
