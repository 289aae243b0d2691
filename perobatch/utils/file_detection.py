"""
Image discovery and file type detection using magic bytes.

Magic bytes reference:
- PDF:  %PDF (0x25504446)
- JPEG: 0xFFD8FF
- PNG:  0x89504E47 (89 P N G)
- TIFF: 0x49492A00 (little-endian) or 0x4D4D002A (big-endian)
- JPEG 2000: 0x0000000C6A502020 (JP2 box) or 0xFF4FFF51 (codestream)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Final, Literal, Optional

from perobatch.core.exceptions import DirectoryScanError, InvalidDirectoryError

FileType = Literal["pdf", "jpeg", "png", "tiff", "jp2"]

MAGIC_BYTES_MAP: Final[dict[bytes, FileType]] = {
    b"%PDF": "pdf",
    b"\xff\xd8\xff": "jpeg",
    b"\x89PNG": "png",
    b"\x49\x49\x2a\x00": "tiff",
    b"\x4d\x4d\x00\x2a": "tiff",
    b"\x00\x00\x00\x0cjP  ": "jp2",
    b"\xff\x4f\xff\x51": "jp2",
}

IMAGE_EXTENSIONS: Final[dict[str, FileType]] = {
    ".tiff": "tiff",
    ".tif": "tiff",
    ".jpg": "jpeg",
    ".jpeg": "jpeg",
    ".png": "png",
    ".jp2": "jp2",
    ".jp2k": "jp2",
}

TIFF_EXTENSIONS: Final[frozenset[str]] = frozenset({".tif", ".tiff"})


def detect_file_type_from_bytes(header: bytes) -> Optional[FileType]:
    """
    Detect file type from magic bytes header.

    Args:
        header: First 12+ bytes of file

    Returns:
        File type or None if unrecognized

    Example:
        >>> detect_file_type_from_bytes(b'II*\\x00\\x08\\x00')
        'tiff'
    """
    for signature, result in MAGIC_BYTES_MAP.items():
        if header.startswith(signature):
            return result
    return None


def detect_file_type_from_path(file_path: str | Path) -> Optional[FileType]:
    """
    Detect file type by reading magic bytes from disk, falling back to the
    extension when the header is unreadable or unrecognized.
    """
    try:
        with open(file_path, "rb") as f:
            header = f.read(12)
    except OSError:
        header = b""
    return detect_file_type_from_bytes(header) or IMAGE_EXTENSIONS.get(Path(file_path).suffix.lower())


def is_image(path: str | Path) -> bool:
    """True if the extension is one the batch uploads."""
    return Path(path).suffix.lower() in IMAGE_EXTENSIONS


def is_tiff(path: str | Path) -> bool:
    return Path(path).suffix.lower() in TIFF_EXTENSIONS


def discover_images(directory: str | Path) -> list[Path]:
    """
    Walk ``directory`` recursively and return every image file in sorted
    order. Hidden files are skipped; they include in-flight upload copies.

    Raises:
        InvalidDirectoryError: ``directory`` is not an existing directory.
        DirectoryScanError: A subdirectory cannot be read.
    """
    root = Path(directory)
    if not root.is_dir():
        raise InvalidDirectoryError(str(directory))

    def _on_error(err: OSError) -> None:
        raise DirectoryScanError(str(directory), str(err))

    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames.sort()
        for name in sorted(filenames):
            if name.startswith("."):
                continue
            if is_image(name):
                found.append(Path(dirpath) / name)
    return found
