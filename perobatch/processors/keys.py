"""
Remote key derivation.

The OCR service correlates upload, status and download by key only, so the
key must be stable for a path and unique inside one request.
"""

from __future__ import annotations

import os
import unicodedata
from pathlib import Path
from typing import Iterable

from perobatch.core.exceptions import InvalidKeyError, KeyCollisionError
from perobatch.models.dto import ImageAsset
from perobatch.utils.file_detection import detect_file_type_from_path


def _base_name(path: str) -> str:
    return os.path.basename(path.rstrip(os.sep))


def strip_diacritics(text: str) -> str:
    """NFD, drop nonspacing marks (Mn), recompose to NFC."""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return unicodedata.normalize("NFC", stripped)


def derive_key(path: str | Path) -> str:
    """
    Map a local file path to its service key.

    Example:
        >>> derive_key("/scans/café report.tif")
        'cafereport.tif'
    """
    name = _base_name(str(path))
    name = "".join(name.split())
    return strip_diacritics(name)


def require_key(path: str | Path) -> str:
    """derive_key that rejects an empty result."""
    key = derive_key(path)
    if not key:
        raise InvalidKeyError(str(path))
    return key


def build_assets(paths: Iterable[str | Path]) -> list[ImageAsset]:
    """
    Derive keys for every path, keeping the input order.

    Raises:
        InvalidKeyError: A path produces an empty key.
        KeyCollisionError: Two paths produce the same key.
    """
    assets: list[ImageAsset] = []
    seen: dict[str, Path] = {}
    for raw in paths:
        path = Path(raw)
        key = require_key(path)
        if key in seen:
            raise KeyCollisionError(key, [str(seen[key]), str(path)])
        seen[key] = path
        assets.append(ImageAsset(path=path, key=key, detected_format=detect_file_type_from_path(path)))
    return assets
