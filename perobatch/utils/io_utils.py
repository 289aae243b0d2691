"""
Basic file-system helpers for result artifacts.
"""

from __future__ import annotations

from pathlib import Path


def ensure_parent(path: str | Path) -> None:
    """
    Ensure that the parent directory for the given path exists.

    Creates all missing parents with `exist_ok=True` and does not
    touch the file itself.
    """
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def write_bytes(path: str | Path, content: bytes) -> None:
    """
    Write ``content`` to ``path``, truncating any existing file.

    Args:
      path: Destination file path.
      content: Raw response body.
    """
    ensure_parent(path)
    with open(path, "wb") as f:
        f.write(content)
