"""Batch OCR of scanned-page directories through the PERO OCR service."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pero-batch-ocr")
except PackageNotFoundError:
    __version__ = "unknown"
