"""
Typed contracts for the OCR service responses and the batch data model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Service responses
# =============================================================================


class CreateRequestResponse(BaseModel):
    """Body of ``post_processing_request``."""

    model_config = ConfigDict(extra="ignore")

    status: str
    request_id: Optional[str] = None


class ImageState(BaseModel):
    model_config = ConfigDict(extra="ignore")

    state: str


class RequestStatusResponse(BaseModel):
    """Body of ``request_status/{request_id}``: state per image key."""

    model_config = ConfigDict(extra="ignore")

    request_status: dict[str, ImageState]


class EngineInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    description: Optional[str] = None


class EnginesResponse(BaseModel):
    """Body of ``get_engines``."""

    model_config = ConfigDict(extra="ignore")

    status: str
    engines: dict[str, EngineInfo] = Field(default_factory=dict)


class UploadErrorResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: Optional[str] = None


# =============================================================================
# Batch data model
# =============================================================================


@dataclass(frozen=True)
class ImageAsset:
    """A local image and the key that identifies it on the service."""

    path: Path
    key: str
    detected_format: Optional[str] = None


@dataclass(frozen=True)
class BatchRequest:
    """A created remote request; read-only after submission."""

    engine_id: int
    keys: tuple[str, ...]
    request_id: str


@dataclass(frozen=True)
class Engine:
    id: int
    name: str
    description: Optional[str] = None


@dataclass
class UploadReport:
    uploaded: list[ImageAsset] = field(default_factory=list)
    failed: dict[Path, str] = field(default_factory=dict)


@dataclass
class PollOutcome:
    """Terminal state of every polled key."""

    processed: list[ImageAsset] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    polls: int = 0


@dataclass
class DownloadReport:
    written: list[Path] = field(default_factory=list)
    missing: dict[str, str] = field(default_factory=dict)


@dataclass
class BatchResult:
    request: BatchRequest
    uploads: UploadReport
    poll: PollOutcome
    downloads: DownloadReport

    @property
    def has_failures(self) -> bool:
        return bool(self.uploads.failed or self.poll.failed or self.downloads.missing)
