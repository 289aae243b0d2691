from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from perobatch.clients.pero_client import PeroClient
from perobatch.core.config import ARTIFACT_EXTENSIONS
from perobatch.core.exceptions import (
    ArtifactUnavailableError,
    ArtifactWriteError,
    ResponseDecodeError,
    TransportError,
)
from perobatch.models.dto import DownloadReport, ImageAsset
from perobatch.utils.cancellation import CancellationToken
from perobatch.utils.io_utils import write_bytes

logger = logging.getLogger(__name__)


def artifact_path(image_path: Path, artifact: str) -> Path:
    """``scan/a.tif`` + "alto" -> ``scan/a.xml``."""
    return image_path.with_suffix(ARTIFACT_EXTENSIONS[artifact])


class ResultDownloader:
    """Fetch text and ALTO layout for each key; one attempt per artifact.

    A missing or unwritable artifact is logged and recorded in the report,
    and the next artifact is attempted regardless.
    """

    def __init__(
        self,
        client: PeroClient,
        artifacts: Sequence[str] = ("txt", "alto"),
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        self.client = client
        self.artifacts = tuple(artifacts)
        self.cancel_token = cancel_token or CancellationToken()

    def download_one(self, request_id: str, asset: ImageAsset, artifact: str) -> Path:
        content = self.client.download_result(request_id, asset.key, artifact)
        target = artifact_path(asset.path, artifact)
        try:
            write_bytes(target, content)
        except OSError as e:
            raise ArtifactWriteError(str(target), str(e)) from e
        return target

    def download_all(self, request_id: str, assets: Sequence[ImageAsset]) -> DownloadReport:
        report = DownloadReport()
        for asset in assets:
            for artifact in self.artifacts:
                self.cancel_token.raise_if_cancelled("download")
                extra = {"request_id": request_id, "image_key": asset.key, "artifact": artifact}
                try:
                    target = self.download_one(request_id, asset, artifact)
                except ArtifactUnavailableError as e:
                    logger.warning(e.message, extra={**extra, "error_code": e.error_code, "http_status": e.status_code})
                    report.missing[f"{asset.key}/{artifact}"] = e.message
                    continue
                except (TransportError, ResponseDecodeError, ArtifactWriteError) as e:
                    logger.error(e.message, extra={**extra, "error_code": e.error_code})
                    report.missing[f"{asset.key}/{artifact}"] = e.message
                    continue
                logger.debug("wrote %s", target, extra=extra)
                report.written.append(target)

        logger.info(
            "downloaded %d artifacts, %d missing",
            len(report.written),
            len(report.missing),
            extra={"request_id": request_id},
        )
        return report
