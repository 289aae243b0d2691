"""
Per-file upload. One unreadable or rejected image never stops the rest of
the directory from being uploaded.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from perobatch.clients.pero_client import PeroClient
from perobatch.core.exceptions import ResponseDecodeError, TranscodeError, TransportError, UploadRejectedError
from perobatch.models.dto import ImageAsset, UploadReport
from perobatch.processors.transcoder import upload_source
from perobatch.utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class Uploader:
    def __init__(self, client: PeroClient, cancel_token: Optional[CancellationToken] = None) -> None:
        self.client = client
        self.cancel_token = cancel_token or CancellationToken()

    def upload_one(self, request_id: str, asset: ImageAsset) -> None:
        """Transcode if needed and upload; the temporary JPEG is always removed."""
        with upload_source(asset.path) as source:
            self.client.upload_image(request_id, asset.key, source)

    def upload_all(self, request_id: str, assets: Sequence[ImageAsset]) -> UploadReport:
        report = UploadReport()
        for asset in assets:
            self.cancel_token.raise_if_cancelled("upload")
            extra = {"request_id": request_id, "image_key": asset.key, "image_path": str(asset.path)}
            try:
                self.upload_one(request_id, asset)
            except TranscodeError as e:
                logger.error("skipping %s: %s", asset.path, e.message, extra={**extra, "error_code": e.error_code})
                report.failed[asset.path] = e.message
                continue
            except UploadRejectedError as e:
                logger.error(
                    "Error server status code %d with message: %s (%s)",
                    e.status_code,
                    e.server_message,
                    asset.path,
                    extra={**extra, "error_code": e.error_code, "http_status": e.status_code},
                )
                report.failed[asset.path] = e.message
                continue
            except (TransportError, ResponseDecodeError) as e:
                logger.error("Error sending file %s: %s", asset.path, e.message, extra={**extra, "error_code": e.error_code})
                report.failed[asset.path] = e.message
                continue
            except OSError as e:
                logger.error("Error reading file %s: %s", asset.path, e, extra=extra)
                report.failed[asset.path] = str(e)
                continue

            logger.info("OK upload: %s", asset.path, extra=extra)
            report.uploaded.append(asset)

        logger.info(
            "uploaded %d / %d images",
            len(report.uploaded),
            len(assets),
            extra={"request_id": request_id, "done": len(report.uploaded), "total": len(assets)},
        )
        return report
