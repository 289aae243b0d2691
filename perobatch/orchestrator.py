from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from perobatch.clients.pero_client import PeroClient
from perobatch.core.exceptions import NoImagesError, NothingUploadedError
from perobatch.core.settings import BatchSettings
from perobatch.models.dto import BatchResult, DownloadReport, ImageAsset
from perobatch.processors.downloader import ResultDownloader
from perobatch.processors.keys import build_assets
from perobatch.processors.poller import StatusPoller
from perobatch.processors.submitter import submit_batch
from perobatch.processors.uploader import Uploader
from perobatch.resilience.backoff import DelayStrategy, strategy_from_settings
from perobatch.utils.cancellation import CancellationToken
from perobatch.utils.file_detection import discover_images

logger = logging.getLogger(__name__)


def collect_assets(directory: Path) -> list[ImageAsset]:
    """Discover images under ``directory`` and derive their keys.

    Raises:
        InvalidDirectoryError, DirectoryScanError, NoImagesError,
        InvalidKeyError, KeyCollisionError
    """
    paths = discover_images(directory)
    if not paths:
        raise NoImagesError(str(directory))
    return build_assets(paths)


class BatchRunner:
    """Runs one batch: submit, upload, poll, download.

    Args:
        client: Service client shared by every stage
        settings: Batch behaviour (polling cadence, ceilings, states)
        engine_id: Engine for new requests
        cancel_token: Cooperative cancellation for all stages
        delay_strategy: Overrides the strategy built from ``settings``
    """

    def __init__(
        self,
        client: PeroClient,
        settings: BatchSettings,
        engine_id: int,
        cancel_token: Optional[CancellationToken] = None,
        delay_strategy: Optional[DelayStrategy] = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.engine_id = engine_id
        self.cancel_token = cancel_token or CancellationToken()
        self.uploader = Uploader(client, self.cancel_token)
        self.poller = StatusPoller(
            client,
            delay_strategy=delay_strategy
            or strategy_from_settings(
                settings.backoff,
                settings.poll_interval_seconds,
                settings.backoff_max_seconds,
            ),
            done_states=settings.done_states,
            failed_states=settings.failed_states,
            max_polls=settings.max_polls,
            max_duration_seconds=settings.max_poll_duration_seconds,
            cancel_token=self.cancel_token,
        )
        self.downloader = ResultDownloader(client, cancel_token=self.cancel_token)

    def run(self, directory: Path) -> BatchResult:
        assets = collect_assets(directory)
        logger.info("found %d images in %s", len(assets), directory, extra={"total": len(assets)})

        request = submit_batch(self.client, self.engine_id, assets)
        logger.info("OCR for %s RequestId %s", directory, request.request_id, extra={"request_id": request.request_id})

        # service needs a moment before the request accepts uploads
        self.cancel_token.wait(self.settings.upload_settle_seconds)

        logger.info("starting file upload...")
        uploads = self.uploader.upload_all(request.request_id, assets)
        if not uploads.uploaded:
            raise NothingUploadedError(request.request_id, len(assets))

        logger.info("waiting for ocr to be done...")
        poll = self.poller.wait_until_complete(request.request_id, uploads.uploaded)

        logger.info("downloading files from ocr...")
        downloads = self.downloader.download_all(request.request_id, poll.processed)

        result = BatchResult(request=request, uploads=uploads, poll=poll, downloads=downloads)
        if result.has_failures:
            logger.warning(
                "batch complete with failures: %d uploads, %d images, %d artifacts",
                len(uploads.failed),
                len(poll.failed),
                len(downloads.missing),
                extra={"request_id": request.request_id, "error_code": "COMPLETED_WITH_FAILURES"},
            )
        else:
            logger.info("batch complete", extra={"request_id": request.request_id})
        return result

    def download_only(self, directory: Path, request_id: str) -> DownloadReport:
        """Download results of an existing request for every image in ``directory``."""
        assets = collect_assets(directory)
        logger.info("starting requested standalone ocr+alto download", extra={"request_id": request_id})
        report = self.downloader.download_all(request_id, assets)
        logger.info("standalone download done", extra={"request_id": request_id})
        return report
