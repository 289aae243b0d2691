import logging
from typing import Sequence

from perobatch.clients.pero_client import PeroClient
from perobatch.models.dto import BatchRequest, ImageAsset

logger = logging.getLogger(__name__)


def submit_batch(client: PeroClient, engine_id: int, assets: Sequence[ImageAsset]) -> BatchRequest:
    """Create the remote request for ``assets``. No retries: any error aborts the batch."""
    keys = tuple(asset.key for asset in assets)
    request_id = client.create_request(engine_id, keys)
    logger.info(
        "created request %s for %d images (engine %d)",
        request_id,
        len(keys),
        engine_id,
        extra={"request_id": request_id, "total": len(keys)},
    )
    return BatchRequest(engine_id=engine_id, keys=keys, request_id=request_id)
