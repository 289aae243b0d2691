"""One-shot operations that bypass the batch pipeline."""

from __future__ import annotations

import logging
from typing import Sequence

from perobatch.clients.pero_client import PeroClient
from perobatch.models.dto import Engine

logger = logging.getLogger(__name__)

NO_DESCRIPTION = "N/A"


def cancel_request(client: PeroClient, request_id: str) -> None:
    client.cancel_request(request_id)
    logger.info("OK cancel req: %s", request_id, extra={"request_id": request_id})


def list_engines(client: PeroClient) -> list[Engine]:
    return client.get_engines()


def format_engine_table(engines: Sequence[Engine]) -> str:
    """Aligned ``id / name / description`` table, one engine per line."""
    rows = [("id", "name", "description")]
    rows.extend((str(e.id), e.name, e.description or NO_DESCRIPTION) for e in engines)
    widths = [max(len(row[col]) for row in rows) for col in range(2)]
    lines = [f"{row[0]:<{widths[0]}} {row[1]:<{widths[1]}} {row[2]}".rstrip() for row in rows]
    return "\n".join(lines)
