"""Logging configuration for batch runs.

Every run logs to the console and, when a batch directory is involved, to a
persistent run log inside that directory. Records are either plain text or
JSON (one object per line) for log aggregation.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

_EXTRA_FIELDS = (
    "request_id",
    "image_key",
    "image_path",
    "artifact",
    "error_code",
    "http_status",
    "poll_attempt",
    "done",
    "total",
    "delay_seconds",
    "error",
)

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Outputs logs as JSON with standard fields plus any extra context
    provided via the 'extra' parameter in logger calls.

    Example:
        >>> logger.info("OK upload", extra={"image_key": "a.tif", "request_id": "r1"})
        # Output: {"timestamp": "...", "level": "INFO", "message": "OK upload",
        #          "image_key": "a.tif", "request_id": "r1", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, ensure_ascii=False, default=str)


def _make_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return StructuredFormatter()
    return logging.Formatter(TEXT_FORMAT)


def configure_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure console logging for the tool.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatter (True) or plain text (False)
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(_make_formatter(json_format))
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def add_run_log(directory: Path, file_name: str, json_format: bool = False) -> Optional[logging.Handler]:
    """Append every record to ``directory/file_name`` as well as the console.

    Returns the handler so the caller can detach it, or None when the log
    file cannot be opened (the run continues with console logging only).
    """
    path = Path(directory) / file_name
    try:
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError as e:
        logging.getLogger(__name__).warning("cannot open run log %s: %s", path, e)
        return None
    handler.setFormatter(_make_formatter(json_format))
    logging.getLogger().addHandler(handler)
    return handler


def remove_run_log(handler: Optional[logging.Handler]) -> None:
    if handler is None:
        return
    logging.getLogger().removeHandler(handler)
    handler.close()
