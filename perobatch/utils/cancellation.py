from __future__ import annotations

import logging
import signal
import threading
from typing import Any

from perobatch.core.exceptions import CancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation checked between network calls.

    ``wait`` doubles as the inter-poll sleep so a cancel interrupts it
    immediately.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise CancelledError(stage)

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True if cancelled meanwhile."""
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)


def install_signal_handlers(token: CancellationToken) -> None:
    """SIGTERM cancels the token; a second SIGINT falls back to KeyboardInterrupt."""

    def _handle(signum: int, frame: Any) -> None:
        if token.cancelled and signum == signal.SIGINT:
            raise KeyboardInterrupt
        logger.warning("received %s, stopping after the current call", signal.Signals(signum).name)
        token.cancel()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)
