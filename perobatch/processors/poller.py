"""Status polling until every uploaded key reaches a terminal state.

Per key the service reports a state string. States listed in ``done_states``
are terminal success, states in ``failed_states`` are terminal failure and
anything else means the image is still in progress. The batch is complete
once no key is in progress. Each cycle issues a single ``request_status``
call that covers all keys.

Request-level errors (unknown request, request owned by another key,
undecodable body, transport failure) propagate immediately: polling again
cannot fix them.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from perobatch.clients.pero_client import PeroClient
from perobatch.core.exceptions import CancelledError, PollLimitExceededError, ResponseDecodeError
from perobatch.models.dto import ImageAsset, PollOutcome, RequestStatusResponse
from perobatch.resilience.backoff import DelayStrategy, FixedInterval
from perobatch.utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

PROCESSED = "PROCESSED"
DEFAULT_FAILED_STATES = ("FAILED", "ERROR", "CANCELED", "CANCELLED")


class BatchState(str, Enum):
    POLLING = "polling"
    COMPLETE = "complete"


@dataclass(frozen=True)
class PollSnapshot:
    """Classification of one ``request_status`` response."""

    done: tuple[str, ...] = ()
    failed: dict[str, str] = field(default_factory=dict)
    pending: dict[str, str] = field(default_factory=dict)

    @property
    def state(self) -> BatchState:
        return BatchState.POLLING if self.pending else BatchState.COMPLETE

    @property
    def total(self) -> int:
        return len(self.done) + len(self.failed) + len(self.pending)


def classify_states(
    status: RequestStatusResponse,
    keys: Iterable[str],
    done_states: Iterable[str] = (PROCESSED,),
    failed_states: Iterable[str] = DEFAULT_FAILED_STATES,
) -> PollSnapshot:
    """Sort ``keys`` into done / failed / pending.

    Raises:
        ResponseDecodeError: a key has no entry in the response.
    """
    done_set = set(done_states)
    failed_set = set(failed_states)
    done: list[str] = []
    failed: dict[str, str] = {}
    pending: dict[str, str] = {}
    for key in keys:
        entry = status.request_status.get(key)
        if entry is None:
            raise ResponseDecodeError("request_status", f"no state reported for image {key!r}")
        if entry.state in done_set:
            done.append(key)
        elif entry.state in failed_set:
            failed[key] = entry.state
        else:
            pending[key] = entry.state
    return PollSnapshot(done=tuple(done), failed=failed, pending=pending)


class StatusPoller:
    """Poll a request until complete, a fatal error, the ceiling or cancellation.

    Args:
        client: Shared service client
        delay_strategy: Wait between polls (fixed 60s by default)
        done_states: Terminal success states
        failed_states: Terminal failure states
        max_polls: Maximum number of status calls, None for unbounded
        max_duration_seconds: Maximum wall time, None for unbounded
        cancel_token: Checked before each poll and during each wait
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        client: PeroClient,
        delay_strategy: Optional[DelayStrategy] = None,
        done_states: Sequence[str] = (PROCESSED,),
        failed_states: Sequence[str] = DEFAULT_FAILED_STATES,
        max_polls: Optional[int] = None,
        max_duration_seconds: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.delay_strategy = delay_strategy or FixedInterval()
        self.done_states = tuple(done_states)
        self.failed_states = tuple(failed_states)
        self.max_polls = max_polls
        self.max_duration_seconds = max_duration_seconds
        self.cancel_token = cancel_token or CancellationToken()
        self.clock = clock

    def poll_once(self, request_id: str, keys: Iterable[str]) -> PollSnapshot:
        status = self.client.request_status(request_id)
        return classify_states(status, keys, self.done_states, self.failed_states)

    def wait_until_complete(self, request_id: str, assets: Sequence[ImageAsset]) -> PollOutcome:
        """Block until every asset's key is terminal.

        Raises:
            PollLimitExceededError: the poll or duration ceiling was hit
            CancelledError: the cancel token fired
            ServiceError: any request-level failure from the client
        """
        by_key = {asset.key: asset for asset in assets}
        if not by_key:
            return PollOutcome()

        started = self.clock()
        attempt = 0
        while True:
            self.cancel_token.raise_if_cancelled("polling")
            attempt += 1
            snapshot = self.poll_once(request_id, by_key)
            finished = len(snapshot.done) + len(snapshot.failed)
            extra = {"request_id": request_id, "poll_attempt": attempt, "done": finished, "total": snapshot.total}

            if snapshot.state is BatchState.COMPLETE:
                logger.info("OCRs are done! (%d / %d)", finished, snapshot.total, extra=extra)
                for key, state in snapshot.failed.items():
                    logger.error(
                        "OCR failed for %s with state %s",
                        by_key[key].path,
                        state,
                        extra={**extra, "image_key": key, "error_code": "IMAGE_FAILED"},
                    )
                return PollOutcome(
                    processed=[by_key[key] for key in snapshot.done],
                    failed=dict(snapshot.failed),
                    polls=attempt,
                )

            elapsed = self.clock() - started
            if self.max_polls is not None and attempt >= self.max_polls:
                raise PollLimitExceededError(request_id, attempt, elapsed)
            if self.max_duration_seconds is not None and elapsed >= self.max_duration_seconds:
                raise PollLimitExceededError(request_id, attempt, elapsed)

            delay = self.delay_strategy.delay(attempt)
            if self.max_duration_seconds is not None:
                delay = min(delay, self.max_duration_seconds - elapsed)

            logger.info(
                "OCRs are not done yet (%d / %d), trying again in %.0f seconds...",
                finished,
                snapshot.total,
                delay,
                extra={**extra, "delay_seconds": delay},
            )
            if self.cancel_token.wait(delay):
                raise CancelledError("polling")
