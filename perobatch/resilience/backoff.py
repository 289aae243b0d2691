"""Delay strategies between status polls.

A strategy maps the number of the poll that just finished (1-based) to the
number of seconds to wait before the next one.

Example:
    >>> from perobatch.resilience.backoff import ExponentialBackoff
    >>> strategy = ExponentialBackoff(initial_delay_seconds=30, max_delay_seconds=600, jitter=False)
    >>> [strategy.delay(n) for n in (1, 2, 3)]
    [30.0, 60.0, 120.0]
"""

import random
from dataclasses import dataclass
from typing import Protocol


class DelayStrategy(Protocol):
    def delay(self, attempt: int) -> float: ...


@dataclass(frozen=True)
class FixedInterval:
    """Same delay after every poll."""

    seconds: float = 60.0

    def delay(self, attempt: int) -> float:
        return self.seconds


@dataclass(frozen=True)
class ExponentialBackoff:
    """Exponential backoff with optional jitter.

    Attributes:
        initial_delay_seconds: Delay after the first poll
        max_delay_seconds: Maximum delay between polls
        exponential_base: Base for exponential backoff (delay *= base ** attempt)
        jitter: Whether to add random jitter to delays
    """

    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True

    def delay(self, attempt: int) -> float:
        delay = min(
            self.initial_delay_seconds * (self.exponential_base ** max(attempt - 1, 0)),
            self.max_delay_seconds,
        )
        if self.jitter:
            delay = delay * (0.5 + random.random())  # Random between 50% and 150%
        return float(delay)


def strategy_from_settings(kind: str, interval_seconds: float, max_seconds: float) -> DelayStrategy:
    """Build the configured strategy; ``kind`` is "fixed" or "exponential"."""
    if kind == "exponential":
        return ExponentialBackoff(
            initial_delay_seconds=interval_seconds,
            max_delay_seconds=max(max_seconds, interval_seconds),
        )
    return FixedInterval(seconds=interval_seconds)
