"""Polling cadence strategies for long-running service calls.

- FixedInterval: same delay after every poll (default)
- ExponentialBackoff: growing delay with an upper bound and jitter
"""

from perobatch.resilience.backoff import (
    DelayStrategy,
    ExponentialBackoff,
    FixedInterval,
    strategy_from_settings,
)

__all__ = [
    "DelayStrategy",
    "ExponentialBackoff",
    "FixedInterval",
    "strategy_from_settings",
]
