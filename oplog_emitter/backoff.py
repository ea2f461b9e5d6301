"""Delay policy between connection attempts."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tenacity import wait_random_exponential
from tenacity.wait import wait_base

from oplog_emitter.options import DEFAULT_MAX_BACKOFF_MS, DEFAULT_MIN_BACKOFF_MS

if TYPE_CHECKING:
    from oplog_emitter.options import OplogOptions


def exponential_backoff(
    min_backoff: int | float = DEFAULT_MIN_BACKOFF_MS,
    max_backoff: int | float = DEFAULT_MAX_BACKOFF_MS,
) -> wait_base:
    """Return a tenacity wait drawing each delay between ``min_backoff`` and an exponentially growing bound.

    The bound starts at ``min_backoff`` and doubles after every failed attempt until it reaches ``max_backoff``. Both
    are in milliseconds.
    """
    minimum: float = min_backoff / 1000
    maximum: float = max_backoff / 1000
    return wait_random_exponential(multiplier=minimum, min=minimum, max=maximum)


def backoff_from_options(options: OplogOptions) -> wait_base:
    return exponential_backoff(options.min_backoff, options.max_backoff)
