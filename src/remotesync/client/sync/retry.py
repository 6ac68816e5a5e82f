"""Reconnect pacing policies.

This module provides:
- RetryPolicy: Interface mapping an attempt number to a delay
- ImmediateRetry: Constant short pause, retried forever
- ExponentialBackoff: Growing delay with a ceiling
- policy_from_settings: Build the policy selected in the config

ConnectionManager only calls RetryPolicy.delay(), so swapping the pacing
does not touch the reconnect loop.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from remotesync.core.config import RetrySettings

logger = logging.getLogger(__name__)

# Default retry configuration
DEFAULT_PAUSE = 0.5  # seconds
DEFAULT_INITIAL_BACKOFF = 1.0  # seconds
DEFAULT_MAX_BACKOFF = 60.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0

# Network-related exceptions that indicate connectivity issues
NETWORK_EXCEPTIONS: tuple[type[Exception], ...] = (
    ConnectionError,
    TimeoutError,
    OSError,
)


class RetryPolicy(ABC):
    """Decides how long to wait before reconnect attempt number `attempt`."""

    @abstractmethod
    def delay(self, attempt: int) -> float:
        """Get the pause in seconds before the next attempt.

        Args:
            attempt: Number of consecutive failures so far (>= 1).
        """


class ImmediateRetry(RetryPolicy):
    """Retry at once, with a constant pause to avoid spinning on refusals."""

    def __init__(self, pause_s: float = DEFAULT_PAUSE) -> None:
        if pause_s < 0:
            raise ValueError(f"pause_s must not be negative, got {pause_s}")
        self._pause_s = pause_s

    def delay(self, attempt: int) -> float:
        return self._pause_s


class ExponentialBackoff(RetryPolicy):
    """Delay doubling (by default) after each failure, capped at max_backoff."""

    def __init__(
        self,
        initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
        max_backoff: float = DEFAULT_MAX_BACKOFF,
        backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    ) -> None:
        if initial_backoff < 0 or max_backoff < initial_backoff:
            raise ValueError(
                f"Invalid backoff bounds: initial={initial_backoff}, max={max_backoff}"
            )
        if backoff_multiplier < 1:
            raise ValueError(f"backoff_multiplier must be >= 1, got {backoff_multiplier}")
        self._initial = initial_backoff
        self._max = max_backoff
        self._multiplier = backoff_multiplier

    def delay(self, attempt: int) -> float:
        exponent = min(max(attempt - 1, 0), 64)
        # Stop multiplying once the ceiling is reached to avoid float overflow
        backoff = self._initial
        for _ in range(exponent):
            backoff *= self._multiplier
            if backoff >= self._max:
                return self._max
        return min(backoff, self._max)


def policy_from_settings(settings: RetrySettings) -> RetryPolicy:
    """Build the retry policy described by the config."""
    if settings.backoff:
        logger.debug(
            f"Using exponential backoff ({settings.initial_s}s .. {settings.max_s}s)"
        )
        return ExponentialBackoff(
            initial_backoff=settings.initial_s,
            max_backoff=settings.max_s,
            backoff_multiplier=settings.multiplier,
        )
    return ImmediateRetry(pause_s=settings.pause_s)
