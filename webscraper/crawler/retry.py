"""Retry loop with exponential backoff and transient/permanent classification."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from .constants import (
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_INITIAL_DELAY_SECONDS,
    DEFAULT_RETRY_MULTIPLIER,
)
from .errors import FaultKind, classify_fault


LOGGER = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    attempts: int = DEFAULT_RETRY_ATTEMPTS
    initial_delay_seconds: float = DEFAULT_RETRY_INITIAL_DELAY_SECONDS
    multiplier: float = DEFAULT_RETRY_MULTIPLIER

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")

    def delay_before(self, attempt: int) -> float:
        """Backoff before `attempt` (2-based: the first retry)."""

        return self.initial_delay_seconds * (self.multiplier ** (attempt - 2))


def call_with_retry(
    func: Callable[[], R],
    *,
    policy: RetryPolicy,
    classify: Callable[[BaseException], FaultKind] = classify_fault,
    fallback: R | None = None,
    description: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
    cancelled: Callable[[], bool] | None = None,
) -> R | None:
    """Run `func` until it succeeds, a permanent fault occurs, or attempts run out.

    Only exceptions are classified; a returned value is always final. Exhausted
    and permanent failures are logged and yield `fallback`.
    """

    for attempt in range(1, policy.attempts + 1):
        if attempt > 1:
            if cancelled is not None and cancelled():
                LOGGER.debug("Giving up on %s: cancelled", description)
                return fallback
            sleep(policy.delay_before(attempt))

        try:
            return func()
        except Exception as exc:
            kind = classify(exc)
            if kind == FaultKind.PERMANENT:
                LOGGER.warning("%s failed permanently: %s", description, exc)
                return fallback
            if attempt >= policy.attempts:
                LOGGER.error(
                    "%s failed after %d attempts: %s",
                    description,
                    policy.attempts,
                    exc,
                )
                return fallback
            LOGGER.info(
                "%s failed (attempt %d/%d), retrying: %s",
                description,
                attempt,
                policy.attempts,
                exc,
            )

    return fallback


__all__ = [
    "RetryPolicy",
    "call_with_retry",
]
