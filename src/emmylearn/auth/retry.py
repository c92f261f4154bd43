"""Retry policy for transient sign-in failures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from emmylearn.auth.models import ErrorKind, GiveUp, RetryAfter, RetryDecision

if TYPE_CHECKING:
    from emmylearn.config import RetryConfig

# Cancellation, bad requests and unknown codes are not fixed by waiting
RETRYABLE_KINDS = frozenset({ErrorKind.SERVER_ERROR, ErrorKind.NETWORK_ERROR})


def is_retryable(kind: ErrorKind) -> bool:
    """Return True if errors of this kind may be retried."""
    return kind in RETRYABLE_KINDS


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with a ceiling on total attempts.

    Attributes:
        max_attempts: Total attempts allowed per flow, including the first.
        base_delay_ms: Delay before the first retry; doubles each retry.
    """

    max_attempts: int = 3
    base_delay_ms: int = 1000

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ValueError(msg)
        if self.base_delay_ms < 0:
            msg = f"base_delay_ms must not be negative, got {self.base_delay_ms}"
            raise ValueError(msg)

    @classmethod
    def from_config(cls, config: RetryConfig) -> RetryPolicy:
        return cls(
            max_attempts=config.max_attempts,
            base_delay_ms=config.base_delay_ms,
        )

    def delay_for(self, attempt_number: int) -> int:
        """Backoff in milliseconds after the 0-based ``attempt_number``."""
        return self.base_delay_ms * 2**attempt_number

    def decide(self, kind: ErrorKind, attempt_number: int) -> RetryDecision:
        """Decide whether to retry after an attempt failed.

        Args:
            kind: The classified error kind.
            attempt_number: 0-based index of the attempt that just failed.

        Returns:
            RetryAfter with the backoff delay, or GiveUp when the kind is not
            retryable or the next attempt would exceed ``max_attempts``.
        """
        if not is_retryable(kind):
            return GiveUp()
        if attempt_number + 1 >= self.max_attempts:
            return GiveUp()
        return RetryAfter(delay_ms=self.delay_for(attempt_number))
