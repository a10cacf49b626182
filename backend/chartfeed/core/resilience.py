"""Resilience patterns: exponential backoff for the swap stream reconnect loop."""

from dataclasses import dataclass

from chartfeed.config import settings


@dataclass
class RetryConfig:
    """Configuration for retry logic.

    ``delay_for(1)`` is the first retry delay; each further attempt
    multiplies it by ``exponential_base`` until ``max_delay``.
    """

    max_retries: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0

    def delay_for(self, attempt: int) -> float:
        return min(
            self.base_delay * (self.exponential_base ** (attempt - 1)),
            self.max_delay,
        )

    def can_retry(self, attempts_made: int) -> bool:
        return attempts_made < self.max_retries

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        return cls(
            max_retries=settings.stream_max_reconnect_attempts,
            base_delay=settings.stream_reconnect_base_delay,
            max_delay=settings.stream_reconnect_max_delay,
        )
