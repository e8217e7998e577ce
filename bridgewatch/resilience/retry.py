"""Retry configuration, backoff and the upstream error taxonomy.

Provides:
- Configurable retry budget
- Exponential backoff without jitter
- Retryable error classes raised by the transport and requester
"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    ``max_retries`` counts retries, so one logical call makes up to
    ``max_retries + 1`` attempts.
    """

    max_retries: int = 3
    base_delay: float = 1.0  # Base delay in seconds
    max_delay: float = 10.0  # Maximum delay in seconds


def calculate_backoff(attempt: int, config: RetryConfig) -> float:
    """Calculate backoff delay for a retry attempt.

    Args:
        attempt: Current attempt number (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    delay = config.base_delay * (2**attempt)
    return min(delay, config.max_delay)


def retry_delay(error: Exception, attempt: int, config: RetryConfig) -> float:
    """Delay before the next attempt after ``error``.

    A server-advertised ``Retry-After`` wins over the computed backoff.
    """
    if isinstance(error, RateLimitError) and error.retry_after is not None:
        return error.retry_after
    return calculate_backoff(attempt, config)


class RetryableError(Exception):
    """Exception that should be retried."""

    pass


class NetworkError(RetryableError):
    """Connection or transport failure."""

    pass


class APITimeoutError(RetryableError):
    """Request did not complete in time."""

    def __init__(self, message: str = "", timeout: float = 0.0):
        super().__init__(message)
        self.timeout = timeout


class HTTPStatusError(RetryableError):
    """Upstream answered with a non-success status."""

    def __init__(self, message: str = "", status: int = 0):
        super().__init__(message or f"HTTP {status}")
        self.status = status


class RateLimitError(HTTPStatusError):
    """HTTP 429 from upstream."""

    def __init__(self, message: str = "", retry_after: Optional[float] = None):
        super().__init__(message or "Rate limited", status=429)
        self.retry_after = retry_after


class ServerError(HTTPStatusError):
    """HTTP 5xx from upstream."""

    pass
