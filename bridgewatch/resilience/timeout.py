"""Timeout helpers for upstream calls."""

import asyncio
import logging
from typing import Awaitable, TypeVar

from .retry import APITimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Hard ceiling on a single transport call, whatever the request asks for
TRANSPORT_TIMEOUT = 30.0
# Health checks never wait longer than this
HEALTH_CHECK_TIMEOUT = 5.0


async def with_async_timeout(
    coro: Awaitable[T],
    timeout_seconds: float,
    error_message: str = "Operation timed out",
) -> T:
    """Execute a coroutine with timeout.

    Args:
        coro: Coroutine to execute
        timeout_seconds: Timeout in seconds
        error_message: Error message for timeout

    Returns:
        Coroutine result

    Raises:
        APITimeoutError: If timeout is exceeded
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning(f"{error_message} after {timeout_seconds}s")
        raise APITimeoutError(
            f"{error_message} after {timeout_seconds}s",
            timeout_seconds,
        ) from None
