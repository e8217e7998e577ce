"""Retrying HTTP requester.

One logical call makes up to ``max_retries + 1`` attempts, each bounded by
the request's timeout. Every failure is retried; only the delay differs:
- 429: wait ``Retry-After`` when the server sends it
- anything else: exponential backoff capped at ``max_delay``
"""

import asyncio
import logging
import time
from typing import Optional

from .monitoring.metrics import ERROR_RATE_LIMITED, ERROR_TIMEOUT, MetricsCollector
from .resilience.rate_limiter import RateLimiter
from .resilience.retry import (
    APITimeoutError,
    HTTPStatusError,
    NetworkError,
    RateLimitError,
    RetryableError,
    RetryConfig,
    ServerError,
    retry_delay,
)
from .resilience.timeout import TRANSPORT_TIMEOUT, with_async_timeout
from .transport import HttpRequest, HttpResponse, Transport, parse_rate_limit_headers, parse_retry_after

logger = logging.getLogger(__name__)


class RetryingRequester:
    """Sends requests through a transport with retries and backoff."""

    def __init__(
        self,
        transport: Transport,
        rate_limiter: Optional[RateLimiter] = None,
        metrics: Optional[MetricsCollector] = None,
        default_config: Optional[RetryConfig] = None,
        transport_timeout: float = TRANSPORT_TIMEOUT,
    ):
        """Initialize requester.

        Args:
            transport: Transport performing single attempts
            rate_limiter: Limiter fed with server rate limit headers
            metrics: Collector recording every attempt
            default_config: Retry config used when ``send`` gets none
            transport_timeout: Hard ceiling per attempt in seconds
        """
        self.transport = transport
        self.rate_limiter = rate_limiter
        self.metrics = metrics
        self.default_config = default_config or RetryConfig()
        self.transport_timeout = transport_timeout

    async def send(
        self,
        request: HttpRequest,
        retry_config: Optional[RetryConfig] = None,
    ) -> HttpResponse:
        """Send a request, retrying failed attempts.

        Args:
            request: Request to send
            retry_config: Retry budget and backoff for this call

        Returns:
            The first successful response

        Raises:
            RetryableError: The last attempt's error once the budget is spent
        """
        config = retry_config or self.default_config
        attempts = config.max_retries + 1
        last_error: Optional[RetryableError] = None

        for attempt in range(attempts):
            started = time.monotonic()
            try:
                response = await self._attempt(request)
            except RetryableError as e:
                last_error = e
                self._record(started, e)
            else:
                self._record(started, None)
                return response

            if attempt == attempts - 1:
                logger.error(
                    f"All {attempts} attempts failed for {request.method} {request.url}: {last_error}"
                )
                break

            delay = retry_delay(last_error, attempt, config)
            logger.warning(
                f"Attempt {attempt + 1}/{attempts} failed for {request.method} {request.url}: "
                f"{last_error}. Retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)

        raise last_error

    def attempt_timeout(self, request: HttpRequest) -> float:
        """Seconds one attempt may take: the request's own timeout, capped."""
        if request.timeout is None:
            return self.transport_timeout
        return min(request.timeout, self.transport_timeout)

    async def _attempt(self, request: HttpRequest) -> HttpResponse:
        try:
            response = await with_async_timeout(
                self.transport.request(request),
                self.attempt_timeout(request),
                f"{request.method} {request.url}",
            )
        except RetryableError:
            raise
        except Exception as e:
            raise NetworkError(f"{request.method} {request.url} failed: {e}") from e

        if self.rate_limiter is not None:
            info = parse_rate_limit_headers(response)
            if info is not None:
                self.rate_limiter.update_from_server(info.limit, info.remaining, info.reset_at)

        if response.status == 429:
            retry_after = parse_retry_after(response)
            raise RateLimitError(
                f"Rate limited by {request.url}"
                + (f": retry after {retry_after}s" if retry_after is not None else ""),
                retry_after=retry_after,
            )
        if response.status >= 500:
            raise ServerError(f"Server error: {response.status}", status=response.status)
        if not response.ok:
            raise HTTPStatusError(f"Unexpected status: {response.status}", status=response.status)

        return response

    def _record(self, started: float, error: Optional[Exception]) -> None:
        if self.metrics is None:
            return
        latency_ms = (time.monotonic() - started) * 1000
        if error is None:
            self.metrics.record_api_call(True, latency_ms)
        elif isinstance(error, APITimeoutError):
            self.metrics.record_api_call(False, latency_ms, ERROR_TIMEOUT)
        elif isinstance(error, RateLimitError):
            self.metrics.record_api_call(False, latency_ms, ERROR_RATE_LIMITED)
        else:
            self.metrics.record_api_call(False, latency_ms)
