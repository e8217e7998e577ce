"""Rate limiting for upstream API calls.

Provides:
- Fixed-window admission counting with a FIFO wait queue
- A rolling bound: no window-length span holds more than max_requests admissions
- Proactive slowdown from server-advertised rate limit headers
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

MIN_CHECK_INTERVAL = 0.01  # seconds


@dataclass(frozen=True)
class RateLimitInfo:
    """Rate limit state reported by the server."""

    limit: int
    remaining: int
    reset_at: float  # Seconds since epoch


class RateLimiter:
    """Admits at most ``max_requests`` callers per ``window`` seconds.

    Waiting callers are admitted in arrival order. ``acquire`` never raises;
    it only delays.

    Usage:
        limiter = RateLimiter(max_requests=10, window=1.0)
        await limiter.acquire()
        # Make request
    """

    def __init__(self, max_requests: int, window: float = 1.0):
        """Initialize rate limiter.

        Args:
            max_requests: Admissions allowed per window
            window: Window length in seconds
        """
        if max_requests < 1:
            raise ValueError(f"max_requests must be at least 1, got {max_requests}")
        if window <= 0:
            raise ValueError(f"window must be positive, got {window}")

        self.max_requests = max_requests
        self.window = window
        self._queue: deque[asyncio.Future] = deque()
        self._request_count = 0
        self._window_start = time.monotonic()
        self._admissions: deque[float] = deque(maxlen=max_requests)
        self._last_info: Optional[RateLimitInfo] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def window_start(self) -> float:
        return self._window_start

    @property
    def request_count(self) -> int:
        return self._request_count

    @property
    def pending(self) -> int:
        """Number of callers still waiting."""
        return sum(1 for f in self._queue if not f.done())

    @property
    def rate_limit_info(self) -> Optional[RateLimitInfo]:
        """Last rate limit info reported by the server."""
        return self._last_info

    @property
    def check_interval(self) -> float:
        """Delay between admission checks while callers are queued."""
        return max(MIN_CHECK_INTERVAL, self.window / self.max_requests)

    async def acquire(self) -> None:
        """Wait until a request may be issued."""
        future = asyncio.get_running_loop().create_future()
        self._queue.append(future)
        self._process()
        await future

    def update_from_server(self, limit: int, remaining: int, reset_at: float) -> None:
        """Record server-reported quota and slow down when it runs low.

        Args:
            limit: Server-side request limit
            remaining: Requests remaining in the server window
            reset_at: Server window reset time, seconds since epoch
        """
        self._last_info = RateLimitInfo(limit=limit, remaining=remaining, reset_at=reset_at)

        if remaining < self.max_requests / 2:
            logger.debug(
                f"Server quota low ({remaining}/{limit} remaining), throttling proactively"
            )
            self._window_start = time.monotonic() - self.window / 2

    def _rolling_window_full(self, now: float) -> bool:
        """Whether the last ``max_requests`` admissions all fall within one window of ``now``."""
        return (
            len(self._admissions) == self.max_requests
            and now - self._admissions[0] < self.window
        )

    def _on_timer(self) -> None:
        self._timer = None
        self._process()

    def _process(self) -> None:
        """Admit as many queued callers as the current window allows."""
        now = time.monotonic()

        if now - self._window_start >= self.window:
            self._request_count = 0
            self._window_start = now

        while (
            self._queue
            and self._request_count < self.max_requests
            and not self._rolling_window_full(now)
        ):
            future = self._queue.popleft()
            if future.done():
                # Caller was cancelled while waiting
                continue
            self._request_count += 1
            self._admissions.append(now)
            future.set_result(None)

        # Drop cancelled waiters so they do not keep the timer alive
        while self._queue and self._queue[0].done():
            self._queue.popleft()

        if self._queue and self._timer is None:
            logger.debug(
                f"Rate limited, {len(self._queue)} waiting; rechecking in {self.check_interval:.3f}s"
            )
            self._timer = asyncio.get_running_loop().call_later(
                self.check_interval, self._on_timer
            )

    def get_status(self) -> dict[str, Any]:
        """Get rate limiter status."""
        return {
            "max_requests": self.max_requests,
            "window": self.window,
            "request_count": self._request_count,
            "pending": self.pending,
            "server_info": self._last_info,
        }
