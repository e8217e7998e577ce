"""Transport abstraction and the default aiohttp implementation.

The core only ever reaches the network through ``Transport.request``; tests
and embedding applications can supply their own.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Union

import aiohttp

from .resilience.rate_limiter import RateLimitInfo
from .resilience.retry import APITimeoutError, NetworkError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpRequest:
    """One outbound HTTP request."""

    url: str
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[Union[str, bytes]] = None
    timeout: Optional[float] = None  # Seconds


@dataclass(frozen=True)
class HttpResponse:
    """Response as seen by the core. Header names are stored lower-cased."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))


class Transport(Protocol):
    """Anything that can perform one request."""

    async def request(self, request: HttpRequest) -> HttpResponse:
        ...

    async def close(self) -> None:
        ...


class AiohttpTransport:
    """Transport backed by a shared ``aiohttp.ClientSession``."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        """Initialize transport.

        Args:
            session: Existing session to reuse. If not provided, one is
                created lazily and closed by ``close``.
        """
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def request(self, request: HttpRequest) -> HttpResponse:
        """Perform a request.

        Raises:
            APITimeoutError: If the request timeout elapses
            NetworkError: On any connection-level failure
        """
        session = self._get_session()
        kwargs: dict[str, Any] = {"headers": dict(request.headers)}
        if request.body is not None:
            kwargs["data"] = request.body
        if request.timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=request.timeout)

        try:
            async with session.request(request.method, request.url, **kwargs) as response:
                body = await response.read()
                headers = {k.lower(): v for k, v in response.headers.items()}
                return HttpResponse(status=response.status, headers=headers, body=body)
        except asyncio.TimeoutError:
            raise APITimeoutError(
                f"{request.method} {request.url} timed out", request.timeout or 0.0
            ) from None
        except aiohttp.ClientError as e:
            raise NetworkError(f"{request.method} {request.url} failed: {e}") from e

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()


def parse_rate_limit_headers(response: HttpResponse) -> Optional[RateLimitInfo]:
    """Read ``X-RateLimit-*`` headers.

    Returns:
        RateLimitInfo, or None unless all three headers are present and numeric
    """
    limit = response.header("X-RateLimit-Limit")
    remaining = response.header("X-RateLimit-Remaining")
    reset = response.header("X-RateLimit-Reset")

    if not (limit and remaining and reset):
        return None
    try:
        return RateLimitInfo(
            limit=int(limit),
            remaining=int(remaining),
            reset_at=float(reset),
        )
    except ValueError:
        logger.debug(f"Ignoring malformed rate limit headers: {limit}/{remaining}/{reset}")
        return None


def parse_retry_after(response: HttpResponse) -> Optional[float]:
    """Seconds to wait from a ``Retry-After`` header, if usable."""
    value = response.header("Retry-After")
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        # HTTP-date form is not supported
        return None
    return max(seconds, 0.0)
