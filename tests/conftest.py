"""Pytest configuration and fixtures for bridgewatch tests."""

import json
import pytest
from typing import Any, Callable, Optional, Union

from bridgewatch.models import Asset, Route
from bridgewatch.orchestrator import AggregationOrchestrator
from bridgewatch.resilience.circuit_breaker import CircuitBreakerConfig
from bridgewatch.resilience.retry import RetryConfig
from bridgewatch.transport import HttpRequest, HttpResponse

Handler = Callable[[HttpRequest], Union[HttpResponse, Exception]]


def json_response(
    data: Any,
    status: int = 200,
    headers: Optional[dict[str, str]] = None,
) -> HttpResponse:
    """Build a JSON response as the transport would return it."""
    return HttpResponse(
        status=status,
        headers={k.lower(): v for k, v in (headers or {}).items()},
        body=json.dumps(data).encode("utf-8"),
    )


class FakeTransport:
    """Scripted transport recording every request.

    The handler returns a response or an exception instance to raise.
    """

    def __init__(self, handler: Optional[Handler] = None):
        self.handler = handler or (lambda request: json_response({}))
        self.requests: list[HttpRequest] = []
        self.closed = False

    async def request(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        result = self.handler(request)
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True


def sequence_handler(*results: Union[HttpResponse, Exception]) -> Handler:
    """Handler replaying ``results`` in order, repeating the last one."""
    remaining = list(results)

    def handler(request: HttpRequest) -> Union[HttpResponse, Exception]:
        if len(remaining) > 1:
            return remaining.pop(0)
        return remaining[0]

    return handler


@pytest.fixture
def usdc_ethereum():
    """USDC on Ethereum."""
    return Asset(
        chain_id="1",
        asset_id="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        symbol="USDC",
        decimals=6,
    )


@pytest.fixture
def usdc_polygon():
    """USDC on Polygon."""
    return Asset(
        chain_id="137",
        asset_id="0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
        symbol="USDC",
        decimals=6,
    )


@pytest.fixture
def usdc_arbitrum():
    """USDC on Arbitrum."""
    return Asset(
        chain_id="42161",
        asset_id="0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        symbol="USDC",
        decimals=6,
    )


@pytest.fixture
def route(usdc_ethereum, usdc_polygon):
    """Ethereum -> Polygon USDC route."""
    return Route(source=usdc_ethereum, destination=usdc_polygon)


@pytest.fixture
def second_route(usdc_ethereum, usdc_arbitrum):
    """Ethereum -> Arbitrum USDC route."""
    return Route(source=usdc_ethereum, destination=usdc_arbitrum)


@pytest.fixture
def fast_retry_config():
    """Retry config with negligible delays."""
    return RetryConfig(max_retries=3, base_delay=0.001, max_delay=0.002)


@pytest.fixture
def make_orchestrator(fast_retry_config):
    """Factory for orchestrators over a fake transport, without rate limiting."""

    def factory(transport: FakeTransport, **kwargs: Any) -> AggregationOrchestrator:
        kwargs.setdefault("retry_config", fast_retry_config)
        kwargs.setdefault("max_requests_per_second", None)
        kwargs.setdefault(
            "circuit_breaker_config",
            CircuitBreakerConfig(failure_threshold=1000),
        )
        return AggregationOrchestrator(
            base_url="https://bridge.test",
            api_key="test-api-key",
            transport=transport,
            **kwargs,
        )

    return factory
