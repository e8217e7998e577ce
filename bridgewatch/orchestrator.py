"""Aggregation orchestrator for bridge market data.

Composes the resilience stack into one snapshot call:
- Volumes, rates, liquidity and listed assets gathered concurrently
- Every upstream call passes limiter -> circuit breaker -> retrying requester
- Per-item failures are replaced by static estimates, never raised
"""

import asyncio
import json
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Optional, Sequence, TypeVar, Union

from .cache import DEFAULT_TTL, TTLCache
from .config import Settings
from .models import (
    ListedAssets,
    LiquidityDepth,
    ProviderSnapshot,
    Quote,
    RateResult,
    Route,
    VolumeWindow,
    utc_now,
)
from .monitoring.metrics import MetricsCollector, MetricsSnapshot
from .parsing import AMOUNT_OUT, FEE_USD, parse_amount, parse_assets, parse_volumes
from .pricing.liquidity import DEFAULT_SLIPPAGE_BUDGETS, LiquidityDepthSolver
from .pricing.rate_math import FeeModel, effective_rate
from .requester import RetryingRequester
from .resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from .resilience.fallback import EstimateProvider, StaticEstimateProvider
from .resilience.rate_limiter import RateLimiter
from .resilience.retry import APITimeoutError, RateLimitError, RetryConfig
from .resilience.timeout import HEALTH_CHECK_TIMEOUT
from .transport import AiohttpTransport, HttpRequest, HttpResponse, Transport
from .validation import RequestValidator, ValidationError, parse_notional

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Seconds a caller should wait before retrying, by failure kind
RATE_LIMITED_RETRY_AFTER = 60.0
TIMEOUT_RETRY_AFTER = 30.0


@dataclass(frozen=True)
class RequestDescriptor:
    """One candidate endpoint for a logical request."""

    path: str
    method: str = "GET"


@dataclass(frozen=True)
class EndpointSet:
    """Candidate endpoints per data category, tried in order."""

    volume: tuple[RequestDescriptor, ...] = (
        RequestDescriptor("/v1/observations/volume"),
        RequestDescriptor("/v1/stats/volume"),
        RequestDescriptor("/api/v1/volume"),
    )
    quote: tuple[RequestDescriptor, ...] = (
        RequestDescriptor("/v1/quote", "POST"),
        RequestDescriptor("/api/v1/quote", "POST"),
        RequestDescriptor("/quote", "POST"),
    )
    tokens: tuple[RequestDescriptor, ...] = (
        RequestDescriptor("/v1/tokens"),
        RequestDescriptor("/api/v1/tokens"),
        RequestDescriptor("/tokens"),
    )
    health: tuple[RequestDescriptor, ...] = (
        RequestDescriptor("/v1/health"),
        RequestDescriptor("/api/v1/health"),
        RequestDescriptor("/health"),
    )


class ErrorCode(str, Enum):
    """Outcome classes a caller can act on."""

    RATE_LIMITED = "RATE_LIMITED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INVALID_REQUEST = "INVALID_REQUEST"


class SnapshotError(Exception):
    """Raised when a snapshot cannot be produced at all."""

    def __init__(
        self,
        message: str = "",
        code: ErrorCode = ErrorCode.SERVICE_UNAVAILABLE,
        retry_after: Optional[float] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.code = code
        self.retry_after = retry_after
        self.cause = cause

    @classmethod
    def from_exception(cls, error: BaseException) -> "SnapshotError":
        """Classify an escaped error into a caller-facing outcome."""
        if isinstance(error, RateLimitError):
            return cls(str(error), ErrorCode.RATE_LIMITED, RATE_LIMITED_RETRY_AFTER, error)
        if isinstance(error, ValidationError):
            return cls(str(error), ErrorCode.INVALID_REQUEST, None, error)
        if isinstance(error, APITimeoutError):
            return cls(str(error), ErrorCode.SERVICE_UNAVAILABLE, TIMEOUT_RETRY_AFTER, error)
        return cls(str(error) or type(error).__name__, ErrorCode.SERVICE_UNAVAILABLE, None, error)


def _chain_param(chain_id: str) -> Union[int, str]:
    return int(chain_id) if chain_id.isdigit() else chain_id


class AggregationOrchestrator:
    """Builds provider snapshots from an unreliable bridge API.

    Usage:
        async with AggregationOrchestrator(base_url, api_key) as orchestrator:
            snapshot = await orchestrator.get_snapshot(routes, ["1000000"])
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        transport: Optional[Transport] = None,
        timeout: float = 10.0,
        max_requests_per_second: Optional[int] = 10,
        retry_config: Optional[RetryConfig] = None,
        circuit_breaker_config: Optional[CircuitBreakerConfig] = None,
        cache_ttl: float = DEFAULT_TTL,
        estimates: Optional[EstimateProvider] = None,
        fee_model: Optional[FeeModel] = None,
        endpoints: Optional[EndpointSet] = None,
        slippage_budgets: Sequence[int] = DEFAULT_SLIPPAGE_BUDGETS,
    ):
        """Initialize orchestrator.

        Args:
            base_url: Upstream API root
            api_key: Sent as ``X-API-Key``
            transport: Network transport (aiohttp if not provided)
            timeout: Per-request timeout in seconds
            max_requests_per_second: Client-side rate, None to disable limiting
            retry_config: Retry budget and backoff
            circuit_breaker_config: Breaker thresholds for the upstream
            cache_ttl: Lifetime of cached volumes and asset lists in seconds
            estimates: Static values used when live data is unavailable
            fee_model: Fee structure for estimated quotes
            endpoints: Candidate endpoints per data category
            slippage_budgets: Budgets measured for each route's liquidity
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()
        self.estimates = estimates or StaticEstimateProvider()
        self.fee_model = fee_model or FeeModel()
        self.endpoints = endpoints or EndpointSet()
        self.slippage_budgets = tuple(slippage_budgets)

        self.transport = transport or AiohttpTransport()
        self.metrics = MetricsCollector()
        self.cache = TTLCache(ttl=cache_ttl)
        self.validator = RequestValidator()
        self.rate_limiter = (
            RateLimiter(max_requests=max_requests_per_second, window=1.0)
            if max_requests_per_second
            else None
        )
        self.circuit_breaker = CircuitBreaker("bridge_api", circuit_breaker_config)
        self.requester = RetryingRequester(
            self.transport,
            rate_limiter=self.rate_limiter,
            metrics=self.metrics,
            default_config=self.retry_config,
        )
        self.solver = LiquidityDepthSolver(self._quote)

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[Transport] = None
    ) -> "AggregationOrchestrator":
        """Build an orchestrator from application settings."""
        return cls(
            base_url=settings.base_url,
            api_key=settings.api_key,
            transport=transport,
            timeout=settings.timeout,
            max_requests_per_second=settings.max_requests_per_second,
            retry_config=RetryConfig(
                max_retries=settings.retry_max_retries,
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay,
            ),
            circuit_breaker_config=CircuitBreakerConfig(
                failure_threshold=settings.circuit_failure_threshold,
                success_threshold=settings.circuit_success_threshold,
                open_timeout=settings.circuit_open_timeout,
                reset_timeout=settings.circuit_reset_timeout,
            ),
            cache_ttl=settings.cache_ttl,
        )

    async def __aenter__(self) -> "AggregationOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the transport."""
        await self.transport.close()

    # =========================================================================
    # Public API
    # =========================================================================

    async def get_snapshot(
        self,
        routes: Sequence[Route],
        notionals: Sequence[Union[str, int]],
        windows: Sequence[str] = ("24h",),
    ) -> ProviderSnapshot:
        """Gather volumes, rates, liquidity and listed assets.

        Args:
            routes: Routes to quote and measure
            notionals: Raw input amounts quoted on every route
            windows: Volume windows to report

        Returns:
            ProviderSnapshot; items the API could not supply are estimates
            flagged ``is_fallback``

        Raises:
            SnapshotError: If the request is invalid or an error escapes
                per-item recovery
        """
        try:
            self.validator.check_request(routes, notionals, windows)
            amounts = [parse_notional(n) for n in notionals]

            volumes, rates, liquidity, listed_assets = await asyncio.gather(
                self._get_volumes(tuple(windows)),
                self._get_rates(routes, amounts),
                self._get_liquidity(routes),
                self._get_listed_assets(),
            )
        except SnapshotError:
            raise
        except Exception as e:
            logger.error(f"Snapshot failed: {e}")
            raise SnapshotError.from_exception(e) from e

        return ProviderSnapshot(
            volumes=volumes,
            rates=rates,
            liquidity=liquidity,
            listed_assets=listed_assets,
        )

    async def ping(self) -> dict[str, str]:
        """Check upstream health.

        Always reports ``ok``; the service can answer from estimates even when
        the upstream is down.
        """
        timeout = min(self.timeout, HEALTH_CHECK_TIMEOUT)
        try:
            await self._request_first_success(self.endpoints.health, timeout=timeout)
        except Exception as e:
            logger.warning(f"Health check failed, serving estimates: {e}")
        return {"status": "ok", "timestamp": utc_now().isoformat()}

    def get_metrics(self) -> MetricsSnapshot:
        """Current metrics."""
        return self.metrics.snapshot()

    # =========================================================================
    # Upstream calls
    # =========================================================================

    def _build_request(
        self,
        descriptor: RequestDescriptor,
        body: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> HttpRequest:
        return HttpRequest(
            url=f"{self.base_url}{descriptor.path}",
            method=descriptor.method,
            headers={"X-API-Key": self.api_key, "Content-Type": "application/json"},
            body=json.dumps(body) if body is not None else None,
            timeout=timeout or self.timeout,
        )

    async def _call(self, request: HttpRequest, retry_config: RetryConfig) -> HttpResponse:
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()
        return await self.circuit_breaker.execute(
            lambda: self.requester.send(request, retry_config)
        )

    async def _request_first_success(
        self,
        descriptors: Sequence[RequestDescriptor],
        body: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
        parse: Optional[Callable[[HttpResponse], T]] = None,
    ) -> Union[HttpResponse, T]:
        """Try each descriptor in order with one retry apiece.

        A response that ``parse`` rejects moves on to the next descriptor.

        Raises:
            Exception: The last descriptor's error if none succeeded
        """
        retry_config = replace(self.retry_config, max_retries=1)
        last_error: Optional[Exception] = None

        for descriptor in descriptors:
            request = self._build_request(descriptor, body, timeout)
            try:
                response = await self._call(request, retry_config)
                return parse(response) if parse is not None else response
            except Exception as e:
                logger.debug(f"{descriptor.method} {descriptor.path} unavailable: {e}")
                last_error = e

        if last_error is None:
            raise ValueError("No request descriptors configured")
        raise last_error

    def _cached(self, key: str) -> Optional[Any]:
        value = self.cache.get(key)
        self.metrics.record_cache_lookup(value is not None)
        return value

    # =========================================================================
    # Volumes
    # =========================================================================

    async def _get_volumes(self, windows: tuple[str, ...]) -> list[VolumeWindow]:
        key = f"volumes:{','.join(windows)}"
        cached = self._cached(key)
        if cached is not None:
            return cached

        try:
            parsed = await self._request_first_success(
                self.endpoints.volume, parse=lambda r: parse_volumes(r.json(), windows)
            )
        except Exception as e:
            logger.warning(f"Volume fetch failed, using estimates: {e}")
            now = utc_now()
            return [
                VolumeWindow(w, self.estimates.volume_usd(w), now, is_fallback=True)
                for w in windows
            ]

        now = utc_now()
        volumes = [VolumeWindow(w, parsed[w], now) for w in windows]
        self.cache.set(key, volumes)
        return volumes

    # =========================================================================
    # Rates
    # =========================================================================

    async def _get_rates(self, routes: Sequence[Route], amounts: Sequence[int]) -> list[RateResult]:
        return list(
            await asyncio.gather(
                *(self._get_single_rate(route, amount) for route in routes for amount in amounts)
            )
        )

    async def _get_single_rate(self, route: Route, amount: int) -> RateResult:
        try:
            quote, fee = await self._fetch_quote(route, amount)
        except Exception as e:
            logger.warning(f"Quote for {amount} on {route.key} failed, using fee model: {e}")
            return self._fallback_rate(route, amount)

        return RateResult(
            route=route,
            amount_in=amount,
            amount_out=quote.amount_out,
            effective_rate=effective_rate(
                amount, quote.amount_out, route.source.decimals, route.destination.decimals
            ),
            total_fees_usd=fee if fee is not None else self.fee_model.fee_usd(amount, route.source),
        )

    def _fallback_rate(self, route: Route, amount: int) -> RateResult:
        quote = self.fee_model.quote(amount, route.source, route.destination)
        return RateResult(
            route=route,
            amount_in=amount,
            amount_out=quote.amount_out,
            effective_rate=effective_rate(
                amount, quote.amount_out, route.source.decimals, route.destination.decimals
            ),
            total_fees_usd=self.fee_model.fee_usd(amount, route.source),
            is_fallback=True,
        )

    async def _fetch_quote(self, route: Route, amount: int) -> tuple[Quote, Optional[float]]:
        """Live quote and the fee the API reported, if any.

        Raises:
            ValueError: If the response carries no usable output amount
        """
        body = {
            "sourceChain": _chain_param(route.source.chain_id),
            "targetChain": _chain_param(route.destination.chain_id),
            "sourceToken": route.source.asset_id.lower(),
            "targetToken": route.destination.asset_id.lower(),
            "amount": str(amount),
        }

        def parse(response: HttpResponse) -> tuple[Quote, Optional[float]]:
            data = response.json()
            amount_out = AMOUNT_OUT.extract(data)
            if amount_out is None:
                raise ValueError(f"Quote response for {route.key} has no output amount")
            fee = FEE_USD.extract(data)
            return (
                Quote(amount_in=amount, amount_out=parse_amount(amount_out)),
                float(fee) if fee is not None else None,
            )

        return await self._request_first_success(self.endpoints.quote, body, parse=parse)

    async def _quote(self, route: Route, amount: int) -> Quote:
        quote, _ = await self._fetch_quote(route, amount)
        return quote

    # =========================================================================
    # Liquidity
    # =========================================================================

    async def _get_liquidity(self, routes: Sequence[Route]) -> list[LiquidityDepth]:
        return list(await asyncio.gather(*(self._get_route_liquidity(route) for route in routes)))

    async def _get_route_liquidity(self, route: Route) -> LiquidityDepth:
        try:
            thresholds = await self.solver.solve_many(route, self.slippage_budgets)
        except Exception as e:
            logger.warning(f"Liquidity search for {route.key} failed, using estimates: {e}")
            return LiquidityDepth(
                route=route,
                thresholds=tuple(self.estimates.liquidity_thresholds(route)),
                is_fallback=True,
            )
        return LiquidityDepth(route=route, thresholds=tuple(thresholds))

    # =========================================================================
    # Listed assets
    # =========================================================================

    async def _get_listed_assets(self) -> ListedAssets:
        key = "listed_assets"
        cached = self._cached(key)
        if cached is not None:
            return cached

        try:
            assets = await self._request_first_success(
                self.endpoints.tokens, parse=lambda r: parse_assets(r.json())
            )
        except Exception as e:
            logger.warning(f"Asset listing failed, using fallback list: {e}")
            assets = []

        if not assets:
            return ListedAssets(assets=tuple(self.estimates.fallback_assets()), is_fallback=True)

        listed = ListedAssets(assets=tuple(assets))
        self.cache.set(key, listed)
        logger.debug(f"Listed {len(assets)} assets")
        return listed
