"""Tests for retry configuration, backoff and the retrying requester."""

import asyncio
import pytest
from unittest.mock import AsyncMock, patch

from bridgewatch.monitoring.metrics import MetricsCollector
from bridgewatch.requester import RetryingRequester
from bridgewatch.resilience.rate_limiter import RateLimiter
from bridgewatch.resilience.retry import (
    APITimeoutError,
    HTTPStatusError,
    NetworkError,
    RateLimitError,
    RetryableError,
    RetryConfig,
    ServerError,
    calculate_backoff,
    retry_delay,
)
from bridgewatch.transport import HttpRequest, HttpResponse

from conftest import FakeTransport, json_response, sequence_handler

FAST = RetryConfig(max_retries=3, base_delay=0.001, max_delay=0.002)


class TestCalculateBackoff:
    """Test backoff calculation."""

    def test_exponential_backoff(self):
        """Test exponential increase in delay."""
        config = RetryConfig(base_delay=1.0)

        assert calculate_backoff(0, config) == 1.0
        assert calculate_backoff(1, config) == 2.0
        assert calculate_backoff(2, config) == 4.0

    def test_max_delay_cap(self):
        """Test that delay is capped at max_delay."""
        config = RetryConfig(base_delay=1.0, max_delay=5.0)

        assert calculate_backoff(10, config) == 5.0

    def test_no_jitter(self):
        """Test backoff is deterministic."""
        config = RetryConfig()
        assert len({calculate_backoff(1, config) for _ in range(10)}) == 1


class TestRetryDelay:
    """Test per-error delay selection."""

    def test_retry_after_overrides_backoff(self):
        """Test Retry-After wins over computed backoff."""
        error = RateLimitError("Rate limited", retry_after=7.0)
        assert retry_delay(error, 0, RetryConfig()) == 7.0

    def test_rate_limit_without_retry_after_uses_backoff(self):
        """Test 429 without Retry-After falls back to backoff."""
        error = RateLimitError("Rate limited")
        assert retry_delay(error, 2, RetryConfig()) == 4.0

    def test_other_errors_use_backoff(self):
        """Test non-429 errors use backoff."""
        assert retry_delay(ServerError(status=503), 1, RetryConfig()) == 2.0


class TestErrorTaxonomy:
    """Test error classes."""

    def test_all_upstream_errors_retryable(self):
        """Test every upstream error derives from RetryableError."""
        for error in (NetworkError(), APITimeoutError(), HTTPStatusError(), ServerError()):
            assert isinstance(error, RetryableError)

    def test_rate_limit_error_is_429(self):
        """Test RateLimitError carries status 429 and retry_after."""
        error = RateLimitError(retry_after=3.0)
        assert error.status == 429
        assert error.retry_after == 3.0

    def test_server_error_status(self):
        """Test ServerError carries its status."""
        assert ServerError("Server error: 502", status=502).status == 502

    def test_timeout_error(self):
        """Test APITimeoutError carries the timeout."""
        error = APITimeoutError("Timed out", 30.0)
        assert str(error) == "Timed out"
        assert error.timeout == 30.0


class TestRetryingRequester:
    """Test the retrying requester."""

    @pytest.fixture
    def request_(self):
        return HttpRequest(url="https://bridge.test/v1/quote", method="POST")

    @pytest.mark.asyncio
    async def test_success_no_retry(self, request_):
        """Test a successful call makes one attempt."""
        transport = FakeTransport(lambda r: json_response({"ok": True}))
        requester = RetryingRequester(transport, default_config=FAST)

        response = await requester.send(request_)

        assert response.json() == {"ok": True}
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_recovers_after_server_errors(self, request_):
        """Test 500, 500, 200 succeeds on the third attempt."""
        transport = FakeTransport(
            sequence_handler(
                json_response({}, status=500),
                json_response({}, status=500),
                json_response({"amountOut": "1"}),
            )
        )
        requester = RetryingRequester(transport, default_config=FAST)

        response = await requester.send(request_)

        assert response.status == 200
        assert len(transport.requests) == 3

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(self, request_):
        """Test persistent 500 with max_retries=1 raises after two attempts."""
        transport = FakeTransport(lambda r: json_response({}, status=500))
        requester = RetryingRequester(transport)

        with pytest.raises(ServerError) as exc_info:
            await requester.send(request_, RetryConfig(max_retries=1, base_delay=0.001))

        assert exc_info.value.status == 500
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_client_errors_are_retried(self, request_):
        """Test 4xx other than 429 raise HTTPStatusError after retries."""
        transport = FakeTransport(lambda r: json_response({}, status=404))
        requester = RetryingRequester(transport, default_config=FAST)

        with pytest.raises(HTTPStatusError) as exc_info:
            await requester.send(request_)

        assert exc_info.value.status == 404
        assert len(transport.requests) == 4

    @pytest.mark.asyncio
    async def test_network_errors_are_retried(self, request_):
        """Test transport failures are retried."""
        transport = FakeTransport(
            sequence_handler(NetworkError("connection reset"), json_response({}))
        )
        requester = RetryingRequester(transport, default_config=FAST)

        response = await requester.send(request_)

        assert response.ok
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_os_errors_become_network_errors(self, request_):
        """Test raw OSErrors from a transport are mapped to NetworkError."""
        transport = FakeTransport(lambda r: ConnectionRefusedError("refused"))
        requester = RetryingRequester(transport)

        with pytest.raises(NetworkError):
            await requester.send(request_, RetryConfig(max_retries=0))

    @pytest.mark.asyncio
    async def test_retry_after_is_honored(self, request_):
        """Test the wait after a 429 comes from Retry-After."""
        transport = FakeTransport(
            sequence_handler(
                json_response({}, status=429, headers={"Retry-After": "2"}),
                json_response({}),
            )
        )
        requester = RetryingRequester(transport, default_config=RetryConfig(base_delay=0.001))

        with patch("bridgewatch.requester.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await requester.send(request_)

        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_backoff_between_attempts(self, request_):
        """Test delays follow the backoff schedule with none after the last."""
        transport = FakeTransport(lambda r: json_response({}, status=503))
        requester = RetryingRequester(
            transport, default_config=RetryConfig(max_retries=3, base_delay=1.0, max_delay=3.0)
        )

        with patch("bridgewatch.requester.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(ServerError):
                await requester.send(request_)

        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_attempt_timeout(self, request_):
        """Test a hung transport call surfaces as APITimeoutError."""

        class HangingTransport(FakeTransport):
            async def request(self, request):
                self.requests.append(request)
                await asyncio.sleep(1.0)
                return HttpResponse(status=200)

        metrics = MetricsCollector()
        transport = HangingTransport()
        requester = RetryingRequester(
            transport, metrics=metrics, default_config=RetryConfig(max_retries=1, base_delay=0.001),
            transport_timeout=0.05,
        )

        with pytest.raises(APITimeoutError):
            await requester.send(request_)

        assert len(transport.requests) == 2
        assert metrics.snapshot().api_calls.timeouts == 2

    @pytest.mark.asyncio
    async def test_request_timeout_bounds_attempt(self):
        """Test the request's own timeout aborts a slow transport call."""

        class SlowTransport(FakeTransport):
            async def request(self, request):
                self.requests.append(request)
                await asyncio.sleep(0.5)
                return HttpResponse(status=200)

        requester = RetryingRequester(SlowTransport())
        request = HttpRequest(url="https://bridge.test/v1/health", timeout=0.05)

        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(APITimeoutError) as exc_info:
            await requester.send(request, RetryConfig(max_retries=0))

        assert loop.time() - started < 0.4
        assert exc_info.value.timeout == 0.05

    def test_attempt_timeout_capped_by_transport_timeout(self):
        """Test a request timeout above the ceiling is clamped."""
        requester = RetryingRequester(FakeTransport(), transport_timeout=30.0)

        assert requester.attempt_timeout(HttpRequest(url="u", timeout=10.0)) == 10.0
        assert requester.attempt_timeout(HttpRequest(url="u", timeout=120.0)) == 30.0
        assert requester.attempt_timeout(HttpRequest(url="u")) == 30.0

    @pytest.mark.asyncio
    async def test_arbitrary_transport_errors_are_retried(self, request_):
        """Test any exception from a transport becomes a retried NetworkError."""
        metrics = MetricsCollector()
        transport = FakeTransport(
            sequence_handler(RuntimeError("boom"), ValueError("bad frame"), json_response({}))
        )
        requester = RetryingRequester(transport, metrics=metrics, default_config=FAST)

        response = await requester.send(request_)

        assert response.ok
        assert len(transport.requests) == 3
        assert metrics.snapshot().api_calls.failures == 2

    @pytest.mark.asyncio
    async def test_arbitrary_transport_error_exhausts_as_network_error(self, request_):
        """Test a persistent transport exception surfaces as NetworkError."""
        transport = FakeTransport(lambda r: RuntimeError("boom"))
        requester = RetryingRequester(transport)

        with pytest.raises(NetworkError) as exc_info:
            await requester.send(request_, RetryConfig(max_retries=1, base_delay=0.001))

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_rate_limit_headers_feed_limiter(self, request_):
        """Test X-RateLimit-* headers reach the rate limiter."""
        limiter = RateLimiter(max_requests=10, window=1.0)
        transport = FakeTransport(
            lambda r: json_response(
                {},
                headers={
                    "X-RateLimit-Limit": "100",
                    "X-RateLimit-Remaining": "3",
                    "X-RateLimit-Reset": "1700000000",
                },
            )
        )
        requester = RetryingRequester(transport, rate_limiter=limiter, default_config=FAST)

        await requester.send(request_)

        info = limiter.rate_limit_info
        assert (info.limit, info.remaining, info.reset_at) == (100, 3, 1_700_000_000.0)

    @pytest.mark.asyncio
    async def test_attempts_recorded_in_metrics(self, request_):
        """Test every attempt is reported with its outcome."""
        metrics = MetricsCollector()
        transport = FakeTransport(
            sequence_handler(
                json_response({}, status=429),
                json_response({}, status=500),
                json_response({}),
            )
        )
        requester = RetryingRequester(transport, metrics=metrics, default_config=FAST)

        await requester.send(request_)

        stats = metrics.snapshot().api_calls
        assert stats.total == 3
        assert stats.success == 1
        assert stats.failures == 2
        assert stats.rate_limited == 1
