"""Resilience layer for upstream API access.

This module provides:
- Fixed-window rate limiting with server feedback
- Circuit breaker per upstream
- Retry configuration, backoff and error taxonomy
- Timeout wrappers
- Static fallback estimates
"""

from .circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitOpenError, CircuitState
from .fallback import EstimateProvider, StaticEstimateProvider
from .rate_limiter import RateLimiter, RateLimitInfo
from .retry import (
    APITimeoutError,
    HTTPStatusError,
    NetworkError,
    RateLimitError,
    RetryableError,
    RetryConfig,
    ServerError,
    calculate_backoff,
)
from .timeout import with_async_timeout

__all__ = [
    "RateLimiter",
    "RateLimitInfo",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitOpenError",
    "CircuitState",
    "RetryConfig",
    "calculate_backoff",
    "RetryableError",
    "NetworkError",
    "APITimeoutError",
    "HTTPStatusError",
    "RateLimitError",
    "ServerError",
    "with_async_timeout",
    "EstimateProvider",
    "StaticEstimateProvider",
]
