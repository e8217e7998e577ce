"""Monitoring for upstream API usage.

This module provides:
- Per-instance call, latency and cache metrics
- Prometheus text export
"""

from .metrics import (
    ApiCallStats,
    CacheStats,
    Counter,
    Histogram,
    LatencyStats,
    MetricsCollector,
    MetricsSnapshot,
)

__all__ = [
    "MetricsCollector",
    "MetricsSnapshot",
    "ApiCallStats",
    "LatencyStats",
    "CacheStats",
    "Counter",
    "Histogram",
]
