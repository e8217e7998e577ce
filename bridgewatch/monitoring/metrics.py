"""Call outcome and latency metrics for the upstream API.

Tracks:
- API calls: total, success, failures, timeouts, rate limited
- Latency: min, max, avg, p95, p99 over the last 1000 calls (milliseconds)
- Cache: hits, misses, hit rate

Every collector owns its metrics; nothing is registered process-wide.
"""

import logging
import time
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Optional

import numpy as np

logger = logging.getLogger(__name__)

LATENCY_SAMPLE_SIZE = 1000

# Error kinds recorded alongside failed calls
ERROR_TIMEOUT = "timeout"
ERROR_RATE_LIMITED = "rate_limited"


# =============================================================================
# Metric Classes
# =============================================================================


class Counter:
    """A counter metric that can only increase."""

    def __init__(self, name: str, description: str, labels: Optional[list[str]] = None):
        self.name = name
        self.description = description
        self._label_names = labels or []
        self._values: dict[tuple, float] = {}

    def inc(self, value: float = 1.0, **labels: str) -> None:
        """Increment the counter."""
        key = tuple(labels.get(l, "") for l in self._label_names)
        self._values[key] = self._values.get(key, 0) + value

    def get(self, **labels: str) -> float:
        key = tuple(labels.get(l, "") for l in self._label_names)
        return self._values.get(key, 0)

    def to_prometheus(self) -> str:
        """Format as Prometheus text."""
        lines = [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} counter"]
        for label_values, value in self._values.items():
            if label_values:
                labels_str = ",".join(
                    f'{l}="{v}"' for l, v in zip(self._label_names, label_values)
                )
                lines.append(f"{self.name}{{{labels_str}}} {value}")
            else:
                lines.append(f"{self.name} {value}")
        return "\n".join(lines)


class Histogram:
    """A histogram of observations with cumulative bucket counts."""

    DEFAULT_BUCKETS = (10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000)

    def __init__(self, name: str, description: str, buckets: Optional[tuple] = None):
        self.name = name
        self.description = description
        self.buckets = buckets or self.DEFAULT_BUCKETS
        self._bucket_counts = [0] * len(self.buckets)
        self._sum = 0.0
        self._count = 0

    def observe(self, value: float) -> None:
        """Record an observation."""
        self._sum += value
        self._count += 1
        for i, bound in enumerate(self.buckets):
            if value <= bound:
                self._bucket_counts[i] += 1

    def to_prometheus(self) -> str:
        """Format as Prometheus text."""
        lines = [
            f"# HELP {self.name} {self.description}",
            f"# TYPE {self.name} histogram",
        ]
        for bound, count in zip(self.buckets, self._bucket_counts):
            lines.append(f'{self.name}_bucket{{le="{bound}"}} {count}')
        lines.append(f'{self.name}_bucket{{le="+Inf"}} {self._count}')
        lines.append(f"{self.name}_sum {self._sum}")
        lines.append(f"{self.name}_count {self._count}")
        return "\n".join(lines)


# =============================================================================
# Snapshot
# =============================================================================


@dataclass(frozen=True)
class ApiCallStats:
    total: int = 0
    success: int = 0
    failures: int = 0
    timeouts: int = 0
    rate_limited: int = 0


@dataclass(frozen=True)
class LatencyStats:
    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0
    p95: float = 0.0
    p99: float = 0.0


@dataclass(frozen=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time view of a MetricsCollector."""

    api_calls: ApiCallStats
    latency: LatencyStats
    cache: CacheStats
    last_updated: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def latency_stats(samples: Any) -> LatencyStats:
    """Summarise latency samples.

    Percentiles pick the sample at index ``floor(n * q)`` of the sorted data.
    """
    data = np.sort(np.asarray(list(samples), dtype=float))
    n = len(data)
    if n == 0:
        return LatencyStats()
    return LatencyStats(
        min=float(data[0]),
        max=float(data[-1]),
        avg=float(np.mean(data)),
        p95=float(data[int(n * 0.95)]),
        p99=float(data[int(n * 0.99)]),
    )


# =============================================================================
# Collector
# =============================================================================


class MetricsCollector:
    """Collects outcomes of upstream calls and cache lookups."""

    def __init__(self, namespace: str = "bridgewatch", sample_size: int = LATENCY_SAMPLE_SIZE):
        """Initialize collector.

        Args:
            namespace: Prefix for exported metric names
            sample_size: Number of recent latencies kept for percentiles
        """
        self.namespace = namespace
        self._latencies: deque[float] = deque(maxlen=sample_size)
        self._last_updated = time.time()
        self._create_metrics()

    def _create_metrics(self) -> None:
        namespace = self.namespace
        self.api_calls_total = Counter(
            name=f"{namespace}_api_calls_total",
            description="Total number of upstream API calls",
            labels=["outcome"],
        )
        self.api_errors_total = Counter(
            name=f"{namespace}_api_errors_total",
            description="Failed upstream API calls by error type",
            labels=["error_type"],
        )
        self.api_latency_ms = Histogram(
            name=f"{namespace}_api_latency_ms",
            description="Upstream API call latency in milliseconds",
        )
        self.cache_lookups_total = Counter(
            name=f"{namespace}_cache_lookups_total",
            description="Cache lookups by result",
            labels=["result"],
        )

    def record_api_call(
        self,
        success: bool,
        latency_ms: float,
        error_type: Optional[str] = None,
    ) -> None:
        """Record one upstream call attempt.

        Args:
            success: Whether the call succeeded
            latency_ms: Wall time of the call in milliseconds
            error_type: ``"timeout"`` or ``"rate_limited"`` for those failures
        """
        self.api_calls_total.inc(outcome="success" if success else "failure")
        if not success:
            self.api_errors_total.inc(error_type=error_type or "other")

        self._latencies.append(latency_ms)
        self.api_latency_ms.observe(latency_ms)
        self._last_updated = time.time()

    def record_cache_lookup(self, hit: bool) -> None:
        """Record a cache hit or miss."""
        self.cache_lookups_total.inc(result="hit" if hit else "miss")

    def snapshot(self) -> MetricsSnapshot:
        """Build a MetricsSnapshot from current counters."""
        success = int(self.api_calls_total.get(outcome="success"))
        failures = int(self.api_calls_total.get(outcome="failure"))
        hits = int(self.cache_lookups_total.get(result="hit"))
        misses = int(self.cache_lookups_total.get(result="miss"))
        lookups = hits + misses

        return MetricsSnapshot(
            api_calls=ApiCallStats(
                total=success + failures,
                success=success,
                failures=failures,
                timeouts=int(self.api_errors_total.get(error_type=ERROR_TIMEOUT)),
                rate_limited=int(self.api_errors_total.get(error_type=ERROR_RATE_LIMITED)),
            ),
            latency=latency_stats(self._latencies),
            cache=CacheStats(
                hits=hits,
                misses=misses,
                hit_rate=hits / lookups if lookups > 0 else 0.0,
            ),
            last_updated=self._last_updated,
        )

    def to_prometheus(self) -> str:
        """All metrics in Prometheus text format."""
        metrics = [
            self.api_calls_total,
            self.api_errors_total,
            self.api_latency_ms,
            self.cache_lookups_total,
        ]
        return "\n\n".join(m.to_prometheus() for m in metrics)

    def reset(self) -> None:
        """Forget everything recorded so far."""
        self._latencies.clear()
        self._last_updated = time.time()
        self._create_metrics()
