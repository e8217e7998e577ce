"""bridgewatch: resilient market data client for cross-chain bridge APIs."""

__version__ = "0.1.0"

from .models import Asset, ProviderSnapshot, Route
from .orchestrator import AggregationOrchestrator, ErrorCode, SnapshotError
from .transport import AiohttpTransport, HttpRequest, HttpResponse

__all__ = [
    "AggregationOrchestrator",
    "SnapshotError",
    "ErrorCode",
    "Asset",
    "Route",
    "ProviderSnapshot",
    "AiohttpTransport",
    "HttpRequest",
    "HttpResponse",
]
