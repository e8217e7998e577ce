"""Data model for bridge market data.

Raw token amounts are plain Python ints (arbitrary precision) end to end; only
normalized rates and USD figures are floats.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

VOLUME_WINDOWS = ("24h", "7d", "30d")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Asset:
    """A token on a specific chain."""

    chain_id: str
    asset_id: str
    symbol: str
    decimals: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "assetId": self.asset_id,
            "symbol": self.symbol,
            "decimals": self.decimals,
        }


@dataclass(frozen=True)
class Route:
    """Ordered source -> destination pair across two chains."""

    source: Asset
    destination: Asset

    @property
    def key(self) -> str:
        return (
            f"{self.source.chain_id}:{self.source.asset_id.lower()}->"
            f"{self.destination.chain_id}:{self.destination.asset_id.lower()}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source.to_dict(), "destination": self.destination.to_dict()}


@dataclass(frozen=True)
class Quote:
    """A single simulated transfer."""

    amount_in: int
    amount_out: int


@dataclass(frozen=True)
class RateResult:
    """Quoted rate for one route and notional."""

    route: Route
    amount_in: int
    amount_out: int
    effective_rate: float
    total_fees_usd: float
    quoted_at: datetime = field(default_factory=utc_now)
    is_fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.route.source.to_dict(),
            "destination": self.route.destination.to_dict(),
            "amountIn": str(self.amount_in),
            "amountOut": str(self.amount_out),
            "effectiveRate": self.effective_rate,
            "totalFeesUsd": self.total_fees_usd,
            "quotedAt": self.quoted_at.isoformat(),
        }


@dataclass(frozen=True)
class LiquidityThreshold:
    """Largest input that stays within a slippage budget."""

    max_amount_in: int
    slippage_bps: int

    def to_dict(self) -> dict[str, Any]:
        return {"maxAmountIn": str(self.max_amount_in), "slippageBps": self.slippage_bps}


@dataclass(frozen=True)
class LiquidityDepth:
    """Liquidity thresholds measured for one route."""

    route: Route
    thresholds: tuple[LiquidityThreshold, ...]
    measured_at: datetime = field(default_factory=utc_now)
    is_fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "route": self.route.to_dict(),
            "thresholds": [t.to_dict() for t in self.thresholds],
            "measuredAt": self.measured_at.isoformat(),
        }


@dataclass(frozen=True)
class VolumeWindow:
    """Bridged USD volume over a trailing window."""

    window: str
    volume_usd: float
    measured_at: datetime = field(default_factory=utc_now)
    is_fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "window": self.window,
            "volumeUsd": self.volume_usd,
            "measuredAt": self.measured_at.isoformat(),
        }


@dataclass(frozen=True)
class ListedAssets:
    """Assets supported by the bridge."""

    assets: tuple[Asset, ...]
    measured_at: datetime = field(default_factory=utc_now)
    is_fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "assets": [a.to_dict() for a in self.assets],
            "measuredAt": self.measured_at.isoformat(),
        }


@dataclass(frozen=True)
class ProviderSnapshot:
    """Everything returned for one snapshot request."""

    volumes: list[VolumeWindow]
    rates: list[RateResult]
    liquidity: list[LiquidityDepth]
    listed_assets: ListedAssets

    def to_dict(self) -> dict[str, Any]:
        return {
            "volumes": [v.to_dict() for v in self.volumes],
            "rates": [r.to_dict() for r in self.rates],
            "liquidity": [l.to_dict() for l in self.liquidity],
            "listedAssets": self.listed_assets.to_dict(),
        }
