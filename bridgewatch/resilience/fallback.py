"""Fallback estimates used when the upstream API cannot answer.

The numbers here are policy, not mechanism: swap in another
``EstimateProvider`` to revise them without touching the resilience code.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from ..models import Asset, LiquidityThreshold, Route

logger = logging.getLogger(__name__)


# Conservative USD volume estimates per window
DEFAULT_VOLUME_ESTIMATES: Mapping[str, float] = {
    "24h": 15_000_000.0,
    "7d": 105_000_000.0,
    "30d": 450_000_000.0,
}

# (slippage_bps, max_amount_in) pairs
DEFAULT_LIQUIDITY_ESTIMATES: tuple[tuple[int, int], ...] = (
    (50, 5_000_000_000_000),
    (100, 10_000_000_000_000),
)


class EstimateProvider(ABC):
    """Source of static estimates for each data category."""

    @abstractmethod
    def volume_usd(self, window: str) -> float:
        """Estimated USD volume for a window."""

    @abstractmethod
    def liquidity_thresholds(self, route: Route) -> list[LiquidityThreshold]:
        """Estimated liquidity thresholds for a route, ordered by slippage."""

    @abstractmethod
    def fallback_assets(self) -> list[Asset]:
        """Assets to report when the asset listing is unavailable."""


@dataclass
class StaticEstimateProvider(EstimateProvider):
    """Fixed estimates, identical for every route."""

    volumes: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_VOLUME_ESTIMATES))
    liquidity: Sequence[tuple[int, int]] = DEFAULT_LIQUIDITY_ESTIMATES
    assets: Sequence[Asset] = ()

    def volume_usd(self, window: str) -> float:
        return float(self.volumes.get(window, 0.0))

    def liquidity_thresholds(self, route: Route) -> list[LiquidityThreshold]:
        return [
            LiquidityThreshold(max_amount_in=amount, slippage_bps=bps)
            for bps, amount in sorted(self.liquidity)
        ]

    def fallback_assets(self) -> list[Asset]:
        return list(self.assets)
