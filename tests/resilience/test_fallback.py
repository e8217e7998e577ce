"""Tests for static fallback estimates."""

import pytest

from bridgewatch.resilience.fallback import (
    DEFAULT_VOLUME_ESTIMATES,
    EstimateProvider,
    StaticEstimateProvider,
)

pytestmark = pytest.mark.unit


class TestStaticEstimateProvider:
    """Test the default estimate provider."""

    def test_default_volumes(self):
        """Test conservative volume estimates per window."""
        provider = StaticEstimateProvider()

        assert provider.volume_usd("24h") == 15_000_000.0
        assert provider.volume_usd("7d") == 105_000_000.0
        assert provider.volume_usd("30d") == 450_000_000.0

    def test_unknown_window_is_zero(self):
        """Test unknown windows estimate to zero."""
        assert StaticEstimateProvider().volume_usd("1y") == 0.0

    def test_default_liquidity(self, route):
        """Test static thresholds ordered by slippage."""
        thresholds = StaticEstimateProvider().liquidity_thresholds(route)

        assert [(t.slippage_bps, t.max_amount_in) for t in thresholds] == [
            (50, 5_000_000_000_000),
            (100, 10_000_000_000_000),
        ]

    def test_custom_liquidity_sorted(self, route):
        """Test custom thresholds are returned sorted by slippage."""
        provider = StaticEstimateProvider(liquidity=((100, 20), (30, 5)))

        assert [t.slippage_bps for t in provider.liquidity_thresholds(route)] == [30, 100]

    def test_no_fallback_assets_by_default(self):
        """Test no assets are invented by default."""
        assert StaticEstimateProvider().fallback_assets() == []

    def test_fallback_assets(self, usdc_ethereum):
        """Test configured fallback assets are returned."""
        provider = StaticEstimateProvider(assets=(usdc_ethereum,))
        assert provider.fallback_assets() == [usdc_ethereum]

    def test_default_volumes_not_shared(self):
        """Test instances do not share the volume mapping."""
        provider = StaticEstimateProvider()
        provider.volumes["24h"] = 1.0

        assert DEFAULT_VOLUME_ESTIMATES["24h"] == 15_000_000.0

    def test_is_estimate_provider(self):
        """Test the static provider satisfies the interface."""
        assert isinstance(StaticEstimateProvider(), EstimateProvider)
