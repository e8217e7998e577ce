"""Example script demonstrating a bridgewatch snapshot."""

import asyncio
import logging

from bridgewatch import AggregationOrchestrator, Asset, Route, SnapshotError
from bridgewatch.config import configure_logging, settings
from bridgewatch.resilience.fallback import StaticEstimateProvider

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

USDC_ETHEREUM = Asset(
    chain_id="1",
    asset_id="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    symbol="USDC",
    decimals=6,
)
USDC_POLYGON = Asset(
    chain_id="137",
    asset_id="0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
    symbol="USDC",
    decimals=6,
)
USDC_ARBITRUM = Asset(
    chain_id="42161",
    asset_id="0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
    symbol="USDC",
    decimals=6,
)


async def main():
    """Fetch one snapshot and print a summary."""

    logger.info("=" * 60)
    logger.info("bridgewatch snapshot")
    logger.info("=" * 60)

    routes = [
        Route(source=USDC_ETHEREUM, destination=USDC_POLYGON),
        Route(source=USDC_ETHEREUM, destination=USDC_ARBITRUM),
    ]
    notionals = ["1000000", "1000000000"]  # 1 and 1000 USDC

    orchestrator = AggregationOrchestrator.from_settings(settings)
    # Known assets to report if the token listing is unreachable
    orchestrator.estimates = StaticEstimateProvider(
        assets=(USDC_ETHEREUM, USDC_POLYGON, USDC_ARBITRUM)
    )

    async with orchestrator:
        health = await orchestrator.ping()
        logger.info(f"Health: {health['status']} at {health['timestamp']}")

        try:
            snapshot = await orchestrator.get_snapshot(routes, notionals, ("24h", "7d", "30d"))
        except SnapshotError as e:
            logger.error(f"Snapshot failed [{e.code.value}]: {e} (retry after {e.retry_after}s)")
            return

        logger.info("-" * 60)
        logger.info("Volumes:")
        for volume in snapshot.volumes:
            source = "estimate" if volume.is_fallback else "live"
            logger.info(f"  {volume.window}: ${volume.volume_usd:,.0f} ({source})")

        logger.info("Rates:")
        for rate in snapshot.rates:
            source = "estimate" if rate.is_fallback else "live"
            logger.info(
                f"  {rate.route.key} {rate.amount_in} -> {rate.amount_out} "
                f"rate={rate.effective_rate:.6f} fee=${rate.total_fees_usd:.4f} ({source})"
            )

        logger.info("Liquidity:")
        for depth in snapshot.liquidity:
            source = "estimate" if depth.is_fallback else "live"
            for threshold in depth.thresholds:
                logger.info(
                    f"  {depth.route.key} @ {threshold.slippage_bps}bps: "
                    f"{threshold.max_amount_in} ({source})"
                )

        logger.info(f"Listed assets: {len(snapshot.listed_assets.assets)}")

        metrics = orchestrator.get_metrics()
        logger.info("-" * 60)
        logger.info(
            f"API calls: {metrics.api_calls.total} "
            f"({metrics.api_calls.success} ok, {metrics.api_calls.failures} failed)"
        )
        logger.info(f"Latency p95: {metrics.latency.p95:.1f}ms")
        logger.info(f"Cache hit rate: {metrics.cache.hit_rate:.2%}")


if __name__ == "__main__":
    asyncio.run(main())
