"""Liquidity depth estimation by binary search over quotes.

For a route and a slippage budget, finds the largest input whose quoted
output stays within the budget. The search keeps ``low`` at a confirmed
feasible amount (or 0) and ``high`` at an infeasible or untested one.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence

from ..models import LiquidityThreshold, Quote, Route
from .rate_math import slippage_bps

logger = logging.getLogger(__name__)

UPPER_BOUND = 10**19
MAX_ITERATIONS = 25
DEFAULT_SLIPPAGE_BUDGETS = (50, 100)

QuoteFunction = Callable[[Route, int], Awaitable[Quote]]


class LiquidityUnavailableError(Exception):
    """Raised when no probe of a search produced a quote."""

    def __init__(self, message: str = "", last_error: Optional[Exception] = None):
        super().__init__(message)
        self.last_error = last_error


class LiquidityDepthSolver:
    """Binary search for the maximum input within a slippage budget.

    Usage:
        solver = LiquidityDepthSolver(quote_fn)
        thresholds = await solver.solve_many(route, (50, 100))
    """

    def __init__(
        self,
        quote_fn: QuoteFunction,
        upper_bound: int = UPPER_BOUND,
        max_iterations: int = MAX_ITERATIONS,
    ):
        """Initialize solver.

        Args:
            quote_fn: Async function quoting ``amount_in`` on a route
            upper_bound: Largest amount considered
            max_iterations: Probe budget per search
        """
        if upper_bound < 1:
            raise ValueError(f"upper_bound must be positive, got {upper_bound}")
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be positive, got {max_iterations}")
        self.quote_fn = quote_fn
        self.upper_bound = upper_bound
        self.max_iterations = max_iterations

    async def _probe(
        self, route: Route, amount: int, budget_bps: int
    ) -> tuple[Optional[bool], Optional[Exception]]:
        """Probe one amount. Feasibility is None if the probe itself failed."""
        try:
            quote = await self.quote_fn(route, amount)
        except Exception as e:
            logger.debug(f"Probe of {amount} on {route.key} failed: {e}")
            return None, e
        slippage = slippage_bps(
            amount, quote.amount_out, route.source.decimals, route.destination.decimals
        )
        return slippage <= budget_bps, None

    async def solve(self, route: Route, slippage_budget_bps: int) -> int:
        """Find the largest confirmed-feasible input amount.

        The first probe tests the upper bound itself; the remaining
        iterations bisect. Failed probes count as infeasible.

        Args:
            route: Route to probe
            slippage_budget_bps: Maximum tolerated slippage in basis points

        Returns:
            Largest amount confirmed within budget (0 if none was)

        Raises:
            LiquidityUnavailableError: If every probe failed
        """
        low, high = 0, self.upper_bound
        succeeded = 0
        last_error: Optional[Exception] = None

        feasible, error = await self._probe(route, high, slippage_budget_bps)
        if feasible is None:
            last_error = error
        else:
            succeeded += 1
        if feasible:
            return high

        for _ in range(self.max_iterations - 1):
            mid = (low + high) // 2
            if mid == low or mid == high:
                break

            feasible, error = await self._probe(route, mid, slippage_budget_bps)
            if feasible is None:
                last_error = error
            else:
                succeeded += 1
            if feasible:
                low = mid
            else:
                high = mid

        if succeeded == 0:
            raise LiquidityUnavailableError(
                f"No quotes obtained for {route.key} at {slippage_budget_bps}bps",
                last_error=last_error,
            )
        return low

    async def solve_many(
        self,
        route: Route,
        budgets: Sequence[int] = DEFAULT_SLIPPAGE_BUDGETS,
    ) -> list[LiquidityThreshold]:
        """Run one independent search per budget, concurrently.

        Returns:
            Thresholds ordered by slippage budget

        Raises:
            Exception: The first error raised by any of the searches
        """
        ordered = sorted(set(budgets))
        results = await asyncio.gather(
            *(self.solve(route, budget) for budget in ordered),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return [
            LiquidityThreshold(max_amount_in=amount, slippage_bps=budget)
            for budget, amount in zip(ordered, results)
        ]
