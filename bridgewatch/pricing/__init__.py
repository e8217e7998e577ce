"""Numeric estimation: rates, fees, slippage and liquidity depth."""

from .liquidity import (
    DEFAULT_SLIPPAGE_BUDGETS,
    UPPER_BOUND,
    LiquidityDepthSolver,
    LiquidityUnavailableError,
)
from .rate_math import FeeModel, apply_fee, effective_rate, expected_output, fee_usd, slippage_bps

__all__ = [
    "LiquidityDepthSolver",
    "LiquidityUnavailableError",
    "UPPER_BOUND",
    "DEFAULT_SLIPPAGE_BUDGETS",
    "FeeModel",
    "effective_rate",
    "fee_usd",
    "slippage_bps",
    "expected_output",
    "apply_fee",
]
