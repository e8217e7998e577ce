"""Decimal-safe rate, fee and slippage arithmetic.

Raw amounts stay Python ints throughout; only normalized rates and USD
values are converted to float at the very end.
"""

from dataclasses import dataclass
from decimal import Decimal, localcontext

from ..models import Asset, Quote

BPS_DENOMINATOR = 10_000
DEFAULT_FEE_BPS = 25  # 0.25%

# Enough digits for 10**24 raw amounts at 18 decimals with room to spare
_PRECISION = 80


def normalize(amount_raw: int, decimals: int) -> Decimal:
    """Raw smallest-unit amount as a human-readable Decimal."""
    return Decimal(amount_raw).scaleb(-decimals)


def effective_rate(amount_in: int, amount_out: int, decimals_in: int, decimals_out: int) -> float:
    """Destination units received per source unit.

    Returns 0.0 when ``amount_in`` is zero.
    """
    if amount_in == 0:
        return 0.0
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return float(normalize(amount_out, decimals_out) / normalize(amount_in, decimals_in))


def fee_usd(amount_raw: int, decimals: int, usd_price_per_unit: float, fee_bps: int) -> float:
    """USD value of a ``fee_bps`` fee charged on ``amount_raw``."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        value = normalize(amount_raw, decimals) * Decimal(str(usd_price_per_unit))
        return float(value * fee_bps / BPS_DENOMINATOR)


def expected_output(amount_in: int, decimals_in: int, decimals_out: int) -> int:
    """Output of a 1:1 transfer, rescaled to the destination's decimals."""
    return amount_in * 10**decimals_out // 10**decimals_in


def slippage_bps(amount_in: int, amount_out: int, decimals_in: int, decimals_out: int) -> int:
    """Deviation of ``amount_out`` from the 1:1 expectation, in basis points.

    Defined as 0 when the expected output rounds to zero.
    """
    expected = expected_output(amount_in, decimals_in, decimals_out)
    if expected == 0:
        return 0
    return abs(expected - amount_out) * BPS_DENOMINATOR // expected


def apply_fee(amount: int, fee_bps: int) -> int:
    """Amount left after deducting ``fee_bps``."""
    return amount * (BPS_DENOMINATOR - fee_bps) // BPS_DENOMINATOR


@dataclass(frozen=True)
class FeeModel:
    """Flat percentage fee used to estimate quotes offline.

    Assets are priced at ``usd_price_per_unit`` (1.0 for stablecoins) until a
    price oracle is wired in.
    """

    fee_bps: int = DEFAULT_FEE_BPS
    usd_price_per_unit: float = 1.0

    def quote(self, amount_in: int, source: Asset, destination: Asset) -> Quote:
        """Deterministic quote for a 1:1 transfer less the fee."""
        gross = expected_output(amount_in, source.decimals, destination.decimals)
        return Quote(amount_in=amount_in, amount_out=apply_fee(gross, self.fee_bps))

    def fee_usd(self, amount_raw: int, asset: Asset) -> float:
        """USD fee charged on ``amount_raw`` of ``asset``."""
        return fee_usd(amount_raw, asset.decimals, self.usd_price_per_unit, self.fee_bps)
