"""Field extraction from heterogeneous upstream JSON.

Upstream endpoints disagree on field names. Each logical field is an ordered
list of candidate keys; the first key present with a non-null value wins.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .models import Asset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldExtractor:
    """Named field with candidate keys in priority order."""

    name: str
    keys: tuple[str, ...]

    def extract(self, document: Any, default: Any = None) -> Any:
        if not isinstance(document, Mapping):
            return default
        for key in self.keys:
            value = document.get(key)
            if value is not None:
                return value
        return default


VOLUME_FIELDS: Mapping[str, FieldExtractor] = {
    "24h": FieldExtractor("volume_24h", ("24h", "last24h", "daily", "volume24h")),
    "7d": FieldExtractor("volume_7d", ("7d", "last7d", "weekly", "volume7d")),
    "30d": FieldExtractor("volume_30d", ("30d", "last30d", "monthly", "volume30d")),
}

AMOUNT_OUT = FieldExtractor("amount_out", ("amountOut", "targetAmount", "estimatedAmount", "toAmount"))
FEE_USD = FieldExtractor("fee_usd", ("feeUsd", "feeUSD"))

TOKEN_CHAIN_ID = FieldExtractor("chain_id", ("chainId", "chain_id", "chain"))
TOKEN_ADDRESS = FieldExtractor("address", ("address", "tokenAddress", "contractAddress"))
TOKEN_SYMBOL = FieldExtractor("symbol", ("symbol",))
TOKEN_DECIMALS = FieldExtractor("decimals", ("decimals", "decimal"))

DEFAULT_TOKEN_DECIMALS = 18


def parse_amount(value: Any) -> int:
    """Raw integer amount from a JSON string or integer.

    Raises:
        ValueError: For floats, booleans or non-numeric strings
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Amount must be an integer or integer string, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip(), 10)
    raise ValueError(f"Amount must be an integer or integer string, got {type(value).__name__}")


def parse_volumes(document: Any, windows: tuple[str, ...]) -> dict[str, float]:
    """Volume per window; windows without data report 0.0."""
    volumes = {}
    for window in windows:
        extractor = VOLUME_FIELDS.get(window)
        value = extractor.extract(document, 0) if extractor else 0
        try:
            volumes[window] = float(value)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric {window} volume: {value!r}")
            volumes[window] = 0.0
    return volumes


def token_list(document: Any) -> list[Any]:
    """Locate the token array in a tokens response.

    Accepts a bare list, ``{"tokens": [...]}`` or the same shapes nested
    under ``"data"``.
    """
    if isinstance(document, list):
        return document
    if isinstance(document, Mapping):
        tokens = document.get("tokens")
        if isinstance(tokens, list):
            return tokens
        if "data" in document:
            return token_list(document["data"])
    return []


def parse_asset(token: Any) -> Optional[Asset]:
    """Asset from one token record, or None if it lacks chain or address."""
    chain_id = TOKEN_CHAIN_ID.extract(token)
    address = TOKEN_ADDRESS.extract(token)
    if chain_id is None or not address:
        return None

    try:
        decimals = int(TOKEN_DECIMALS.extract(token, DEFAULT_TOKEN_DECIMALS))
    except (TypeError, ValueError):
        decimals = DEFAULT_TOKEN_DECIMALS

    return Asset(
        chain_id=str(chain_id),
        asset_id=str(address).lower(),
        symbol=str(TOKEN_SYMBOL.extract(token, "UNKNOWN")),
        decimals=decimals,
    )


def parse_assets(document: Any) -> list[Asset]:
    """All usable assets in a tokens response."""
    assets = []
    for token in token_list(document):
        asset = parse_asset(token)
        if asset is not None:
            assets.append(asset)
    return assets
