"""Input validation for snapshot requests.

Provides:
- Asset validation (chain id, asset id, symbol, decimals range)
- Route validation (distinct source and destination chains)
- Notional validation (positive integer within bounds)
- Volume window validation
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence, Union

from .models import VOLUME_WINDOWS, Asset, Route

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised when a request cannot be served as given."""

    def __init__(self, message: str = "", errors: Sequence[str] = ()):
        super().__init__(message or "; ".join(errors))
        self.errors = list(errors)


@dataclass
class ValidationResult:
    """Result of validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)


class RequestValidator:
    """Validates routes, notionals and windows before any network access."""

    MIN_DECIMALS = 0
    MAX_DECIMALS = 18
    # 1M tokens at 18 decimals
    MAX_NOTIONAL = 10**24

    def validate_asset(self, asset: Asset, label: str = "Asset") -> list[str]:
        """Validate a single asset.

        Args:
            asset: Asset to check
            label: Prefix used in error messages

        Returns:
            List of error messages (empty if valid)
        """
        errors = []
        if not asset.chain_id or not asset.chain_id.strip():
            errors.append(f"{label} chainId is required")
        if not asset.asset_id or not asset.asset_id.strip():
            errors.append(f"{label} assetId is required")
        if not asset.symbol or not asset.symbol.strip():
            errors.append(f"{label} symbol is required")
        if not isinstance(asset.decimals, int) or not (
            self.MIN_DECIMALS <= asset.decimals <= self.MAX_DECIMALS
        ):
            errors.append(
                f"{label} decimals must be between {self.MIN_DECIMALS} and {self.MAX_DECIMALS}"
            )
        return errors

    def validate_route(self, route: Route) -> ValidationResult:
        """Validate a route.

        Args:
            route: Route to check

        Returns:
            ValidationResult with validation status and errors
        """
        errors = self.validate_asset(route.source, "Source")
        errors += self.validate_asset(route.destination, "Destination")

        if route.source.chain_id == route.destination.chain_id:
            errors.append("Source and destination cannot be on the same chain")

        return ValidationResult(valid=len(errors) == 0, errors=errors)

    def validate_notional(self, notional: Union[str, int]) -> ValidationResult:
        """Validate a raw notional amount.

        Args:
            notional: Smallest-unit amount as a decimal string or int

        Returns:
            ValidationResult with validation status and errors
        """
        errors = []

        if isinstance(notional, str) and not notional.strip():
            return ValidationResult(valid=False, errors=["Notional amount is required"])

        try:
            amount = parse_notional(notional)
        except (TypeError, ValueError):
            return ValidationResult(
                valid=False, errors=[f"Notional amount must be a valid integer: {notional!r}"]
            )

        if amount <= 0:
            errors.append("Notional amount must be greater than 0")
        if amount > self.MAX_NOTIONAL:
            errors.append("Notional amount exceeds maximum allowed")

        return ValidationResult(valid=len(errors) == 0, errors=errors)

    def validate_windows(self, windows: Iterable[str]) -> ValidationResult:
        """Validate requested volume windows."""
        errors = [
            f"Unsupported volume window: {w}" for w in windows if w not in VOLUME_WINDOWS
        ]
        return ValidationResult(valid=len(errors) == 0, errors=errors)

    def check_request(
        self,
        routes: Sequence[Route],
        notionals: Sequence[Union[str, int]],
        windows: Sequence[str],
    ) -> None:
        """Validate a whole snapshot request.

        Raises:
            ValidationError: If any route, notional or window is invalid
        """
        errors: list[str] = []
        for index, route in enumerate(routes):
            result = self.validate_route(route)
            errors.extend(f"routes[{index}]: {e}" for e in result.errors)
        for index, notional in enumerate(notionals):
            result = self.validate_notional(notional)
            errors.extend(f"notionals[{index}]: {e}" for e in result.errors)
        errors.extend(self.validate_windows(windows).errors)

        if errors:
            logger.warning(f"Rejected snapshot request with {len(errors)} validation errors")
            raise ValidationError(errors=errors)


def parse_notional(notional: Union[str, int]) -> int:
    """Parse a raw amount without going through float."""
    if isinstance(notional, bool):
        raise TypeError("Notional must be a string or int, not bool")
    if isinstance(notional, int):
        return notional
    if isinstance(notional, str):
        return int(notional.strip(), 10)
    raise TypeError(f"Notional must be a string or int, got {type(notional).__name__}")
