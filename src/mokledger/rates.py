"""Static conversion and reward constants."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping

from .models import AssetType

XP_PER_LEVEL = 250


def _default_conversion_rates() -> Mapping[AssetType, Decimal]:
    return {
        AssetType.CASH: Decimal("0.01"),
        AssetType.USDC: Decimal("0.01"),
        AssetType.TRAVEL_MILES: Decimal("0.5"),
    }


@dataclass(frozen=True, slots=True)
class RateTable:
    """Global reward rules shared by every account.

    ``investment_*`` multipliers apply per dollar moved into the investment
    account; the ``withdrawal_*`` multipliers apply per dollar moved out.
    """

    conversion_rates: Mapping[AssetType, Decimal] = field(default_factory=_default_conversion_rates)
    investment_token_multiplier: Decimal = Decimal("2")
    investment_xp_multiplier: Decimal = Decimal("3")
    withdrawal_token_multiplier: Decimal = Decimal("2")
    withdrawal_xp_multiplier: Decimal = Decimal("3")
    mission_xp_multiplier: Decimal = Decimal("1.5")
    learning_token_divisor: int = 2
    xp_per_level: int = XP_PER_LEVEL

    def rate_for(self, asset_type: AssetType) -> Decimal:
        try:
            return self.conversion_rates[AssetType(asset_type)]
        except KeyError as exc:
            raise ValueError(f"No conversion rate configured for {asset_type!r}.") from exc


DEFAULT_RATES = RateTable()

__all__ = ["DEFAULT_RATES", "RateTable", "XP_PER_LEVEL"]
