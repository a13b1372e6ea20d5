"""Conversion of MokTokens into cash, USDC or travel miles."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from .exceptions import InsufficientTokensError
from .ledger import Account, apply_delta
from .models import AssetType, MonetaryDelta, ProgressDelta, Transaction, TransactionType
from .money import CENT, format_currency, format_miles, require_token_amount
from .rates import DEFAULT_RATES, RateTable
from .transactions import CATEGORY_CONVERSION_PREFIX, new_transaction


@dataclass(frozen=True, slots=True)
class ConversionResult:
    account: Account
    transaction: Transaction
    asset_type: AssetType
    tokens_spent: int
    converted_amount: Decimal


def converted_value(amount: int, asset_type: AssetType, *, rates: RateTable = DEFAULT_RATES) -> Decimal:
    """Return what ``amount`` MokTokens are worth in ``asset_type``."""

    return (Decimal(amount) * rates.rate_for(asset_type)).quantize(CENT, rounding=ROUND_HALF_UP)


def convert(
    account: Account,
    amount: int,
    asset_type: AssetType | str,
    *,
    rates: RateTable = DEFAULT_RATES,
) -> ConversionResult:
    """Spend ``amount`` MokTokens and credit the matching asset balance.

    XP is never touched by a conversion.
    """

    tokens = require_token_amount(amount)
    asset = AssetType(asset_type)
    if tokens > account.mok_tokens:
        raise InsufficientTokensError(
            f"Insufficient MokTokens. You have {account.mok_tokens} but need {tokens}."
        )
    value = converted_value(tokens, asset, rates=rates)
    updated = apply_delta(
        account,
        ProgressDelta(tokens=-tokens),
        MonetaryDelta.single(asset.field_name, value),
        xp_per_level=rates.xp_per_level,
    )
    shown = format_miles(value) if asset is AssetType.TRAVEL_MILES else format_currency(value)
    record = new_transaction(
        TransactionType.SAVING,
        value,
        f"{CATEGORY_CONVERSION_PREFIX} - {asset.label}",
        f"Converted {tokens} MokTokens to {shown}",
        metadata={"asset": asset.value, "tokens": str(tokens)},
    )
    return ConversionResult(
        account=updated,
        transaction=record,
        asset_type=asset,
        tokens_spent=tokens,
        converted_amount=value,
    )


__all__ = ["ConversionResult", "convert", "converted_value"]
