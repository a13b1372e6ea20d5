from decimal import Decimal

import pytest

from mokledger.conversion import convert, converted_value
from mokledger.exceptions import InsufficientTokensError, InvalidAmountError
from mokledger.ledger import Account
from mokledger.models import AssetType, TransactionType
from mokledger.rates import RateTable


def test_convert_tokens_to_cash_credits_savings() -> None:
    account = Account("ava", mok_tokens=1000, xp=120)

    result = convert(account, 1000, AssetType.CASH)

    assert result.account.mok_tokens == 0
    assert result.account.savings == Decimal("10.00")
    assert result.account.xp == 120
    assert result.converted_amount == Decimal("10.00")
    assert result.transaction.type is TransactionType.SAVING
    assert result.transaction.category == "Token Conversion - Cash"
    assert result.transaction.description == "Converted 1000 MokTokens to $10.00"


def test_convert_to_usdc_and_travel_miles() -> None:
    account = Account("ava", mok_tokens=200)

    usdc = convert(account, 150, "usdc")
    miles = convert(usdc.account, 10, AssetType.TRAVEL_MILES)

    assert usdc.account.usdc_balance == Decimal("1.50")
    assert miles.account.travel_miles == Decimal("5.00")
    assert miles.account.mok_tokens == 40
    assert miles.transaction.category == "Token Conversion - Travel Miles"
    assert miles.transaction.metadata == {"asset": "travel_miles", "tokens": "10"}


def test_convert_rejects_insufficient_tokens_without_changes() -> None:
    account = Account("ava", mok_tokens=99)

    with pytest.raises(InsufficientTokensError):
        convert(account, 100, AssetType.CASH)

    assert account.mok_tokens == 99
    assert account.savings == Decimal("0.00")


@pytest.mark.parametrize("amount", [0, -5, 1.5, True])
def test_convert_rejects_non_positive_or_fractional_amounts(amount) -> None:
    with pytest.raises(InvalidAmountError):
        convert(Account("ava", mok_tokens=10), amount, AssetType.CASH)


def test_converted_value_uses_configured_rates() -> None:
    rates = RateTable(conversion_rates={AssetType.CASH: Decimal("0.02")})

    assert converted_value(1, AssetType.CASH) == Decimal("0.01")
    assert converted_value(50, AssetType.CASH, rates=rates) == Decimal("1.00")
    with pytest.raises(ValueError):
        converted_value(50, AssetType.USDC, rates=rates)
