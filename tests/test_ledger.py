from decimal import Decimal

import pytest

from mokledger.exceptions import InsufficientFundsError, InsufficientTokensError, InvalidAmountError
from mokledger.ledger import Account, apply_delta, clamp_token_loss, level_progress, recompute_level
from mokledger.models import MonetaryDelta, ProfileDelta, ProgressDelta
from mokledger.money import format_currency, require_token_amount, to_decimal


def test_to_decimal_quantizes_and_rejects_bad_input() -> None:
    assert to_decimal("12.345") == Decimal("12.35")
    assert to_decimal(3) == Decimal("3.00")

    for bad in ("abc", float("nan"), float("inf"), True, None):
        with pytest.raises(InvalidAmountError):
            to_decimal(bad)  # type: ignore[arg-type]


def test_require_token_amount_only_accepts_positive_integers() -> None:
    assert require_token_amount(5) == 5

    for bad in (0, -3, 1.5, "10", False):
        with pytest.raises(InvalidAmountError):
            require_token_amount(bad)


def test_recompute_level_uses_level_boundaries_and_never_decreases() -> None:
    assert recompute_level(0) == 0
    assert recompute_level(249) == 0
    assert recompute_level(250) == 1
    assert recompute_level(600) == 2
    assert recompute_level(10, 3) == 3


def test_apply_delta_combines_tagged_changes() -> None:
    account = Account("ava", mok_tokens=10, savings=Decimal("5"))

    updated = apply_delta(
        account,
        MonetaryDelta(savings=Decimal("-2.50"), investment_balance=Decimal("2.50")),
        ProgressDelta(tokens=40, xp=260),
        ProfileDelta(add_badges=("first-saver",)),
    )

    assert updated.savings == Decimal("2.50")
    assert updated.investment_balance == Decimal("2.50")
    assert updated.mok_tokens == 50
    assert updated.xp == 260
    assert updated.level == 1
    assert updated.badges == ("first-saver",)
    assert account.savings == Decimal("5.00")


def test_apply_delta_is_all_or_nothing() -> None:
    account = Account("ava", mok_tokens=10, savings=Decimal("5"))

    with pytest.raises(InsufficientFundsError):
        apply_delta(account, ProgressDelta(tokens=5), MonetaryDelta(savings=Decimal("-10")))

    with pytest.raises(InsufficientTokensError):
        apply_delta(account, ProgressDelta(tokens=-11))

    assert account.mok_tokens == 10
    assert account.savings == Decimal("5.00")


def test_badges_are_not_duplicated() -> None:
    account = Account("ava", badges=("first-lesson",))

    updated = apply_delta(account, ProfileDelta(add_badges=("first-lesson", "goal-setter", "goal-setter")))

    assert updated.badges == ("first-lesson", "goal-setter")


def test_account_rejects_negative_balances() -> None:
    with pytest.raises(InsufficientFundsError):
        Account("ava", savings=Decimal("-1"))

    with pytest.raises(InsufficientTokensError):
        Account("ava", mok_tokens=-1)


def test_clamp_token_loss_floors_at_zero() -> None:
    account = Account("ava", mok_tokens=50, xp=100)

    clamped = clamp_token_loss(account, ProgressDelta(tokens=-200, xp=-300))

    assert clamped == ProgressDelta(tokens=-50, xp=-100)
    assert clamp_token_loss(account, ProgressDelta(tokens=20, xp=30)) == ProgressDelta(tokens=20, xp=30)


def test_level_progress_reports_distance_to_next_level() -> None:
    account = Account("ava", xp=300, level=1)

    progress = level_progress(account)

    assert progress.current_level_xp == 250
    assert progress.next_level_xp == 500
    assert progress.xp_needed == 200
    assert progress.percentage == Decimal("20.0")


def test_summary_and_currency_formatting() -> None:
    account = Account("ava", mok_tokens=12, xp=40, savings=Decimal("1234.5"))

    summary = account.summary()

    assert "Level 0 (40 XP), 12 MokTokens" in summary
    assert "Savings: $1,234.50" in summary
    assert format_currency(Decimal("0.005")) == "$0.01"
    assert account.total_savings == Decimal("1234.50")
