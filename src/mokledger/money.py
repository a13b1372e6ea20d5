"""Utilities for working with monetary values in MokLedger."""

from __future__ import annotations

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from .exceptions import InvalidAmountError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

AmountLike = Union[Decimal, int, float, str]


def to_decimal(value: AmountLike) -> Decimal:
    """Convert ``value`` to a :class:`~decimal.Decimal` with two decimal places."""

    if isinstance(value, bool):
        raise InvalidAmountError(f"Unsupported amount type: {type(value)!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidAmountError(f"Amount must be a finite number, got {value!r}.")
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except ArithmeticError as exc:
            raise InvalidAmountError(f"Amount {value!r} is not a number.") from exc
    else:
        raise InvalidAmountError(f"Unsupported amount type: {type(value)!r}")

    if not result.is_finite():
        raise InvalidAmountError(f"Amount must be a finite number, got {value!r}.")
    return result.quantize(CENT, rounding=ROUND_HALF_UP)


def require_positive(amount: Decimal, *, allow_zero: bool = False) -> Decimal:
    """Ensure ``amount`` is positive (or non-negative when ``allow_zero`` is true)."""

    if allow_zero:
        if amount < Decimal("0"):
            raise InvalidAmountError("Amount must be zero or greater.")
    else:
        if amount <= Decimal("0"):
            raise InvalidAmountError("Amount must be greater than zero.")
    return amount


def require_token_amount(amount: object) -> int:
    """Validate a MokToken quantity: a strictly positive whole number."""

    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(f"MokToken amounts must be whole numbers, got {amount!r}.")
    if amount <= 0:
        raise InvalidAmountError("MokToken amount must be greater than zero.")
    return amount


def floor_int(value: Decimal) -> int:
    """Round ``value`` towards negative infinity and return an ``int``."""

    return int(math.floor(value))


def format_currency(amount: Decimal) -> str:
    """Return ``amount`` as a currency formatted string (e.g. ``$12.34``)."""

    return f"${amount.quantize(CENT, rounding=ROUND_HALF_UP):,.2f}"


def format_miles(amount: Decimal) -> str:
    return f"{amount.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP):,.1f} miles"
