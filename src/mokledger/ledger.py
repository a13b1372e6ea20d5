"""Account ledger: balances, MokTokens and XP for a single user."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Tuple, Union

from .exceptions import InsufficientFundsError, InsufficientTokensError
from .models import MONETARY_FIELDS, MonetaryDelta, ProfileDelta, ProgressDelta
from .money import ZERO, format_currency, to_decimal
from .rates import XP_PER_LEVEL

Delta = Union[MonetaryDelta, ProgressDelta, ProfileDelta]


def recompute_level(xp: int, current_level: int = 0, *, xp_per_level: int = XP_PER_LEVEL) -> int:
    """Return the level for ``xp`` without ever going below ``current_level``.

    Level ``n`` is reached at ``n * xp_per_level`` XP.
    """

    if xp_per_level <= 0:
        raise ValueError("xp_per_level must be positive")
    earned = max(xp, 0) // xp_per_level
    return max(current_level, earned)


@dataclass(frozen=True, slots=True)
class Account:
    """Immutable snapshot of one user's economy state."""

    user_id: str
    mok_tokens: int = 0
    xp: int = 0
    level: int = 0
    savings: Decimal = ZERO
    investment_balance: Decimal = ZERO
    crypto_balance: Decimal = ZERO
    usdc_balance: Decimal = ZERO
    travel_miles: Decimal = ZERO
    badges: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        for name in MONETARY_FIELDS:
            value = to_decimal(getattr(self, name))
            if value < ZERO:
                raise InsufficientFundsError(f"{name} cannot be negative ({value}).")
            object.__setattr__(self, name, value)
        if self.mok_tokens < 0:
            raise InsufficientTokensError("mok_tokens cannot be negative.")
        if self.xp < 0 or self.level < 0:
            raise ValueError("xp and level cannot be negative.")
        object.__setattr__(self, "badges", tuple(self.badges))

    def balance_of(self, field_name: str) -> Decimal:
        if field_name not in MONETARY_FIELDS:
            raise ValueError(f"Unknown monetary field: {field_name!r}")
        return getattr(self, field_name)

    @property
    def total_savings(self) -> Decimal:
        """Savings plus investment plus crypto, as shown on the savings overview."""

        return self.savings + self.investment_balance + self.crypto_balance

    def summary(self) -> str:
        lines = [
            f"Account: {self.user_id}",
            f"Level {self.level} ({self.xp} XP), {self.mok_tokens} MokTokens",
            f"Savings: {format_currency(self.savings)}",
            f"Investments: {format_currency(self.investment_balance)}",
            f"Crypto: {format_currency(self.crypto_balance)}",
            f"USDC: {format_currency(self.usdc_balance)}",
            f"Travel miles: {self.travel_miles:.2f}",
        ]
        return "\n".join(lines)


def apply_delta(account: Account, *deltas: Delta, xp_per_level: int = XP_PER_LEVEL) -> Account:
    """Return a new snapshot with every delta applied, or raise without changes.

    All deltas are validated together before the new snapshot is built, so a
    failing field leaves ``account`` untouched.
    """

    monetary = MonetaryDelta()
    progress = ProgressDelta()
    badges: list[str] = []
    for delta in deltas:
        if isinstance(delta, MonetaryDelta):
            monetary = monetary + delta
        elif isinstance(delta, ProgressDelta):
            progress = progress + delta
        elif isinstance(delta, ProfileDelta):
            badges.extend(delta.add_badges)
        else:
            raise TypeError(f"Unsupported delta type: {type(delta).__name__}")

    changes: Dict[str, object] = {}
    for name, change in monetary.items():
        new_value = getattr(account, name) + change
        if new_value < ZERO:
            raise InsufficientFundsError(
                f"{name} would drop to {format_currency(new_value)}; "
                f"only {format_currency(getattr(account, name))} available."
            )
        changes[name] = new_value

    new_tokens = account.mok_tokens + progress.tokens
    if new_tokens < 0:
        raise InsufficientTokensError(
            f"Need {-progress.tokens} MokTokens but only {account.mok_tokens} are available."
        )
    new_xp = account.xp + progress.xp
    if new_xp < 0:
        raise InsufficientFundsError(f"XP would drop below zero ({new_xp}).")
    if progress.tokens:
        changes["mok_tokens"] = new_tokens
    if progress.xp:
        changes["xp"] = new_xp
        changes["level"] = recompute_level(new_xp, account.level, xp_per_level=xp_per_level)

    if badges:
        merged = list(account.badges)
        merged.extend(badge for badge in dict.fromkeys(badges) if badge not in merged)
        changes["badges"] = tuple(merged)

    if not changes:
        return account
    return replace(account, **changes)


def clamp_token_loss(account: Account, delta: ProgressDelta) -> ProgressDelta:
    """Cap negative token and XP changes so neither drops below zero.

    Used for investment withdrawal penalties, which are clamped rather than
    rejected.
    """

    tokens = max(delta.tokens, -account.mok_tokens)
    xp = max(delta.xp, -account.xp)
    return ProgressDelta(tokens=tokens, xp=xp)


@dataclass(frozen=True, slots=True)
class LevelProgress:
    level: int
    xp: int
    current_level_xp: int
    next_level_xp: int

    @property
    def xp_needed(self) -> int:
        return max(self.next_level_xp - self.xp, 0)

    @property
    def percentage(self) -> Decimal:
        span = self.next_level_xp - self.current_level_xp
        earned = min(max(self.xp - self.current_level_xp, 0), span)
        return (Decimal(earned) * Decimal(100) / Decimal(span)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def level_progress(account: Account, *, xp_per_level: int = XP_PER_LEVEL) -> LevelProgress:
    """Describe how far ``account`` is between its level and the next one."""

    return LevelProgress(
        level=account.level,
        xp=account.xp,
        current_level_xp=account.level * xp_per_level,
        next_level_xp=(account.level + 1) * xp_per_level,
    )


__all__ = [
    "Account",
    "Delta",
    "LevelProgress",
    "apply_delta",
    "clamp_token_loss",
    "level_progress",
    "recompute_level",
]
