"""Domain models used by the MokLedger package."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple
from uuid import uuid4

from .exceptions import InvalidAmountError
from .money import ZERO, require_positive, to_decimal


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class TransactionType(str, Enum):
    """Enumerates the supported types of ledger records."""

    INCOME = "income"
    EXPENSE = "expense"
    SAVING = "saving"


class SubAccount(str, Enum):
    """Dollar-denominated sub-accounts that can send and receive transfers."""

    SAVINGS = "savings"
    INVESTMENT = "investment"
    CRYPTO = "crypto"
    USDC = "usdc"

    @property
    def field_name(self) -> str:
        return _SUB_ACCOUNT_FIELDS[self]


_SUB_ACCOUNT_FIELDS = {
    SubAccount.SAVINGS: "savings",
    SubAccount.INVESTMENT: "investment_balance",
    SubAccount.CRYPTO: "crypto_balance",
    SubAccount.USDC: "usdc_balance",
}


class AssetType(str, Enum):
    """Assets that MokTokens can be converted into."""

    CASH = "cash"
    USDC = "usdc"
    TRAVEL_MILES = "travel_miles"

    @property
    def field_name(self) -> str:
        return _ASSET_FIELDS[self]

    @property
    def label(self) -> str:
        return _ASSET_LABELS[self]


_ASSET_FIELDS = {
    AssetType.CASH: "savings",
    AssetType.USDC: "usdc_balance",
    AssetType.TRAVEL_MILES: "travel_miles",
}

_ASSET_LABELS = {
    AssetType.CASH: "Cash",
    AssetType.USDC: "USDC",
    AssetType.TRAVEL_MILES: "Travel Miles",
}


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ModuleDifficulty(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class MissionDifficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


@dataclass(frozen=True, slots=True)
class Transaction:
    """Immutable audit record of a balance-affecting event."""

    type: TransactionType
    amount: Decimal
    category: str
    description: str
    date: date = field(default_factory=lambda: _utcnow().date())
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)
    metadata: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", TransactionType(self.type))
        object.__setattr__(self, "amount", to_decimal(self.amount))


# ---------------------------------------------------------------------------
# Tagged deltas
# ---------------------------------------------------------------------------
MONETARY_FIELDS: Tuple[str, ...] = (
    "savings",
    "investment_balance",
    "crypto_balance",
    "usdc_balance",
    "travel_miles",
)


@dataclass(frozen=True, slots=True)
class MonetaryDelta:
    """Signed change to one or more monetary balances."""

    savings: Decimal = ZERO
    investment_balance: Decimal = ZERO
    crypto_balance: Decimal = ZERO
    usdc_balance: Decimal = ZERO
    travel_miles: Decimal = ZERO

    def __post_init__(self) -> None:
        for name in MONETARY_FIELDS:
            object.__setattr__(self, name, to_decimal(getattr(self, name)))

    @classmethod
    def single(cls, field_name: str, amount: Decimal) -> "MonetaryDelta":
        if field_name not in MONETARY_FIELDS:
            raise ValueError(f"Unknown monetary field: {field_name!r}")
        return cls(**{field_name: amount})

    def items(self) -> Iterator[Tuple[str, Decimal]]:
        """Yield ``(field, change)`` pairs for the non-zero changes."""

        for name in MONETARY_FIELDS:
            value = getattr(self, name)
            if value != ZERO:
                yield name, value

    def __add__(self, other: "MonetaryDelta") -> "MonetaryDelta":
        if not isinstance(other, MonetaryDelta):
            return NotImplemented
        return MonetaryDelta(**{name: getattr(self, name) + getattr(other, name) for name in MONETARY_FIELDS})


@dataclass(frozen=True, slots=True)
class ProgressDelta:
    """Signed change to MokTokens and XP."""

    tokens: int = 0
    xp: int = 0

    def __post_init__(self) -> None:
        for name in ("tokens", "xp"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be an int, got {value!r}")

    @property
    def is_zero(self) -> bool:
        return self.tokens == 0 and self.xp == 0

    def __add__(self, other: "ProgressDelta") -> "ProgressDelta":
        if not isinstance(other, ProgressDelta):
            return NotImplemented
        return ProgressDelta(tokens=self.tokens + other.tokens, xp=self.xp + other.xp)


@dataclass(frozen=True, slots=True)
class ProfileDelta:
    """Profile-level changes that carry no value, such as earned badges."""

    add_badges: Tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Goals, lessons and missions
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Goal:
    """Represents a savings goal that children can contribute towards."""

    title: str
    target_amount: Decimal
    current_amount: Decimal = ZERO
    category: str = "General"
    due_date: Optional[date] = None
    priority: Priority = Priority.MEDIUM
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        target = to_decimal(self.target_amount)
        current = to_decimal(self.current_amount)
        require_positive(target)
        if current < ZERO:
            raise InvalidAmountError("current_amount cannot be negative.")
        if current > target:
            raise InvalidAmountError("current_amount cannot exceed target_amount.")
        object.__setattr__(self, "target_amount", target)
        object.__setattr__(self, "current_amount", current)
        object.__setattr__(self, "priority", Priority(self.priority))

    @property
    def remaining(self) -> Decimal:
        """Return the amount still required to achieve the goal."""

        remainder = self.target_amount - self.current_amount
        return remainder if remainder > ZERO else ZERO

    @property
    def is_complete(self) -> bool:
        """True when the goal has been fully funded."""

        return self.current_amount >= self.target_amount

    def progress(self) -> Decimal:
        """Return the progress towards the goal as a decimal ratio (0-1)."""

        ratio = min(self.current_amount / self.target_amount, Decimal("1"))
        return ratio.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)

    def with_amount(self, current_amount: Decimal) -> "Goal":
        return replace(self, current_amount=current_amount)

    def with_edits(
        self,
        *,
        due_date: Optional[date] = None,
        priority: Optional[Priority] = None,
    ) -> "Goal":
        changes: Dict[str, object] = {}
        if due_date is not None:
            changes["due_date"] = due_date
        if priority is not None:
            changes["priority"] = Priority(priority)
        return replace(self, **changes) if changes else self


@dataclass(frozen=True, slots=True)
class LearningModule:
    """A lesson whose completion earns XP in proportion to the quiz score."""

    id: str
    title: str
    xp_reward: int
    category: str = ""
    difficulty: ModuleDifficulty = ModuleDifficulty.BEGINNER
    completed: bool = False

    def __post_init__(self) -> None:
        if self.xp_reward <= 0:
            raise InvalidAmountError("xp_reward must be greater than zero.")


@dataclass(frozen=True, slots=True)
class Mission:
    """A real-world chore rewarded with a fixed number of MokTokens."""

    id: str
    title: str
    reward: int
    category: str = ""
    difficulty: MissionDifficulty = MissionDifficulty.EASY
    completed: bool = False
    due_date: Optional[date] = None

    def __post_init__(self) -> None:
        if self.reward <= 0:
            raise InvalidAmountError("reward must be greater than zero.")


__all__ = [
    "AssetType",
    "Goal",
    "LearningModule",
    "MONETARY_FIELDS",
    "Mission",
    "MissionDifficulty",
    "ModuleDifficulty",
    "MonetaryDelta",
    "Priority",
    "ProfileDelta",
    "ProgressDelta",
    "SubAccount",
    "Transaction",
    "TransactionType",
]
