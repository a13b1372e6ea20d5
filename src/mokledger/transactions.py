"""Append-only transaction log."""

from __future__ import annotations

import csv
from datetime import date
from io import StringIO
from typing import Iterable, Iterator, Mapping, Optional, Sequence, Tuple

from .models import Transaction, TransactionType
from .money import AmountLike, to_decimal

CATEGORY_TRANSFER_OUT = "Transfer Out"
CATEGORY_TRANSFER_IN = "Transfer In"
CATEGORY_PERSONAL_SAVINGS = "Personal Savings"
CATEGORY_INVESTMENT_DEPOSIT = "Investment Deposit"
CATEGORY_CRYPTO_DEPOSIT = "Crypto Deposit"
CATEGORY_GOAL_CONTRIBUTION = "Goal Contribution"
CATEGORY_LEARNING = "Learning Reward"
CATEGORY_MISSION = "Mission Reward"
CATEGORY_CONVERSION_PREFIX = "Token Conversion"


def new_transaction(
    transaction_type: TransactionType,
    amount: AmountLike,
    category: str,
    description: str,
    *,
    on: Optional[date] = None,
    metadata: Optional[Mapping[str, str]] = None,
) -> Transaction:
    """Build a transaction record; ``on`` defaults to today (UTC)."""

    kwargs = {}
    if on is not None:
        kwargs["date"] = on
    return Transaction(
        type=transaction_type,
        amount=to_decimal(amount),
        category=category,
        description=description,
        metadata=dict(metadata or {}),
        **kwargs,
    )


class TransactionLog:
    """Ordered, append-only collection of :class:`Transaction` records."""

    __slots__ = ("_records", "_ids")

    def __init__(self, records: Iterable[Transaction] = ()) -> None:
        self._records: list[Transaction] = []
        self._ids: set[str] = set()
        self.extend(records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(tuple(self._records))

    @property
    def records(self) -> Tuple[Transaction, ...]:
        """Return an immutable view of the history."""

        return tuple(self._records)

    def append(self, record: Transaction) -> Transaction:
        if record.id in self._ids:
            raise ValueError(f"Transaction {record.id} is already recorded.")
        self._records.append(record)
        self._ids.add(record.id)
        return record

    def extend(self, records: Iterable[Transaction]) -> None:
        for record in records:
            self.append(record)

    def recent(self, count: int = 5) -> Tuple[Transaction, ...]:
        """Return the most recent ``count`` transactions, newest last."""

        if count < 0:
            raise ValueError("count must not be negative")
        if count == 0:
            return tuple()
        return tuple(self._records[-count:])

    def filter(
        self,
        *,
        start: date | None = None,
        end: date | None = None,
        types: Optional[Sequence[TransactionType]] = None,
        categories: Optional[Sequence[str]] = None,
    ) -> Tuple[Transaction, ...]:
        result: list[Transaction] = []
        for record in self._records:
            if start and record.date < start:
                continue
            if end and record.date > end:
                continue
            if types and record.type not in types:
                continue
            if categories and record.category not in categories:
                continue
            result.append(record)
        return tuple(result)

    def export_csv(self, *, types: Optional[Sequence[TransactionType]] = None) -> str:
        """Return a CSV export of the log."""

        buffer = StringIO()
        writer = csv.writer(buffer)
        writer.writerow(["id", "date", "type", "category", "description", "amount"])
        for record in self.filter(types=types):
            writer.writerow(
                [
                    record.id,
                    record.date.isoformat(),
                    record.type.value,
                    record.category,
                    record.description,
                    f"{record.amount:.2f}",
                ]
            )
        return buffer.getvalue()


__all__ = [
    "CATEGORY_CONVERSION_PREFIX",
    "CATEGORY_CRYPTO_DEPOSIT",
    "CATEGORY_GOAL_CONTRIBUTION",
    "CATEGORY_INVESTMENT_DEPOSIT",
    "CATEGORY_LEARNING",
    "CATEGORY_MISSION",
    "CATEGORY_PERSONAL_SAVINGS",
    "CATEGORY_TRANSFER_IN",
    "CATEGORY_TRANSFER_OUT",
    "TransactionLog",
    "new_transaction",
]
