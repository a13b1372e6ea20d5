"""Savings goals funded from the cash savings balance."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple

from .exceptions import GoalNotFoundError, InsufficientFundsError, OverContributionError
from .ledger import Account, apply_delta
from .models import Goal, MonetaryDelta, Priority, Transaction, TransactionType
from .money import AmountLike, format_currency, require_positive, to_decimal
from .transactions import CATEGORY_GOAL_CONTRIBUTION, new_transaction


@dataclass(frozen=True, slots=True)
class ContributionResult:
    goal: Goal
    account: Account
    transaction: Transaction

    @property
    def completed_goal(self) -> bool:
        return self.goal.is_complete


def create_goal(
    title: str,
    target_amount: AmountLike,
    *,
    category: str = "General",
    due_date: Optional[date] = None,
    priority: Priority | str = Priority.MEDIUM,
) -> Goal:
    """Create a new goal with nothing saved yet."""

    title = title.strip()
    if not title:
        raise ValueError("Goal title cannot be empty.")
    return Goal(
        title=title,
        target_amount=target_amount,
        category=category,
        due_date=due_date,
        priority=Priority(priority),
    )


def edit_goal(
    goal: Goal,
    *,
    due_date: Optional[date] = None,
    priority: Priority | str | None = None,
) -> Goal:
    return goal.with_edits(due_date=due_date, priority=Priority(priority) if priority is not None else None)


def contribute(
    goal: Goal,
    account: Account,
    amount: AmountLike,
    *,
    due_date: Optional[date] = None,
    priority: Priority | str | None = None,
) -> ContributionResult:
    """Move ``amount`` from savings into ``goal``.

    Contributions never earn tokens or XP and can never push a goal past its
    target.
    """

    value = require_positive(to_decimal(amount))
    if value > account.savings:
        raise InsufficientFundsError(
            f"You only have {format_currency(account.savings)} in your savings account."
        )
    if value > goal.remaining:
        raise OverContributionError(
            f"You only need {format_currency(goal.remaining)} more to reach '{goal.title}'."
        )
    updated_account = apply_delta(account, MonetaryDelta(savings=-value))
    updated_goal = edit_goal(goal.with_amount(goal.current_amount + value), due_date=due_date, priority=priority)
    record = new_transaction(
        TransactionType.SAVING,
        value,
        CATEGORY_GOAL_CONTRIBUTION,
        f"Contribution to goal: {goal.title}",
        metadata={"goal_id": goal.id},
    )
    return ContributionResult(goal=updated_goal, account=updated_account, transaction=record)


class GoalTracker:
    """Registry of a user's goals keyed by id."""

    __slots__ = ("_goals",)

    def __init__(self, goals: Iterable[Goal] = ()) -> None:
        self._goals: Dict[str, Goal] = {goal.id: goal for goal in goals}

    def __len__(self) -> int:
        return len(self._goals)

    def __contains__(self, goal_id: object) -> bool:
        return goal_id in self._goals

    @property
    def goals(self) -> Tuple[Goal, ...]:
        return tuple(self._goals.values())

    def get(self, goal_id: str) -> Goal:
        try:
            return self._goals[goal_id]
        except KeyError as exc:
            raise GoalNotFoundError(f"Goal '{goal_id}' does not exist.") from exc

    def put(self, goal: Goal) -> Goal:
        self._goals[goal.id] = goal
        return goal

    def copy(self) -> "GoalTracker":
        return GoalTracker(self._goals.values())

    def completed(self) -> Tuple[Goal, ...]:
        return tuple(goal for goal in self._goals.values() if goal.is_complete)

    def overall_progress(self) -> Decimal:
        """Average progress across goals, as a 0-1 ratio."""

        if not self._goals:
            return Decimal("0")
        total = sum((goal.progress() for goal in self._goals.values()), Decimal("0"))
        return (total / len(self._goals)).quantize(Decimal("0.0001"))


__all__ = ["ContributionResult", "GoalTracker", "contribute", "create_goal", "edit_goal"]
