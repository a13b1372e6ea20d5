from datetime import date
from decimal import Decimal

import pytest

from mokledger.exceptions import GoalNotFoundError, InsufficientFundsError, InvalidAmountError, OverContributionError
from mokledger.goals import GoalTracker, contribute, create_goal, edit_goal
from mokledger.ledger import Account
from mokledger.models import Goal, Priority, TransactionType


def test_create_goal_starts_empty() -> None:
    goal = create_goal("  New bike ", 150, category="Toys", priority="High")

    assert goal.title == "New bike"
    assert goal.current_amount == Decimal("0.00")
    assert goal.target_amount == Decimal("150.00")
    assert goal.priority is Priority.HIGH
    assert not goal.is_complete

    with pytest.raises(ValueError):
        create_goal("   ", 10)
    with pytest.raises(InvalidAmountError):
        create_goal("Bike", 0)


def test_contribution_cannot_overshoot_target() -> None:
    goal = Goal("Game console", Decimal("500"), current_amount=Decimal("480"))
    account = Account("ava", savings=Decimal("100"))

    with pytest.raises(OverContributionError):
        contribute(goal, account, 30)

    result = contribute(goal, account, 20)

    assert result.completed_goal
    assert result.goal.current_amount == Decimal("500.00")
    assert result.account.savings == Decimal("80.00")
    assert result.account.mok_tokens == 0
    assert result.transaction.type is TransactionType.SAVING
    assert result.transaction.category == "Goal Contribution"
    assert result.transaction.metadata == {"goal_id": goal.id}


def test_contribution_needs_savings() -> None:
    goal = create_goal("Books", 50)

    with pytest.raises(InsufficientFundsError):
        contribute(goal, Account("ava", savings=Decimal("5")), 10)
    with pytest.raises(InvalidAmountError):
        contribute(goal, Account("ava", savings=Decimal("5")), -1)


def test_contribution_can_update_due_date_and_priority() -> None:
    goal = create_goal("Books", 50)
    due = date(2026, 12, 24)

    result = contribute(goal, Account("ava", savings=Decimal("5")), 5, due_date=due, priority=Priority.LOW)

    assert result.goal.due_date == due
    assert result.goal.priority is Priority.LOW
    assert edit_goal(result.goal) is result.goal


def test_goal_progress_and_tracker() -> None:
    first = create_goal("Books", 50).with_amount(Decimal("25"))
    second = create_goal("Kite", 20).with_amount(Decimal("20"))
    tracker = GoalTracker([first, second])

    assert first.progress() == Decimal("0.5000")
    assert first.remaining == Decimal("25.00")
    assert tracker.get(second.id) is second
    assert tracker.completed() == (second,)
    assert tracker.overall_progress() == Decimal("0.7500")
    assert GoalTracker().overall_progress() == Decimal("0")

    with pytest.raises(GoalNotFoundError):
        tracker.get("missing")
