"""API helpers and event hooks for MokLedger."""

from __future__ import annotations

import json
from typing import Callable, Dict, Iterable

from .goals import GoalTracker
from .ledger import Account, level_progress
from .models import Goal, Transaction
from .rates import DEFAULT_RATES, RateTable
from .rewards import RewardDelta

EventListener = Callable[[Dict[str, object]], None]


class ApiExporter:
    """Convert MokLedger data structures to JSON friendly dictionaries."""

    def __init__(self, *, rates: RateTable = DEFAULT_RATES) -> None:
        self.rates = rates

    def account_snapshot(self, account: Account) -> Dict[str, object]:
        progress = level_progress(account, xp_per_level=self.rates.xp_per_level)
        return {
            "user_id": account.user_id,
            "mok_tokens": account.mok_tokens,
            "xp": account.xp,
            "level": account.level,
            "level_progress": {
                "current_level_xp": progress.current_level_xp,
                "next_level_xp": progress.next_level_xp,
                "xp_needed": progress.xp_needed,
                "percentage": float(progress.percentage),
            },
            "savings": str(account.savings),
            "investment_balance": str(account.investment_balance),
            "crypto_balance": str(account.crypto_balance),
            "usdc_balance": str(account.usdc_balance),
            "travel_miles": str(account.travel_miles),
            "total_savings": str(account.total_savings),
            "badges": list(account.badges),
        }

    def goal(self, goal: Goal) -> Dict[str, object]:
        return {
            "id": goal.id,
            "title": goal.title,
            "target_amount": str(goal.target_amount),
            "current_amount": str(goal.current_amount),
            "remaining": str(goal.remaining),
            "category": goal.category,
            "due_date": goal.due_date.isoformat() if goal.due_date else None,
            "priority": goal.priority.value,
            "progress": float(goal.progress()),
            "complete": goal.is_complete,
        }

    def goals(self, tracker: GoalTracker) -> list[Dict[str, object]]:
        return [self.goal(goal) for goal in tracker.goals]

    def transaction(self, transaction: Transaction) -> Dict[str, object]:
        return {
            "id": transaction.id,
            "type": transaction.type.value,
            "amount": str(transaction.amount),
            "category": transaction.category,
            "description": transaction.description,
            "date": transaction.date.isoformat(),
        }

    def transactions(self, records: Iterable[Transaction]) -> list[Dict[str, object]]:
        return [self.transaction(record) for record in records]

    def reward(self, reward: RewardDelta) -> Dict[str, int]:
        return {"tokens": reward.tokens, "xp": reward.xp}

    def to_json(self, payload: Dict[str, object]) -> str:
        return json.dumps(payload, sort_keys=True)


class EventDispatcher:
    """Simple synchronous event broadcaster."""

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []

    def register(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def unregister(self, listener: EventListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def dispatch(self, event: Dict[str, object]) -> None:
        for listener in list(self._listeners):
            listener(event)


__all__ = ["ApiExporter", "EventDispatcher"]
