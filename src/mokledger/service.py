"""High level service coordinating one user's economy with its store."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, Optional, Sequence, Tuple

from . import conversion, goals as goal_ops, rewards, transfers
from .achievements import ActivityStats, badge_delta
from .api import EventDispatcher
from .exceptions import ActivityNotFoundError, PersistenceFailureError
from .flags import REWARD_REPEAT_COMPLETION, FeatureFlagRegistry, default_flags
from .goals import ContributionResult, GoalTracker
from .ledger import Account, LevelProgress, apply_delta, level_progress
from .models import AssetType, Goal, LearningModule, Mission, Priority, SubAccount, Transaction
from .money import AmountLike, format_currency
from .ops import StructuredLogger
from .rates import DEFAULT_RATES, RateTable
from .store import AccountStore, UserState
from .transactions import (
    CATEGORY_CONVERSION_PREFIX,
    CATEGORY_INVESTMENT_DEPOSIT,
    CATEGORY_LEARNING,
    CATEGORY_TRANSFER_IN,
    TransactionLog,
)


class EconomyService:
    """Apply engine operations for one user and commit them through a store.

    Every operation computes a new snapshot with the pure engine functions,
    writes it through one store unit of work and only then adopts it. When
    the store fails nothing is written, the previous snapshot is kept and
    :class:`~mokledger.exceptions.PersistenceFailureError` propagates, so the
    same call can simply be retried. A
    :class:`~mokledger.exceptions.StaleStateError` means another writer got
    there first; load a fresh service instead of retrying this one.
    """

    __slots__ = (
        "_store",
        "_account",
        "_goals",
        "_log",
        "_modules",
        "_missions",
        "_rates",
        "_flags",
        "_logger",
        "_events",
        "_version",
    )

    def __init__(
        self,
        store: AccountStore,
        state: UserState,
        *,
        rates: RateTable = DEFAULT_RATES,
        flags: FeatureFlagRegistry | None = None,
        logger: StructuredLogger | None = None,
        events: EventDispatcher | None = None,
    ) -> None:
        self._store = store
        self._account = state.account
        self._goals = GoalTracker(state.goals)
        self._log = TransactionLog(state.transactions)
        self._modules: Dict[str, LearningModule] = {module.id: module for module in state.modules}
        self._missions: Dict[str, Mission] = {mission.id: mission for mission in state.missions}
        self._rates = rates
        self._flags = flags or default_flags()
        self._logger = logger or StructuredLogger()
        self._events = events or EventDispatcher()
        self._version = state.version

    @classmethod
    def load(cls, store: AccountStore, user_id: str, **kwargs: object) -> "EconomyService":
        return cls(store, store.load_state(user_id), **kwargs)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def account(self) -> Account:
        return self._account

    @property
    def goals(self) -> Tuple[Goal, ...]:
        return self._goals.goals

    @property
    def transactions(self) -> Tuple[Transaction, ...]:
        return self._log.records

    @property
    def transaction_log(self) -> TransactionLog:
        return self._log

    @property
    def modules(self) -> Tuple[LearningModule, ...]:
        return tuple(self._modules.values())

    @property
    def missions(self) -> Tuple[Mission, ...]:
        return tuple(self._missions.values())

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    @property
    def events(self) -> EventDispatcher:
        return self._events

    @property
    def version(self) -> int:
        """Store version this service last loaded or committed."""

        return self._version

    @property
    def flags(self) -> FeatureFlagRegistry:
        return self._flags

    def goal(self, goal_id: str) -> Goal:
        return self._goals.get(goal_id)

    def level_progress(self) -> LevelProgress:
        return level_progress(self._account, xp_per_level=self._rates.xp_per_level)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def convert(self, amount: int, asset_type: AssetType | str) -> conversion.ConversionResult:
        result = conversion.convert(self._account, amount, asset_type, rates=self._rates)
        account = self._commit(result.account, [result.transaction])
        self._logger.log(
            "tokens_converted",
            user=account.user_id,
            tokens=result.tokens_spent,
            asset=result.asset_type.value,
            amount=str(result.converted_amount),
        )
        return replace(result, account=account)

    def transfer(
        self,
        amount: AmountLike,
        source: SubAccount | str,
        destination: SubAccount | str,
    ) -> transfers.TransferResult:
        result = transfers.transfer(self._account, amount, source, destination, rates=self._rates)
        account = self._commit(result.account, result.transactions)
        outgoing = result.transactions[0]
        self._logger.log(
            "funds_transferred",
            user=account.user_id,
            amount=str(outgoing.amount),
            source=outgoing.metadata["source"],
            destination=outgoing.metadata["destination"],
            tokens=result.reward.tokens,
            xp=result.reward.xp,
            clamped=result.clamped,
        )
        return replace(result, account=account)

    def add_funds(self, amount: AmountLike, destination: SubAccount | str) -> transfers.FundsResult:
        result = transfers.add_funds(self._account, amount, destination, rates=self._rates)
        account = self._commit(result.account, [result.transaction])
        self._logger.log(
            "funds_added",
            user=account.user_id,
            amount=str(result.transaction.amount),
            destination=result.transaction.metadata["destination"],
            tokens=result.reward.tokens,
            xp=result.reward.xp,
            pending_approval=result.pending_approval,
        )
        if result.pending_approval:
            self._events.dispatch(
                {
                    "event": "crypto_deposit_requested",
                    "user": account.user_id,
                    "amount": str(result.transaction.amount),
                    "transaction_id": result.transaction.id,
                }
            )
        return replace(result, account=account)

    def create_goal(
        self,
        title: str,
        target_amount: AmountLike,
        *,
        category: str = "General",
        due_date: Optional[date] = None,
        priority: Priority | str = Priority.MEDIUM,
    ) -> Goal:
        goal = goal_ops.create_goal(title, target_amount, category=category, due_date=due_date, priority=priority)
        self._commit(self._account, (), goals=[goal])
        self._logger.log("goal_created", user=self._account.user_id, goal=goal.id, target=str(goal.target_amount))
        return goal

    def edit_goal(
        self,
        goal_id: str,
        *,
        due_date: Optional[date] = None,
        priority: Priority | str | None = None,
    ) -> Goal:
        goal = goal_ops.edit_goal(self._goals.get(goal_id), due_date=due_date, priority=priority)
        self._commit(self._account, (), goals=[goal])
        return goal

    def contribute_to_goal(
        self,
        goal_id: str,
        amount: AmountLike,
        *,
        due_date: Optional[date] = None,
        priority: Priority | str | None = None,
    ) -> ContributionResult:
        result = goal_ops.contribute(
            self._goals.get(goal_id),
            self._account,
            amount,
            due_date=due_date,
            priority=priority,
        )
        account = self._commit(result.account, [result.transaction], goals=[result.goal])
        self._logger.log(
            "goal_contribution",
            user=account.user_id,
            goal=result.goal.id,
            amount=str(result.transaction.amount),
            saved=str(result.goal.current_amount),
        )
        if result.completed_goal:
            self._events.dispatch({"event": "goal_completed", "user": account.user_id, "goal": result.goal.id})
        return replace(result, account=account)

    def complete_module(self, module_id: str, score: int, total_points: int) -> rewards.ModuleCompletion:
        module = self._find(self._modules, module_id, "Learning module")
        result = rewards.complete_module(
            self._account,
            module,
            score,
            total_points,
            reward_repeat_completion=self._flags.is_enabled(REWARD_REPEAT_COMPLETION, default=True),
            rates=self._rates,
        )
        records = [result.transaction] if result.transaction is not None else []
        account = self._commit(result.account, records, modules=[result.module])
        self._logger.log(
            "module_completed",
            user=account.user_id,
            module=module_id,
            score=score,
            total_points=total_points,
            tokens=result.reward.tokens,
            xp=result.reward.xp,
            awarded=result.awarded,
        )
        return replace(result, account=account)

    def complete_mission(self, mission_id: str) -> rewards.MissionCompletion:
        mission = self._find(self._missions, mission_id, "Mission")
        result = rewards.complete_mission(self._account, mission, rates=self._rates)
        account = self._commit(result.account, [result.transaction], missions=[result.mission])
        self._logger.log(
            "mission_completed",
            user=account.user_id,
            mission=mission_id,
            tokens=result.reward.tokens,
            xp=result.reward.xp,
        )
        return replace(result, account=account)

    def statement(self, *, max_transactions: int = 10) -> str:
        """Create a human-readable summary of the account state."""

        lines = [self._account.summary(), "", "Recent transactions:"]
        recent = self._log.recent(max_transactions)
        if not recent:
            lines.append("  (no transactions yet)")
        for record in recent:
            lines.append(
                f"  [{record.date:%Y-%m-%d}] {record.type.value.title()}: "
                f"{format_currency(record.amount)} ({record.category})"
            )
        if len(self._goals):
            lines.append("")
            lines.append("Savings goals:")
            for goal in self._goals.goals:
                status = "complete" if goal.is_complete else f"{goal.progress() * 100:.1f}%"
                lines.append(
                    f"  {goal.title}: saved {format_currency(goal.current_amount)} "
                    f"of {format_currency(goal.target_amount)} ({status})"
                )
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @staticmethod
    def _find(items: Dict[str, object], item_id: str, label: str):
        try:
            return items[item_id]
        except KeyError as exc:
            raise ActivityNotFoundError(f"{label} '{item_id}' does not exist.") from exc

    def _commit(
        self,
        account: Account,
        records: Sequence[Transaction],
        *,
        goals: Iterable[Goal] = (),
        modules: Iterable[LearningModule] = (),
        missions: Iterable[Mission] = (),
    ) -> Account:
        goals = tuple(goals)
        modules = tuple(modules)
        missions = tuple(missions)
        stats = self._activity_stats(records, goals, modules, missions)
        earned = badge_delta(account, stats)
        if earned.add_badges:
            account = apply_delta(account, earned)

        user_id = account.user_id
        try:
            with self._store.unit_of_work(user_id, self._version):
                self._store.persist(account)
                for record in records:
                    self._store.append_transaction(user_id, record)
                for goal in goals:
                    self._store.save_goal(user_id, goal)
                for module in modules:
                    self._store.save_module(user_id, module)
                for mission in missions:
                    self._store.save_mission(user_id, mission)
        except PersistenceFailureError as exc:
            self._logger.log("persistence_failed", user=user_id, kind=exc.kind, error=str(exc))
            raise

        self._version += 1
        previous = self._account
        self._account = account
        self._log.extend(records)
        for goal in goals:
            self._goals.put(goal)
        for module in modules:
            self._modules[module.id] = module
        for mission in missions:
            self._missions[mission.id] = mission

        if account.level > previous.level:
            self._logger.log("level_up", user=user_id, level=account.level, xp=account.xp)
            self._events.dispatch({"event": "level_up", "user": user_id, "level": account.level})
        for badge in earned.add_badges:
            self._logger.log("badge_earned", user=user_id, badge=badge)
            self._events.dispatch({"event": "badge_earned", "user": user_id, "badge": badge})
        return account

    def _activity_stats(
        self,
        records: Sequence[Transaction],
        goals: Tuple[Goal, ...],
        modules: Tuple[LearningModule, ...],
        missions: Tuple[Mission, ...],
    ) -> ActivityStats:
        all_records = self._log.records + tuple(records)
        all_goals = {goal.id: goal for goal in self._goals.goals}
        all_goals.update((goal.id, goal) for goal in goals)
        all_modules = dict(self._modules)
        all_modules.update((module.id, module) for module in modules)
        all_missions = dict(self._missions)
        all_missions.update((mission.id, mission) for mission in missions)

        learning = [record for record in all_records if record.category == CATEGORY_LEARNING]
        conversions = [record for record in all_records if record.category.startswith(CATEGORY_CONVERSION_PREFIX)]
        investment_deposits = [
            record
            for record in all_records
            if record.category == CATEGORY_INVESTMENT_DEPOSIT
            or (
                record.category == CATEGORY_TRANSFER_IN
                and record.metadata.get("destination") == SubAccount.INVESTMENT.value
            )
        ]
        return ActivityStats(
            modules_completed=sum(1 for module in all_modules.values() if module.completed),
            total_modules=len(all_modules),
            perfect_scores=sum(
                1
                for record in learning
                if record.metadata.get("score") is not None
                and record.metadata.get("score") == record.metadata.get("total_points")
            ),
            missions_completed=sum(1 for mission in all_missions.values() if mission.completed),
            goals_created=len(all_goals),
            goals_completed=sum(1 for goal in all_goals.values() if goal.is_complete),
            investment_deposits=len(investment_deposits),
            conversions=len(conversions),
            travel_conversions=sum(
                1 for record in conversions if record.metadata.get("asset") == AssetType.TRAVEL_MILES.value
            ),
        )


__all__ = ["EconomyService"]
