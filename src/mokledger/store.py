"""Persistence collaborators consumed by :class:`~mokledger.service.EconomyService`."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Callable, ContextManager, Dict, Iterator, List, Optional, Protocol, Tuple

from .exceptions import StaleStateError, UserNotFoundError
from .ledger import Account
from .models import Goal, LearningModule, Mission, Transaction


@dataclass(frozen=True, slots=True)
class UserState:
    """Everything the engine needs to resume work for one user."""

    account: Account
    goals: Tuple[Goal, ...] = ()
    transactions: Tuple[Transaction, ...] = ()
    modules: Tuple[LearningModule, ...] = ()
    missions: Tuple[Mission, ...] = ()
    version: int = 0


class AccountStore(Protocol):
    """Writes raise :class:`~mokledger.exceptions.PersistenceFailureError` on failure.

    Writes issued inside :meth:`unit_of_work` are applied together when the
    block exits cleanly and discarded otherwise. ``expected_version`` is the
    :attr:`UserState.version` the caller loaded; a store that has moved on
    since then raises :class:`~mokledger.exceptions.StaleStateError` and
    applies nothing.
    """

    def load_state(self, user_id: str) -> UserState:
        ...

    def unit_of_work(self, user_id: str, expected_version: int) -> ContextManager[None]:
        ...

    def persist(self, account: Account) -> None:
        ...

    def append_transaction(self, user_id: str, record: Transaction) -> None:
        ...

    def save_goal(self, user_id: str, goal: Goal) -> None:
        ...

    def save_module(self, user_id: str, module: LearningModule) -> None:
        ...

    def save_mission(self, user_id: str, mission: Mission) -> None:
        ...


@dataclass
class _UserRecord:
    account: Account
    goals: Dict[str, Goal] = field(default_factory=dict)
    transactions: List[Transaction] = field(default_factory=list)
    completed_modules: set[str] = field(default_factory=set)
    completed_missions: set[str] = field(default_factory=set)
    version: int = 0


class InMemoryStore:
    """Dictionary backed store for tests and embedding.

    Not thread safe; one writer per process.
    """

    def __init__(
        self,
        *,
        modules: Tuple[LearningModule, ...] = (),
        missions: Tuple[Mission, ...] = (),
    ) -> None:
        self._users: Dict[str, _UserRecord] = {}
        self._modules = {module.id: replace(module, completed=False) for module in modules}
        self._missions = {mission.id: replace(mission, completed=False) for mission in missions}
        self._staged: Optional[List[Callable[[], None]]] = None

    def create_user(self, account: Account) -> UserState:
        self._users[account.user_id] = _UserRecord(account=account)
        return self.load_state(account.user_id)

    def _user(self, user_id: str) -> _UserRecord:
        try:
            return self._users[user_id]
        except KeyError as exc:
            raise UserNotFoundError(f"User '{user_id}' does not exist.") from exc

    def load_state(self, user_id: str) -> UserState:
        record = self._user(user_id)
        return UserState(
            account=record.account,
            goals=tuple(record.goals.values()),
            transactions=tuple(record.transactions),
            modules=tuple(
                replace(module, completed=module.id in record.completed_modules)
                for module in self._modules.values()
            ),
            missions=tuple(
                replace(mission, completed=mission.id in record.completed_missions)
                for mission in self._missions.values()
            ),
            version=record.version,
        )

    @contextmanager
    def unit_of_work(self, user_id: str, expected_version: int) -> Iterator[None]:
        record = self._user(user_id)
        if record.version != expected_version:
            raise StaleStateError(
                f"User '{user_id}' changed since it was loaded "
                f"(version {record.version}, expected {expected_version})."
            )
        self._staged = []
        try:
            yield
            staged = self._staged
        finally:
            self._staged = None
        for change in staged:
            change()
        record.version += 1

    def _apply(self, change: Callable[[], None]) -> None:
        if self._staged is None:
            change()
        else:
            self._staged.append(change)

    def persist(self, account: Account) -> None:
        def write() -> None:
            record = self._users.get(account.user_id)
            if record is None:
                self._users[account.user_id] = _UserRecord(account=account)
            else:
                record.account = account

        self._apply(write)

    def append_transaction(self, user_id: str, record: Transaction) -> None:
        transactions = self._user(user_id).transactions
        self._apply(lambda: transactions.append(record))

    def save_goal(self, user_id: str, goal: Goal) -> None:
        goals = self._user(user_id).goals
        self._apply(lambda: goals.__setitem__(goal.id, goal))

    def save_module(self, user_id: str, module: LearningModule) -> None:
        completed = self._user(user_id).completed_modules

        def write() -> None:
            self._modules.setdefault(module.id, replace(module, completed=False))
            if module.completed:
                completed.add(module.id)

        self._apply(write)

    def save_mission(self, user_id: str, mission: Mission) -> None:
        completed = self._user(user_id).completed_missions

        def write() -> None:
            self._missions.setdefault(mission.id, replace(mission, completed=False))
            if mission.completed:
                completed.add(mission.id)

        self._apply(write)


__all__ = ["AccountStore", "InMemoryStore", "UserState"]
