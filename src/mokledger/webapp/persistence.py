"""Persistence and SQLModel definitions for the MokLedger web adapter."""
from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, Iterator, Optional

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, desc, select

from ..config import Settings
from ..exceptions import PersistenceFailureError, StaleStateError, UserNotFoundError
from ..ledger import Account
from ..models import (
    Goal,
    LearningModule,
    Mission,
    MissionDifficulty,
    ModuleDifficulty,
    Priority,
    Transaction,
    TransactionType,
)
from ..money import CENT
from ..store import UserState


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Database models
# ---------------------------------------------------------------------------
class Profile(SQLModel, table=True):
    user_id: str = Field(primary_key=True)
    mok_tokens: int = 0
    xp: int = 0
    level: int = 0
    savings_cents: int = 0
    investment_cents: int = 0
    crypto_cents: int = 0
    usdc_cents: int = 0
    travel_miles_cents: int = 0
    badges: Optional[str] = ""
    version: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class LedgerEntry(SQLModel, table=True):
    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    tx_type: str  # income|expense|saving
    amount_cents: int
    category: str
    description: str
    entry_date: date
    details: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class GoalRecord(SQLModel, table=True):
    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    title: str
    target_cents: int
    current_cents: int = 0
    category: str = "General"
    due_date: Optional[date] = None
    priority: str = Priority.MEDIUM.value
    created_at: datetime = Field(default_factory=_utcnow)
    achieved_at: Optional[datetime] = None


class ModuleRecord(SQLModel, table=True):
    id: str = Field(primary_key=True)
    title: str
    xp_reward: int
    category: str = ""
    difficulty: str = ModuleDifficulty.BEGINNER.value


class MissionRecord(SQLModel, table=True):
    id: str = Field(primary_key=True)
    title: str
    reward: int
    category: str = ""
    difficulty: str = MissionDifficulty.EASY.value


class ModuleProgress(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    module_id: str
    completed: bool = False
    completed_at: Optional[datetime] = None


class MissionProgress(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    mission_id: str
    completed: bool = False
    completed_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------
def to_cents(amount: Decimal) -> int:
    return int((amount / CENT).to_integral_value())


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) * CENT).quantize(CENT)


def _account_from_row(row: Profile) -> Account:
    return Account(
        user_id=row.user_id,
        mok_tokens=row.mok_tokens,
        xp=row.xp,
        level=row.level,
        savings=from_cents(row.savings_cents),
        investment_balance=from_cents(row.investment_cents),
        crypto_balance=from_cents(row.crypto_cents),
        usdc_balance=from_cents(row.usdc_cents),
        travel_miles=from_cents(row.travel_miles_cents),
        badges=tuple(badge for badge in (row.badges or "").split(",") if badge),
    )


def _transaction_from_row(row: LedgerEntry) -> Transaction:
    return Transaction(
        id=row.id,
        type=TransactionType(row.tx_type),
        amount=from_cents(row.amount_cents),
        category=row.category,
        description=row.description,
        date=row.entry_date,
        created_at=row.created_at,
        metadata=json.loads(row.details) if row.details else {},
    )


def _goal_from_row(row: GoalRecord) -> Goal:
    return Goal(
        id=row.id,
        title=row.title,
        target_amount=from_cents(row.target_cents),
        current_amount=from_cents(row.current_cents),
        category=row.category,
        due_date=row.due_date,
        priority=Priority(row.priority),
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
def build_engine(settings: Settings) -> Engine:
    return create_engine(
        settings.database_url,
        echo=False,
        connect_args={"check_same_thread": False},
    )


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


class SqlAccountStore:
    """:class:`~mokledger.store.AccountStore` backed by SQLModel tables.

    Inside :meth:`unit_of_work` every write shares one session and one
    commit. The unit starts by bumping ``Profile.version`` only if it still
    holds the expected value, which also takes SQLite's write lock, so two
    requests for the same user cannot both commit from the same snapshot.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._local = threading.local()

    # Catalogue -------------------------------------------------------------
    def add_module(self, module: LearningModule) -> None:
        row = ModuleRecord(
            id=module.id,
            title=module.title,
            xp_reward=module.xp_reward,
            category=module.category,
            difficulty=module.difficulty.value,
        )
        self._write(lambda session: session.merge(row))

    def add_mission(self, mission: Mission) -> None:
        row = MissionRecord(
            id=mission.id,
            title=mission.title,
            reward=mission.reward,
            category=mission.category,
            difficulty=mission.difficulty.value,
        )
        self._write(lambda session: session.merge(row))

    def create_user(self, account: Account) -> UserState:
        with Session(self.engine) as session:
            if session.get(Profile, account.user_id) is not None:
                raise ValueError(f"User '{account.user_id}' already exists.")
        self.persist(account)
        return self.load_state(account.user_id)

    # AccountStore ------------------------------------------------------------
    def load_state(self, user_id: str) -> UserState:
        with Session(self.engine) as session:
            profile = session.get(Profile, user_id)
            if profile is None:
                raise UserNotFoundError(f"User '{user_id}' does not exist.")
            entries = session.exec(
                select(LedgerEntry).where(LedgerEntry.user_id == user_id).order_by(LedgerEntry.created_at)
            ).all()
            goal_rows = session.exec(
                select(GoalRecord).where(GoalRecord.user_id == user_id).order_by(GoalRecord.created_at)
            ).all()
            done_modules = {
                row.module_id
                for row in session.exec(
                    select(ModuleProgress).where(ModuleProgress.user_id == user_id, ModuleProgress.completed == True)  # noqa: E712
                ).all()
            }
            done_missions = {
                row.mission_id
                for row in session.exec(
                    select(MissionProgress).where(MissionProgress.user_id == user_id, MissionProgress.completed == True)  # noqa: E712
                ).all()
            }
            modules = tuple(
                LearningModule(
                    id=row.id,
                    title=row.title,
                    xp_reward=row.xp_reward,
                    category=row.category,
                    difficulty=ModuleDifficulty(row.difficulty),
                    completed=row.id in done_modules,
                )
                for row in session.exec(select(ModuleRecord).order_by(ModuleRecord.id)).all()
            )
            missions = tuple(
                Mission(
                    id=row.id,
                    title=row.title,
                    reward=row.reward,
                    category=row.category,
                    difficulty=MissionDifficulty(row.difficulty),
                    completed=row.id in done_missions,
                )
                for row in session.exec(select(MissionRecord).order_by(MissionRecord.id)).all()
            )
            return UserState(
                account=_account_from_row(profile),
                goals=tuple(_goal_from_row(row) for row in goal_rows),
                transactions=tuple(_transaction_from_row(row) for row in entries),
                modules=modules,
                missions=missions,
                version=profile.version,
            )

    def persist(self, account: Account) -> None:
        def write(session: Session) -> None:
            row = session.get(Profile, account.user_id) or Profile(user_id=account.user_id)
            row.mok_tokens = account.mok_tokens
            row.xp = account.xp
            row.level = account.level
            row.savings_cents = to_cents(account.savings)
            row.investment_cents = to_cents(account.investment_balance)
            row.crypto_cents = to_cents(account.crypto_balance)
            row.usdc_cents = to_cents(account.usdc_balance)
            row.travel_miles_cents = to_cents(account.travel_miles)
            row.badges = ",".join(account.badges)
            row.updated_at = _utcnow()
            session.add(row)

        self._write(write)

    def append_transaction(self, user_id: str, record: Transaction) -> None:
        row = LedgerEntry(
            id=record.id,
            user_id=user_id,
            tx_type=record.type.value,
            amount_cents=to_cents(record.amount),
            category=record.category,
            description=record.description,
            entry_date=record.date,
            details=json.dumps(record.metadata, sort_keys=True) if record.metadata else None,
            created_at=record.created_at,
        )
        self._write(lambda session: session.add(row))

    def save_goal(self, user_id: str, goal: Goal) -> None:
        def write(session: Session) -> None:
            row = session.get(GoalRecord, goal.id) or GoalRecord(
                id=goal.id,
                user_id=user_id,
                title=goal.title,
                target_cents=to_cents(goal.target_amount),
                created_at=goal.created_at,
            )
            row.title = goal.title
            row.target_cents = to_cents(goal.target_amount)
            row.current_cents = to_cents(goal.current_amount)
            row.category = goal.category
            row.due_date = goal.due_date
            row.priority = goal.priority.value
            if goal.is_complete and row.achieved_at is None:
                row.achieved_at = _utcnow()
            session.add(row)

        self._write(write)

    def save_module(self, user_id: str, module: LearningModule) -> None:
        self._write(lambda session: self._mark_progress(session, ModuleProgress, user_id, "module_id", module.id, module.completed))

    def save_mission(self, user_id: str, mission: Mission) -> None:
        self._write(lambda session: self._mark_progress(session, MissionProgress, user_id, "mission_id", mission.id, mission.completed))

    def transactions(self, user_id: str, *, limit: int = 50) -> Iterable[Transaction]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(LedgerEntry)
                .where(LedgerEntry.user_id == user_id)
                .order_by(desc(LedgerEntry.created_at))
                .limit(limit)
            ).all()
            return [_transaction_from_row(row) for row in rows]

    @contextmanager
    def unit_of_work(self, user_id: str, expected_version: int) -> Iterator[None]:
        with Session(self.engine) as session:
            try:
                claimed = session.connection().execute(
                    update(Profile)
                    .where(Profile.user_id == user_id, Profile.version == expected_version)
                    .values(version=expected_version + 1)
                )
                if claimed.rowcount != 1:
                    if session.get(Profile, user_id) is None:
                        raise UserNotFoundError(f"User '{user_id}' does not exist.")
                    raise StaleStateError(
                        f"User '{user_id}' changed since it was loaded (expected version {expected_version})."
                    )
                self._local.session = session
                try:
                    yield
                finally:
                    self._local.session = None
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceFailureError(f"Store write failed: {exc}") from exc
            except BaseException:
                session.rollback()
                raise

    # Internals -------------------------------------------------------------
    @staticmethod
    def _mark_progress(session: Session, model, user_id: str, key: str, item_id: str, completed: bool) -> None:
        column = getattr(model, key)
        row = session.exec(select(model).where(model.user_id == user_id, column == item_id)).first()
        if row is None:
            row = model(user_id=user_id, **{key: item_id})
        row.completed = completed
        row.completed_at = _utcnow() if completed else None
        session.add(row)

    def _write(self, operation: Callable[[Session], object]) -> None:
        session = getattr(self._local, "session", None)
        try:
            if session is not None:
                operation(session)
                session.flush()
                return
            with Session(self.engine) as own_session:
                operation(own_session)
                own_session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceFailureError(f"Store write failed: {exc}") from exc


__all__ = [
    "GoalRecord",
    "LedgerEntry",
    "MissionProgress",
    "MissionRecord",
    "ModuleProgress",
    "ModuleRecord",
    "Profile",
    "SqlAccountStore",
    "build_engine",
    "create_db_and_tables",
    "from_cents",
    "to_cents",
]
