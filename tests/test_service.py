from decimal import Decimal

import pytest

from mokledger.exceptions import (
    ActivityNotFoundError,
    InsufficientTokensError,
    MissionAlreadyCompletedError,
    PersistenceFailureError,
    StaleStateError,
    UserNotFoundError,
)
from mokledger.flags import default_flags
from mokledger.ledger import Account
from mokledger.models import AssetType, LearningModule, Mission, SubAccount
from mokledger.service import EconomyService
from mokledger.store import InMemoryStore

MODULES = (LearningModule("budgeting-101", "Budgeting Basics", 100),)
MISSIONS = (Mission("clean-room", "Clean your room", 20),)


class FlakyStore(InMemoryStore):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.failures = 0
        self.accepted_before_failure = 0
        self.goal_failures = 0

    def append_transaction(self, user_id, record) -> None:
        if self.accepted_before_failure:
            self.accepted_before_failure -= 1
        elif self.failures:
            self.failures -= 1
            raise PersistenceFailureError("ledger table is locked")
        super().append_transaction(user_id, record)

    def save_goal(self, user_id, goal) -> None:
        if self.goal_failures:
            self.goal_failures -= 1
            raise PersistenceFailureError("goal table is locked")
        super().save_goal(user_id, goal)


def make_service(account: Account, *, store: InMemoryStore | None = None, **kwargs) -> EconomyService:
    store = store or InMemoryStore(modules=MODULES, missions=MISSIONS)
    store.create_user(account)
    return EconomyService.load(store, account.user_id, **kwargs)


def test_convert_persists_account_and_transaction() -> None:
    store = InMemoryStore()
    service = make_service(Account("ava", mok_tokens=1000), store=store)

    result = service.convert(1000, AssetType.CASH)

    assert result.account.savings == Decimal("10.00")
    assert service.account.mok_tokens == 0
    assert "money-converter" in service.account.badges
    assert "first-saver" in service.account.badges
    persisted = store.load_state("ava")
    assert persisted.account == service.account
    assert len(persisted.transactions) == 1
    assert service.logger.events("tokens_converted")[0]["tokens"] == 1000


def test_failed_write_keeps_previous_snapshot_and_retry_succeeds() -> None:
    store = FlakyStore()
    service = make_service(Account("ava", mok_tokens=1000), store=store)
    store.failures = 1

    with pytest.raises(PersistenceFailureError):
        service.convert(1000, AssetType.CASH)

    assert service.account.mok_tokens == 1000
    assert service.account.savings == Decimal("0.00")
    assert service.transactions == ()
    assert store.load_state("ava").account.mok_tokens == 1000
    assert len(service.logger.events("persistence_failed")) == 1

    service.convert(1000, AssetType.CASH)

    assert service.account.mok_tokens == 0
    assert service.account.savings == Decimal("10.00")
    assert len(store.load_state("ava").transactions) == 1


def test_transfer_failing_on_second_record_writes_nothing() -> None:
    store = FlakyStore()
    service = make_service(Account("ava", savings=Decimal("100")), store=store)
    store.accepted_before_failure = 1
    store.failures = 1

    with pytest.raises(PersistenceFailureError):
        service.transfer(100, SubAccount.SAVINGS, SubAccount.INVESTMENT)

    persisted = store.load_state("ava")
    assert persisted.transactions == ()
    assert persisted.account.savings == Decimal("100.00")
    assert persisted.account.investment_balance == Decimal("0.00")
    assert persisted.version == service.version == 0

    service.transfer(100, SubAccount.SAVINGS, SubAccount.INVESTMENT)

    persisted = store.load_state("ava")
    assert [(record.type.value, record.category) for record in persisted.transactions] == [
        ("expense", "Transfer Out"),
        ("saving", "Transfer In"),
    ]
    assert persisted.account.investment_balance == Decimal("100.00")
    assert persisted.account.mok_tokens == 200
    assert persisted.version == service.version == 1


def test_goal_contribution_failing_on_goal_write_writes_nothing() -> None:
    store = FlakyStore()
    service = make_service(Account("ava", savings=Decimal("100")), store=store)
    goal = service.create_goal("Skateboard", 80)
    store.goal_failures = 1

    with pytest.raises(PersistenceFailureError):
        service.contribute_to_goal(goal.id, 30)

    persisted = store.load_state("ava")
    assert persisted.account.savings == Decimal("100.00")
    assert persisted.goals[0].current_amount == Decimal("0.00")
    assert [record.category for record in persisted.transactions] == []
    assert service.goal(goal.id).current_amount == Decimal("0.00")

    service.contribute_to_goal(goal.id, 30)

    persisted = store.load_state("ava")
    assert persisted.account.savings == Decimal("70.00")
    assert persisted.goals[0].current_amount == Decimal("30.00")
    assert [record.category for record in persisted.transactions] == ["Goal Contribution"]


def test_second_writer_from_same_snapshot_is_rejected() -> None:
    store = InMemoryStore()
    first = make_service(Account("ava", savings=Decimal("100")), store=store)
    second = EconomyService.load(store, "ava")

    first.transfer(100, SubAccount.SAVINGS, SubAccount.INVESTMENT)
    with pytest.raises(StaleStateError):
        second.transfer(100, SubAccount.SAVINGS, SubAccount.INVESTMENT)

    persisted = store.load_state("ava")
    assert len(persisted.transactions) == 2
    assert persisted.account.savings == Decimal("0.00")
    assert persisted.account.investment_balance == Decimal("100.00")
    assert second.logger.events("persistence_failed")[0]["kind"] == "stale_state"

    fresh = EconomyService.load(store, "ava")
    fresh.transfer(50, SubAccount.INVESTMENT, SubAccount.SAVINGS)
    assert store.load_state("ava").version == 2


def test_rejected_operation_leaves_store_untouched() -> None:
    store = InMemoryStore()
    service = make_service(Account("ava", mok_tokens=5), store=store)

    with pytest.raises(InsufficientTokensError):
        service.convert(10, AssetType.USDC)

    assert store.load_state("ava").transactions == ()
    assert service.account.mok_tokens == 5


def test_transfer_into_investment_levels_up_and_dispatches_events() -> None:
    service = make_service(Account("ava", savings=Decimal("100")))
    received = []
    service.events.register(received.append)

    result = service.transfer(100, SubAccount.SAVINGS, SubAccount.INVESTMENT)

    assert result.account.level == 1
    assert service.account.mok_tokens == 200
    assert "investment-pioneer" in service.account.badges
    assert "token-collector" in service.account.badges
    assert {"event": "level_up", "user": "ava", "level": 1} in received
    assert len(service.transactions) == 2
    assert service.logger.events("level_up")


def test_crypto_deposit_requests_parent_approval() -> None:
    service = make_service(Account("ava"))
    received = []
    service.events.register(received.append)

    result = service.add_funds(25, SubAccount.CRYPTO)

    assert result.pending_approval
    assert service.account.crypto_balance == Decimal("0.00")
    assert received[0]["event"] == "crypto_deposit_requested"
    assert received[0]["transaction_id"] == result.transaction.id


def test_goal_lifecycle() -> None:
    store = InMemoryStore()
    service = make_service(Account("ava", savings=Decimal("60")), store=store)
    received = []
    service.events.register(received.append)

    goal = service.create_goal("Bike", 50)
    assert "goal-setter" in service.account.badges
    assert store.load_state("ava").goals == (goal,)

    result = service.contribute_to_goal(goal.id, 50)

    assert result.completed_goal
    assert service.goal(goal.id).is_complete
    assert service.account.savings == Decimal("10.00")
    assert "goal-achiever" in service.account.badges
    assert {"event": "goal_completed", "user": "ava", "goal": goal.id} in received
    assert store.load_state("ava").goals[0].current_amount == Decimal("50.00")


def test_module_completion_repeat_policy() -> None:
    service = make_service(Account("ava"))

    first = service.complete_module("budgeting-101", 10, 10)
    second = service.complete_module("budgeting-101", 10, 10)

    assert first.awarded and second.awarded
    assert service.account.xp == 200
    assert {"first-lesson", "perfect-score", "learning-master"} <= set(service.account.badges)

    strict = make_service(Account("ben"), flags=default_flags(reward_repeat_completion=False))
    strict.complete_module("budgeting-101", 6, 10)
    repeat = strict.complete_module("budgeting-101", 10, 10)

    assert not repeat.awarded
    assert strict.account.xp == 60
    assert len(strict.transactions) == 1


def test_mission_completion_is_one_time() -> None:
    store = InMemoryStore(missions=MISSIONS)
    service = make_service(Account("ava"), store=store)

    result = service.complete_mission("clean-room")

    assert result.account.mok_tokens == 20
    assert result.account.xp == 30
    assert "mission-starter" in service.account.badges

    with pytest.raises(MissionAlreadyCompletedError):
        service.complete_mission("clean-room")

    reloaded = EconomyService.load(store, "ava")
    assert reloaded.missions[0].completed
    with pytest.raises(MissionAlreadyCompletedError):
        reloaded.complete_mission("clean-room")


def test_unknown_ids_raise() -> None:
    service = make_service(Account("ava"))

    with pytest.raises(ActivityNotFoundError):
        service.complete_module("missing", 1, 1)
    with pytest.raises(ActivityNotFoundError):
        service.complete_mission("missing")
    with pytest.raises(UserNotFoundError):
        EconomyService.load(InMemoryStore(), "nobody")


def test_statement_lists_recent_activity() -> None:
    service = make_service(Account("ava", mok_tokens=300, savings=Decimal("20")))
    service.convert(300, AssetType.TRAVEL_MILES)
    service.create_goal("Kite", 40)

    statement = service.statement()

    assert "Account: ava" in statement
    assert "Token Conversion - Travel Miles" in statement
    assert "Kite: saved $0.00 of $40.00 (0.0%)" in statement
    assert service.level_progress().next_level_xp == 250
