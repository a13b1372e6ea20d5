import json
from datetime import date
from decimal import Decimal

import pytest

from mokledger.api import ApiExporter, EventDispatcher
from mokledger.flags import REWARD_REPEAT_COMPLETION, FeatureFlagRegistry, default_flags
from mokledger.ledger import Account
from mokledger.models import TransactionType
from mokledger.ops import StructuredLogger
from mokledger.rates import RateTable
from mokledger.transactions import TransactionLog, new_transaction


def test_log_is_append_only_and_filterable() -> None:
    first = new_transaction(TransactionType.INCOME, 40, "Learning Reward", "Lesson", on=date(2026, 1, 5))
    second = new_transaction(TransactionType.SAVING, "12.5", "Personal Savings", "Allowance", on=date(2026, 2, 1))
    log = TransactionLog([first])
    log.append(second)

    with pytest.raises(ValueError):
        log.append(first)

    assert len(log) == 2
    assert log.recent(1) == (second,)
    assert log.recent(0) == ()
    assert log.filter(start=date(2026, 1, 31)) == (second,)
    assert log.filter(types=[TransactionType.INCOME]) == (first,)
    assert log.filter(categories=["Personal Savings"]) == (second,)


def test_export_csv() -> None:
    log = TransactionLog([new_transaction(TransactionType.SAVING, 3, "Transfer In", "Moved", on=date(2026, 3, 1))])

    rows = log.export_csv().splitlines()

    assert rows[0] == "id,date,type,category,description,amount"
    assert rows[1].endswith(",2026-03-01,saving,Transfer In,Moved,3.00")


def test_structured_logger_writes_json_lines(tmp_path) -> None:
    path = tmp_path / "logs" / "events.jsonl"
    logger = StructuredLogger(path=path, limit=2)

    logger.log("funds_added", user="ava", amount=Decimal("5.00"))
    logger.log("goal_created", user="ava")
    logger.log("level_up", user="ava", level=1)

    assert [entry["event"] for entry in logger.tail()] == ["goal_created", "level_up"]
    assert logger.events("level_up")[0]["level"] == 1
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert json.loads(lines[0])["amount"] == "5.00"


def test_event_dispatcher_register_and_unregister() -> None:
    received = []
    dispatcher = EventDispatcher()
    dispatcher.register(received.append)
    dispatcher.dispatch({"event": "badge_earned"})
    dispatcher.unregister(received.append)
    dispatcher.unregister(received.append)
    dispatcher.dispatch({"event": "ignored"})

    assert received == [{"event": "badge_earned"}]


def test_exporter_snapshot_is_json_friendly() -> None:
    exporter = ApiExporter()
    account = Account("ava", mok_tokens=5, xp=375, level=1, savings=Decimal("2.5"))

    snapshot = exporter.account_snapshot(account)

    assert snapshot["savings"] == "2.50"
    assert snapshot["level_progress"]["xp_needed"] == 125
    assert snapshot["level_progress"]["percentage"] == 50.0
    assert json.loads(exporter.to_json(snapshot))["user_id"] == "ava"


def test_exporter_uses_configured_xp_per_level() -> None:
    exporter = ApiExporter(rates=RateTable(xp_per_level=100))

    progress = exporter.account_snapshot(Account("ava", xp=150, level=1))["level_progress"]

    assert progress["next_level_xp"] == 200
    assert progress["xp_needed"] == 50
    assert progress["percentage"] == 50.0


def test_feature_flags() -> None:
    registry = FeatureFlagRegistry({"beta": True})

    assert registry.is_enabled("beta")
    assert not registry.is_enabled("missing")
    assert registry.is_enabled("missing", default=True)
    registry.disable("beta")
    assert not registry.is_enabled("beta")
    assert registry.as_dict() == {"beta": False, REWARD_REPEAT_COMPLETION: True}
    assert default_flags().is_enabled(REWARD_REPEAT_COMPLETION)
    assert not default_flags(reward_repeat_completion=False).is_enabled(REWARD_REPEAT_COMPLETION)
    assert [flag.key for flag in default_flags()] == [REWARD_REPEAT_COMPLETION]
    assert registry.toggle(REWARD_REPEAT_COMPLETION, False).description.startswith("Award XP")
