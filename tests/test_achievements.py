from decimal import Decimal

from mokledger.achievements import CATALOGUE, ActivityStats, badge_delta, evaluate, get_achievement
from mokledger.ledger import Account


def test_catalogue_ids_are_unique() -> None:
    ids = [achievement.id for achievement in CATALOGUE]

    assert len(ids) == len(set(ids))
    assert get_achievement("travel-dreamer").title == "Travel Dreamer"


def test_fresh_account_earns_nothing() -> None:
    assert evaluate(Account("ava"), ActivityStats()) == ()


def test_balance_and_level_badges() -> None:
    account = Account("ava", mok_tokens=100, xp=1300, level=5, savings=Decimal("10"))

    earned = evaluate(account, ActivityStats())

    assert set(earned) == {"first-saver", "level-up", "financial-genius", "token-collector", "xp-master"}


def test_activity_badges() -> None:
    stats = ActivityStats(
        modules_completed=3,
        total_modules=3,
        perfect_scores=1,
        missions_completed=1,
        goals_created=1,
        investment_deposits=1,
        conversions=2,
        travel_conversions=1,
    )

    earned = evaluate(Account("ava"), stats)

    assert "first-lesson" in earned
    assert "learning-master" in earned
    assert "knowledge-seeker" not in earned
    assert "perfect-score" in earned
    assert "mission-starter" in earned
    assert "goal-setter" in earned
    assert "goal-achiever" not in earned
    assert "investment-pioneer" in earned
    assert "money-converter" in earned
    assert "travel-dreamer" in earned


def test_owned_badges_are_not_awarded_twice() -> None:
    account = Account("ava", mok_tokens=150, badges=("token-collector",))

    assert badge_delta(account, ActivityStats()).add_badges == ()
