"""Badge catalogue and the rules that award badges from account activity."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Tuple

from .ledger import Account
from .models import ProfileDelta


@dataclass(frozen=True, slots=True)
class ActivityStats:
    """Counters gathered from the transaction log and progress tables."""

    modules_completed: int = 0
    total_modules: int = 0
    perfect_scores: int = 0
    missions_completed: int = 0
    goals_created: int = 0
    goals_completed: int = 0
    investment_deposits: int = 0
    conversions: int = 0
    travel_conversions: int = 0


@dataclass(frozen=True, slots=True)
class Achievement:
    id: str
    title: str
    requirement: str
    points: int
    rule: Callable[[Account, ActivityStats], bool]


CATALOGUE: Tuple[Achievement, ...] = (
    Achievement("first-lesson", "First Steps", "Complete 1 learning module", 10,
                lambda account, stats: stats.modules_completed >= 1),
    Achievement("knowledge-seeker", "Knowledge Seeker", "Complete 5 learning modules", 50,
                lambda account, stats: stats.modules_completed >= 5),
    Achievement("learning-master", "Learning Master", "Complete all learning modules", 100,
                lambda account, stats: stats.total_modules > 0 and stats.modules_completed >= stats.total_modules),
    Achievement("perfect-score", "Perfect Scholar", "Score 100% on any module", 25,
                lambda account, stats: stats.perfect_scores >= 1),
    Achievement("mission-starter", "Mission Starter", "Complete 1 mission", 10,
                lambda account, stats: stats.missions_completed >= 1),
    Achievement("mission-master", "Mission Master", "Complete 10 missions", 50,
                lambda account, stats: stats.missions_completed >= 10),
    Achievement("first-saver", "First Saver", "Save $10", 10,
                lambda account, stats: account.savings >= Decimal("10")),
    Achievement("super-saver", "Super Saver", "Save $100", 50,
                lambda account, stats: account.savings >= Decimal("100")),
    Achievement("goal-setter", "Goal Setter", "Create 1 savings goal", 10,
                lambda account, stats: stats.goals_created >= 1),
    Achievement("goal-achiever", "Goal Achiever", "Complete 1 savings goal", 50,
                lambda account, stats: stats.goals_completed >= 1),
    Achievement("investment-pioneer", "Investment Pioneer", "Add funds to investments", 25,
                lambda account, stats: stats.investment_deposits >= 1),
    Achievement("level-up", "Level Up", "Reach level 2", 10,
                lambda account, stats: account.level >= 2),
    Achievement("financial-genius", "Financial Genius", "Reach level 5", 100,
                lambda account, stats: account.level >= 5),
    Achievement("token-collector", "Token Collector", "Earn 100 MokTokens", 10,
                lambda account, stats: account.mok_tokens >= 100),
    Achievement("xp-master", "XP Master", "Earn 500 XP", 25,
                lambda account, stats: account.xp >= 500),
    Achievement("money-converter", "Money Converter", "Convert MokTokens", 10,
                lambda account, stats: stats.conversions >= 1),
    Achievement("travel-dreamer", "Travel Dreamer", "Convert to travel miles", 10,
                lambda account, stats: stats.travel_conversions >= 1),
)

_BY_ID = {achievement.id: achievement for achievement in CATALOGUE}


def get_achievement(achievement_id: str) -> Achievement:
    return _BY_ID[achievement_id]


def evaluate(account: Account, stats: ActivityStats) -> Tuple[str, ...]:
    """Return ids of achievements earned now but not yet on ``account``."""

    owned = set(account.badges)
    return tuple(
        achievement.id
        for achievement in CATALOGUE
        if achievement.id not in owned and achievement.rule(account, stats)
    )


def badge_delta(account: Account, stats: ActivityStats) -> ProfileDelta:
    return ProfileDelta(add_badges=evaluate(account, stats))


__all__ = ["Achievement", "ActivityStats", "CATALOGUE", "badge_delta", "evaluate", "get_achievement"]
