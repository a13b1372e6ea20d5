"""Reward engine: token and XP deltas for learning, missions and investing."""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from .exceptions import InvalidAmountError, MissionAlreadyCompletedError
from .ledger import Account, apply_delta
from .models import LearningModule, Mission, ProgressDelta, SubAccount, Transaction, TransactionType
from .money import AmountLike, floor_int, require_positive, to_decimal
from .rates import DEFAULT_RATES, RateTable
from .transactions import CATEGORY_LEARNING, CATEGORY_MISSION, new_transaction

RewardDelta = ProgressDelta


def learning_reward(
    score: int,
    total_points: int,
    xp_reward: int,
    *,
    rates: RateTable = DEFAULT_RATES,
) -> RewardDelta:
    """XP proportional to the quiz score; tokens are half the XP, rounded down."""

    if total_points <= 0:
        raise InvalidAmountError("total_points must be greater than zero.")
    if score < 0 or score > total_points:
        raise InvalidAmountError(f"score must be between 0 and {total_points}, got {score}.")
    if xp_reward <= 0:
        raise InvalidAmountError("xp_reward must be greater than zero.")
    xp = (xp_reward * score) // total_points
    return RewardDelta(tokens=xp // rates.learning_token_divisor, xp=xp)


def mission_reward(reward: int, *, rates: RateTable = DEFAULT_RATES) -> RewardDelta:
    """Tokens equal the mission reward; XP is the reward times the mission multiplier."""

    if reward <= 0:
        raise InvalidAmountError("Mission reward must be greater than zero.")
    return RewardDelta(tokens=reward, xp=floor_int(Decimal(reward) * rates.mission_xp_multiplier))


def investment_deposit_reward(amount: AmountLike, *, rates: RateTable = DEFAULT_RATES) -> RewardDelta:
    value = require_positive(to_decimal(amount))
    return RewardDelta(
        tokens=floor_int(value * rates.investment_token_multiplier),
        xp=floor_int(value * rates.investment_xp_multiplier),
    )


def investment_withdrawal_penalty(amount: AmountLike, *, rates: RateTable = DEFAULT_RATES) -> RewardDelta:
    value = require_positive(to_decimal(amount))
    return RewardDelta(
        tokens=-floor_int(value * rates.withdrawal_token_multiplier),
        xp=-floor_int(value * rates.withdrawal_xp_multiplier),
    )


def investment_movement_reward(
    amount: AmountLike,
    source: Optional[Union[SubAccount, str]],
    destination: Union[SubAccount, str],
    *,
    rates: RateTable = DEFAULT_RATES,
) -> RewardDelta:
    """Reward money moving into investment and penalise money moving out.

    ``source`` is ``None`` for new money. A move between two non-investment
    accounts is reward neutral.
    """

    origin = SubAccount(source) if source is not None else None
    target = SubAccount(destination)
    delta = RewardDelta()
    if origin is SubAccount.INVESTMENT:
        delta = delta + investment_withdrawal_penalty(amount, rates=rates)
    if target is SubAccount.INVESTMENT:
        delta = delta + investment_deposit_reward(amount, rates=rates)
    return delta


# ---------------------------------------------------------------------------
# Completion triggers
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CompletionResult:
    account: Account
    reward: RewardDelta
    transaction: Optional[Transaction]
    awarded: bool


@dataclass(frozen=True, slots=True)
class ModuleCompletion(CompletionResult):
    module: LearningModule
    score: int
    total_points: int

    @property
    def percentage(self) -> Decimal:
        return (Decimal(self.score) * Decimal(100) / Decimal(self.total_points)).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )


@dataclass(frozen=True, slots=True)
class MissionCompletion(CompletionResult):
    mission: Mission


def complete_module(
    account: Account,
    module: LearningModule,
    score: int,
    total_points: int,
    *,
    reward_repeat_completion: bool = True,
    rates: RateTable = DEFAULT_RATES,
) -> ModuleCompletion:
    """Mark ``module`` completed and award the score-proportional reward.

    Completing an already completed module awards again unless
    ``reward_repeat_completion`` is false, in which case the account is
    returned unchanged.
    """

    reward = learning_reward(score, total_points, module.xp_reward, rates=rates)
    completed = replace(module, completed=True)
    if module.completed and not reward_repeat_completion:
        return ModuleCompletion(
            account=account,
            reward=RewardDelta(),
            transaction=None,
            awarded=False,
            module=completed,
            score=score,
            total_points=total_points,
        )

    updated = apply_delta(account, reward, xp_per_level=rates.xp_per_level)
    record = new_transaction(
        TransactionType.INCOME,
        reward.tokens,
        CATEGORY_LEARNING,
        f"Completed {module.title} ({score}/{total_points}): +{reward.xp} XP",
        metadata={
            "module_id": module.id,
            "xp": str(reward.xp),
            "score": str(score),
            "total_points": str(total_points),
        },
    )
    return ModuleCompletion(
        account=updated,
        reward=reward,
        transaction=record,
        awarded=True,
        module=completed,
        score=score,
        total_points=total_points,
    )


def complete_mission(
    account: Account,
    mission: Mission,
    *,
    rates: RateTable = DEFAULT_RATES,
) -> MissionCompletion:
    if mission.completed:
        raise MissionAlreadyCompletedError(f"Mission '{mission.title}' has already been completed.")
    reward = mission_reward(mission.reward, rates=rates)
    updated = apply_delta(account, reward, xp_per_level=rates.xp_per_level)
    record = new_transaction(
        TransactionType.INCOME,
        reward.tokens,
        CATEGORY_MISSION,
        f"Completed mission {mission.title}: +{reward.xp} XP",
        metadata={"mission_id": mission.id, "xp": str(reward.xp)},
    )
    return MissionCompletion(
        account=updated,
        reward=reward,
        transaction=record,
        awarded=True,
        mission=replace(mission, completed=True),
    )


__all__ = [
    "CompletionResult",
    "MissionCompletion",
    "ModuleCompletion",
    "RewardDelta",
    "complete_mission",
    "complete_module",
    "investment_deposit_reward",
    "investment_movement_reward",
    "investment_withdrawal_penalty",
    "learning_reward",
    "mission_reward",
]
