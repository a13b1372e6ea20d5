"""Transfers between a user's own sub-accounts and deposits of new money."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from .exceptions import InsufficientFundsError, SameAccountError
from .ledger import Account, apply_delta, clamp_token_loss
from .models import MonetaryDelta, SubAccount, Transaction, TransactionType
from .money import AmountLike, format_currency, require_positive, to_decimal
from .rates import DEFAULT_RATES, RateTable
from .rewards import RewardDelta, investment_deposit_reward, investment_movement_reward
from .transactions import (
    CATEGORY_CRYPTO_DEPOSIT,
    CATEGORY_INVESTMENT_DEPOSIT,
    CATEGORY_PERSONAL_SAVINGS,
    CATEGORY_TRANSFER_IN,
    CATEGORY_TRANSFER_OUT,
    new_transaction,
)

FUNDABLE_ACCOUNTS = frozenset({SubAccount.SAVINGS, SubAccount.INVESTMENT, SubAccount.CRYPTO})


@dataclass(frozen=True, slots=True)
class TransferResult:
    account: Account
    transactions: Tuple[Transaction, Transaction]
    reward: RewardDelta
    requested_reward: RewardDelta

    @property
    def clamped(self) -> bool:
        """True when a withdrawal penalty was capped at the available balance."""

        return self.reward != self.requested_reward


@dataclass(frozen=True, slots=True)
class FundsResult:
    account: Account
    transaction: Transaction
    reward: RewardDelta
    pending_approval: bool = False


def transfer(
    account: Account,
    amount: AmountLike,
    source: SubAccount | str,
    destination: SubAccount | str,
    *,
    rates: RateTable = DEFAULT_RATES,
) -> TransferResult:
    """Move ``amount`` from ``source`` to ``destination``.

    Moving money into investment earns tokens and XP; moving it out costs
    them. The cost is capped so MokTokens and XP floor at zero instead of
    rejecting the transfer.
    """

    value = require_positive(to_decimal(amount))
    origin = SubAccount(source)
    target = SubAccount(destination)
    if origin is target:
        raise SameAccountError(f"Cannot transfer from {origin.value} to itself.")
    available = account.balance_of(origin.field_name)
    if available < value:
        raise InsufficientFundsError(
            f"You don't have enough in your {origin.value} account to transfer {format_currency(value)}."
        )

    requested = investment_movement_reward(value, origin, target, rates=rates)
    reward = clamp_token_loss(account, requested)
    movement = MonetaryDelta.single(origin.field_name, -value) + MonetaryDelta.single(target.field_name, value)
    updated = apply_delta(account, movement, reward, xp_per_level=rates.xp_per_level)

    description = f"Transferred from {origin.value} to {target.value}"
    metadata = {"source": origin.value, "destination": target.value}
    outgoing = new_transaction(TransactionType.EXPENSE, value, CATEGORY_TRANSFER_OUT, description, metadata=metadata)
    incoming = new_transaction(
        TransactionType.SAVING,
        value,
        CATEGORY_TRANSFER_IN,
        description,
        on=outgoing.date,
        metadata=metadata,
    )
    return TransferResult(
        account=updated,
        transactions=(outgoing, incoming),
        reward=reward,
        requested_reward=requested,
    )


def add_funds(
    account: Account,
    amount: AmountLike,
    destination: SubAccount | str,
    *,
    rates: RateTable = DEFAULT_RATES,
) -> FundsResult:
    """Record new money arriving in ``destination``.

    Investment deposits are rewarded. Crypto deposits only produce a record
    awaiting parent approval; the balance is credited outside this engine.
    """

    value = require_positive(to_decimal(amount))
    target = SubAccount(destination)
    if target not in FUNDABLE_ACCOUNTS:
        raise ValueError(f"New money cannot be added to the {target.value} account.")

    if target is SubAccount.CRYPTO:
        record = new_transaction(
            TransactionType.SAVING,
            value,
            CATEGORY_CRYPTO_DEPOSIT,
            f"Crypto deposit of {format_currency(value)} requested; waiting for parent approval",
            metadata={"destination": target.value, "status": "pending_approval"},
        )
        return FundsResult(account=account, transaction=record, reward=RewardDelta(), pending_approval=True)

    if target is SubAccount.INVESTMENT:
        reward = investment_deposit_reward(value, rates=rates)
        category = CATEGORY_INVESTMENT_DEPOSIT
        description = "Added to investments"
    else:
        reward = RewardDelta()
        category = CATEGORY_PERSONAL_SAVINGS
        description = "Added to savings"
    updated = apply_delta(
        account,
        MonetaryDelta.single(target.field_name, value),
        reward,
        xp_per_level=rates.xp_per_level,
    )
    record = new_transaction(
        TransactionType.SAVING,
        value,
        category,
        description,
        metadata={"destination": target.value},
    )
    return FundsResult(account=updated, transaction=record, reward=reward)


__all__ = ["FUNDABLE_ACCOUNTS", "FundsResult", "TransferResult", "add_funds", "transfer"]
