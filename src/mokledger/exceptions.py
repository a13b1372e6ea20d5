"""Custom exception hierarchy for the MokLedger package.

Every error carries a stable ``kind`` string so adapters (the JSON API, a
mobile client) can branch on it without matching class names.
"""

from __future__ import annotations


class MokLedgerError(Exception):
    """Base class for all MokLedger specific errors."""

    kind = "error"


class InvalidAmountError(MokLedgerError, ValueError):
    """Raised when an amount is not a positive, finite number."""

    kind = "invalid_amount"


class InsufficientFundsError(MokLedgerError):
    """Raised when an operation would drive a monetary balance negative."""

    kind = "insufficient_funds"


class InsufficientTokensError(MokLedgerError):
    """Raised when a MokToken spend exceeds the available tokens."""

    kind = "insufficient_tokens"


class SameAccountError(MokLedgerError):
    """Raised when a transfer names the same sub-account on both sides."""

    kind = "same_account"


class OverContributionError(MokLedgerError):
    """Raised when a goal contribution would overshoot the goal target."""

    kind = "over_contribution"


class GoalNotFoundError(MokLedgerError):
    """Raised when a requested savings goal cannot be found."""

    kind = "goal_not_found"


class MissionAlreadyCompletedError(MokLedgerError):
    """Raised when a mission that is already completed is completed again."""

    kind = "mission_already_completed"


class UserNotFoundError(MokLedgerError):
    """Raised when an account lookup fails."""

    kind = "user_not_found"


class PersistenceFailureError(MokLedgerError):
    """Raised when the external store rejects a write.

    Callers must keep the snapshot they had before the operation.
    """

    kind = "persistence_failure"


class ActivityNotFoundError(MokLedgerError):
    """Raised when a learning module or mission id is unknown."""

    kind = "activity_not_found"


class StaleStateError(PersistenceFailureError):
    """Raised when another writer committed for the user after it was loaded.

    Nothing is written; reload the user and try again.
    """

    kind = "stale_state"
