"""MokLedger package: the reward ledger behind a kids' money-skills game."""

from .achievements import CATALOGUE, Achievement, ActivityStats
from .api import ApiExporter, EventDispatcher
from .conversion import ConversionResult, convert
from .exceptions import (
    ActivityNotFoundError,
    GoalNotFoundError,
    InsufficientFundsError,
    InsufficientTokensError,
    InvalidAmountError,
    MissionAlreadyCompletedError,
    MokLedgerError,
    OverContributionError,
    PersistenceFailureError,
    SameAccountError,
    StaleStateError,
    UserNotFoundError,
)
from .flags import FeatureFlag, FeatureFlagRegistry, default_flags
from .goals import ContributionResult, GoalTracker
from .ledger import Account, LevelProgress, apply_delta, level_progress, recompute_level
from .models import (
    AssetType,
    Goal,
    LearningModule,
    Mission,
    MonetaryDelta,
    Priority,
    ProfileDelta,
    ProgressDelta,
    SubAccount,
    Transaction,
    TransactionType,
)
from .ops import StructuredLogger
from .rates import DEFAULT_RATES, RateTable
from .rewards import RewardDelta, learning_reward, mission_reward
from .service import EconomyService
from .store import AccountStore, InMemoryStore, UserState
from .transactions import TransactionLog
from .transfers import FundsResult, TransferResult, add_funds, transfer

__all__ = [
    "Account",
    "AccountStore",
    "Achievement",
    "ActivityNotFoundError",
    "ActivityStats",
    "ApiExporter",
    "AssetType",
    "CATALOGUE",
    "ContributionResult",
    "ConversionResult",
    "DEFAULT_RATES",
    "EconomyService",
    "EventDispatcher",
    "FeatureFlag",
    "FeatureFlagRegistry",
    "FundsResult",
    "Goal",
    "GoalNotFoundError",
    "GoalTracker",
    "InMemoryStore",
    "InsufficientFundsError",
    "InsufficientTokensError",
    "InvalidAmountError",
    "LearningModule",
    "LevelProgress",
    "Mission",
    "MissionAlreadyCompletedError",
    "MokLedgerError",
    "MonetaryDelta",
    "OverContributionError",
    "PersistenceFailureError",
    "Priority",
    "ProfileDelta",
    "ProgressDelta",
    "RateTable",
    "RewardDelta",
    "SameAccountError",
    "StaleStateError",
    "StructuredLogger",
    "SubAccount",
    "Transaction",
    "TransactionLog",
    "TransactionType",
    "TransferResult",
    "UserNotFoundError",
    "UserState",
    "add_funds",
    "apply_delta",
    "convert",
    "default_flags",
    "learning_reward",
    "level_progress",
    "mission_reward",
    "recompute_level",
    "transfer",
]
