"""Stampman models.

Points ledger:     LoyaltyAccount, LoyaltyTransaction
Stamp cards:       StampCard, StampTransaction
Rewards:           RewardDefinition, RewardRedemption
QR-scan flow:      StampTransactionCode, UserRewardProgress, ScanHistoryRecord
"""

from stampman.models.account import (
    LoyaltyAccount,
    LoyaltyLevel,
    LoyaltyTransaction,
    TransactionType,
)
from stampman.models.stamp_card import StampCard, StampTransaction
from stampman.models.reward import (
    RedemptionStatus,
    RewardDefinition,
    RewardRedemption,
    RewardType,
)
from stampman.models.progress import (
    PROGRESS_TRANSITIONS,
    ProgressStatus,
    ScanAction,
    ScanHistoryRecord,
    UserRewardProgress,
    sources_for,
)
from stampman.models.transaction_code import CodeStatus, StampTransactionCode

__all__ = [
    # Points ledger
    "LoyaltyAccount",
    "LoyaltyLevel",
    "LoyaltyTransaction",
    "TransactionType",
    # Stamp cards
    "StampCard",
    "StampTransaction",
    # Rewards
    "RewardDefinition",
    "RewardRedemption",
    "RewardType",
    "RedemptionStatus",
    # QR-scan flow
    "StampTransactionCode",
    "CodeStatus",
    "UserRewardProgress",
    "ProgressStatus",
    "PROGRESS_TRANSITIONS",
    "sources_for",
    "ScanHistoryRecord",
    "ScanAction",
]
