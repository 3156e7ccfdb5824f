"""
Model enumerations.

Closed sets of values stored as strings in the database.
"""

from enum import StrEnum


class ReferralLevel(StrEnum):
    """Generation of an ancestor relative to a referred user."""

    A_LEVEL = "A_LEVEL"  # direct referrer
    B_LEVEL = "B_LEVEL"  # referrer's referrer
    C_LEVEL = "C_LEVEL"

    @property
    def depth(self) -> int:
        """1-based generation number."""
        return _LEVEL_DEPTH[self]

    @classmethod
    def from_depth(cls, depth: int) -> "ReferralLevel":
        """Map generation number (1-3) to level."""
        for level, level_depth in _LEVEL_DEPTH.items():
            if level_depth == depth:
                return level
        raise ValueError(f"No referral level for depth {depth}")


_LEVEL_DEPTH = {
    ReferralLevel.A_LEVEL: 1,
    ReferralLevel.B_LEVEL: 2,
    ReferralLevel.C_LEVEL: 3,
}


class CommissionSchedule(StrEnum):
    """Commission schedule a ledger row was paid under."""

    INVITE = "invite"  # plan purchase, fixed tier table
    TASK = "task"  # task income, percentage


class TransactionType(StrEnum):
    """Wallet transaction type."""

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TASK_INCOME = "TASK_INCOME"
    PLAN_PURCHASE = "PLAN_PURCHASE"

    REFERRAL_REWARD_A = "REFERRAL_REWARD_A"
    REFERRAL_REWARD_B = "REFERRAL_REWARD_B"
    REFERRAL_REWARD_C = "REFERRAL_REWARD_C"

    MANAGEMENT_BONUS_A = "MANAGEMENT_BONUS_A"
    MANAGEMENT_BONUS_B = "MANAGEMENT_BONUS_B"
    MANAGEMENT_BONUS_C = "MANAGEMENT_BONUS_C"

    @classmethod
    def for_commission(
        cls, schedule: CommissionSchedule, level: ReferralLevel
    ) -> "TransactionType":
        """Transaction type for a commission paid at a level."""
        return _COMMISSION_TYPES[(schedule, level)]

    @classmethod
    def commission_types(
        cls, schedule: CommissionSchedule
    ) -> tuple["TransactionType", ...]:
        """All transaction types of one commission schedule."""
        return tuple(
            tx_type
            for (tx_schedule, _), tx_type in _COMMISSION_TYPES.items()
            if tx_schedule == schedule
        )


_COMMISSION_TYPES = {
    (CommissionSchedule.INVITE, ReferralLevel.A_LEVEL): TransactionType.REFERRAL_REWARD_A,
    (CommissionSchedule.INVITE, ReferralLevel.B_LEVEL): TransactionType.REFERRAL_REWARD_B,
    (CommissionSchedule.INVITE, ReferralLevel.C_LEVEL): TransactionType.REFERRAL_REWARD_C,
    (CommissionSchedule.TASK, ReferralLevel.A_LEVEL): TransactionType.MANAGEMENT_BONUS_A,
    (CommissionSchedule.TASK, ReferralLevel.B_LEVEL): TransactionType.MANAGEMENT_BONUS_B,
    (CommissionSchedule.TASK, ReferralLevel.C_LEVEL): TransactionType.MANAGEMENT_BONUS_C,
}


class TransactionStatus(StrEnum):
    """Wallet transaction status."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PlanStatus(StrEnum):
    """User plan subscription status."""

    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"
