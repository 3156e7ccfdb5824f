"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.base import Base
from app.models.enums import (
    CommissionSchedule,
    PlanStatus,
    ReferralLevel,
    TransactionStatus,
    TransactionType,
)
from app.models.referral_hierarchy import ReferralHierarchy
from app.models.task_management_bonus import TaskManagementBonus

# Core Models
from app.models.user import User
from app.models.user_plan import UserPlan
from app.models.user_video_task import UserVideoTask
from app.models.wallet_transaction import WalletTransaction

__all__ = [
    # Base
    "Base",
    # Enums
    "CommissionSchedule",
    "PlanStatus",
    "ReferralLevel",
    "TransactionStatus",
    "TransactionType",
    # Core Models
    "User",
    "UserPlan",
    "UserVideoTask",
    # Referral ledger
    "ReferralHierarchy",
    "WalletTransaction",
    "TaskManagementBonus",
]
