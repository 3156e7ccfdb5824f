"""
Referral services package.

Contains modular services for referral processing:
- config: Configuration constants (REFERRAL_DEPTH, payout tables)
- events: Commission trigger events
- commission_calculator: Pure per-level payout math
- hierarchy_builder: Builds A/B/C hierarchy edges
- commission_distributor: Pays one event up the hierarchy
- repair_service: Reconciliation sweep and integrity check
"""

from app.services.referral.commission_calculator import (
    LevelAmounts,
    compute_for_event,
    compute_invite,
    compute_task,
)
from app.services.referral.commission_distributor import (
    CommissionDistributor,
    DistributionResult,
    RewardPaid,
)
from app.services.referral.config import (
    INVITE_COMMISSION_TABLE,
    REFERRAL_DEPTH,
    TASK_COMMISSION_RATES,
)
from app.services.referral.events import (
    CommissionEvent,
    PlanPurchase,
    TaskCompletion,
)
from app.services.referral.hierarchy_builder import (
    Ancestor,
    HierarchyBuilder,
    HierarchyBuildResult,
    resolve_ancestor_chain,
)
from app.services.referral.repair_service import (
    IntegrityReport,
    ItemOutcome,
    ReferralRepairService,
    RepairReport,
)


__all__ = [
    # Configuration
    "REFERRAL_DEPTH",
    "INVITE_COMMISSION_TABLE",
    "TASK_COMMISSION_RATES",
    # Events
    "CommissionEvent",
    "PlanPurchase",
    "TaskCompletion",
    # Calculator
    "LevelAmounts",
    "compute_for_event",
    "compute_invite",
    "compute_task",
    # Hierarchy
    "Ancestor",
    "HierarchyBuilder",
    "HierarchyBuildResult",
    "resolve_ancestor_chain",
    # Distribution
    "CommissionDistributor",
    "DistributionResult",
    "RewardPaid",
    # Reconciliation
    "IntegrityReport",
    "ItemOutcome",
    "ReferralRepairService",
    "RepairReport",
]
