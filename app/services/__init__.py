"""
Services.

Business logic layer.
"""

# Base Service Infrastructure
from app.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)

# Referral engine
from app.services.referral import (
    CommissionDistributor,
    HierarchyBuilder,
    ReferralRepairService,
)


__all__ = [
    # Base
    "BaseService",
    "log_operation",
    "transaction",
    # Referral engine
    "CommissionDistributor",
    "HierarchyBuilder",
    "ReferralRepairService",
]
