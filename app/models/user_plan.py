"""
UserPlan model.

Subscription plan purchases. An ACTIVE plan of a referred user is the
source of an invite commission.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import PlanStatus
from app.models.types import MoneyType


class UserPlan(Base):
    """UserPlan entity - a purchased subscription plan."""

    __tablename__ = "user_plans"
    __table_args__ = (
        Index("idx_user_plans_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    plan_name: Mapped[str] = mapped_column(String(100), nullable=False)
    position_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PlanStatus.ACTIVE.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<UserPlan(id={self.id}, user_id={self.user_id}, "
            f"tier={self.position_tier}, status={self.status})>"
        )
