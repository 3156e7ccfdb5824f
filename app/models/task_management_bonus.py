"""
TaskManagementBonus model.

Denormalized record of each task-commission payout, read by reporting
and used as a secondary existence check by reconciliation.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import MoneyType


class TaskManagementBonus(Base):
    """
    TaskManagementBonus entity.

    Attributes:
        id: Primary key
        user_id: Ancestor who received the bonus
        subordinate_id: Referred user who completed the task
        subordinate_level: Level of the subordinate relative to user_id
        bonus_amount: Amount paid
        task_income: Task reward the bonus was computed from
        task_date: When the task was watched
        source_task_id: UserVideoTask id
        created_at: When the bonus was written
    """

    __tablename__ = "task_management_bonuses"
    __table_args__ = (
        UniqueConstraint(
            "subordinate_id",
            "subordinate_level",
            "source_task_id",
            name="uq_task_management_bonuses_task_level",
        ),
        Index("idx_task_management_bonuses_user_date", "user_id", "task_date"),
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
    subordinate_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subordinate_level: Mapped[str] = mapped_column(String(10), nullable=False)
    bonus_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    task_income: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    task_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    source_task_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<TaskManagementBonus(user_id={self.user_id}, "
            f"subordinate_id={self.subordinate_id}, "
            f"level={self.subordinate_level}, amount={self.bonus_amount})>"
        )
