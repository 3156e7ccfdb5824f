"""
UserVideoTask model.

Verified video-watch completions. Each verified task of a referred user is
the source of one task (management) commission fan-out.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import MoneyType


class UserVideoTask(Base):
    """UserVideoTask entity - one watched video."""

    __tablename__ = "user_video_tasks"
    __table_args__ = (
        Index(
            "idx_user_video_tasks_verified_watched",
            "is_verified",
            "watched_at",
        ),
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
    video_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reward_earned: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    watched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<UserVideoTask(id={self.id}, user_id={self.user_id}, "
            f"reward={self.reward_earned}, verified={self.is_verified})>"
        )
