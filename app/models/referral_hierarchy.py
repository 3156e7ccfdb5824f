"""
ReferralHierarchy model.

Materialized ancestor edges of the referral tree, one row per
(user, level). Rows are append-only audit records.
"""

from datetime import UTC, datetime

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
from app.models.enums import ReferralLevel


class ReferralHierarchy(Base):
    """
    ReferralHierarchy entity.

    Attributes:
        id: Primary key
        user_id: Referred user
        referrer_id: Ancestor at the given level
        level: A_LEVEL (direct), B_LEVEL or C_LEVEL
        created_at: When the edge was materialized
    """

    __tablename__ = "referral_hierarchy"
    __table_args__ = (
        UniqueConstraint("user_id", "level", name="uq_referral_hierarchy_user_level"),
        Index("idx_referral_hierarchy_referrer_level", "referrer_id", "level"),
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
    referrer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    level: Mapped[str] = mapped_column(String(10), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def referral_level(self) -> ReferralLevel:
        """Level as enum."""
        return ReferralLevel(self.level)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralHierarchy(user_id={self.user_id}, "
            f"referrer_id={self.referrer_id}, level={self.level})>"
        )
