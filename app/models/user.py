"""
User model.

Represents a registered platform user and the single referred_by pointer
that forms the referral forest.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.types import MoneyType


class User(Base):
    """User model - platform members and their referrer link."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            'wallet_balance >= 0', name='check_user_wallet_balance_non_negative'
        ),
        CheckConstraint(
            'commission_balance >= 0',
            name='check_user_commission_balance_non_negative'
        ),
        CheckConstraint(
            'total_earnings >= 0',
            name='check_user_total_earnings_non_negative'
        ),
        CheckConstraint(
            'referred_by IS NULL OR referred_by <> id',
            name='check_user_not_self_referred'
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Identity
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(
        String(50), nullable=True, unique=True
    )
    email: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True
    )
    referral_code: Mapped[str | None] = mapped_column(
        String(20), nullable=True, unique=True, index=True
    )

    # Referral (write-once, never re-parented)
    referred_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Balances
    wallet_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    commission_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Position tier of the latest purchased plan (P1..P10, Intern)
    position_tier: Mapped[str | None] = mapped_column(
        String(20), nullable=True
    )

    # Status flags
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    is_intern: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Interns do not generate task commissions for their upline",
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    # Relationships
    referrer: Mapped[Optional["User"]] = relationship(
        "User",
        remote_side=[id],
        back_populates="referrals",
        foreign_keys=[referred_by],
    )
    referrals: Mapped[list["User"]] = relationship(
        "User",
        back_populates="referrer",
        foreign_keys=[referred_by]
    )

    @property
    def display_name(self) -> str:
        """Name for logs and ledger descriptions."""
        return self.name or self.phone or self.email or f"user#{self.id}"

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<User(id={self.id}, referred_by={self.referred_by}, "
            f"tier={self.position_tier})>"
        )
