"""
WalletTransaction model.

Immutable ledger of balance-affecting events. Commission rows carry a
structured idempotency key enforced by a unique constraint.
"""

import json
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import TransactionStatus
from app.models.types import MoneyType


class WalletTransaction(Base):
    """
    WalletTransaction entity.

    Commission rows (REFERRAL_REWARD_*, MANAGEMENT_BONUS_*) fill the
    idempotency key columns; every other row leaves them NULL.

    Attributes:
        id: Primary key
        user_id: Wallet owner (the ancestor for commission rows)
        type: TransactionType value
        amount: Credited amount
        balance_after: Owner's wallet balance after this row
        reference_id: Human readable reference
        description: Ledger description
        metadata_json: Serialized context (level, rates, source amounts)
        status: TransactionStatus value
        referred_user_id: User whose event triggered the commission
        commission_level: ReferralLevel value
        commission_schedule: CommissionSchedule value
        event_key: "qualification" for invite, "task:<id>" for task
        source_event_id: Plan or task id that was paid from
        created_at: When the row was written
    """

    __tablename__ = "wallet_transactions"
    __table_args__ = (
        UniqueConstraint(
            "referred_user_id",
            "commission_level",
            "commission_schedule",
            "event_key",
            name="uq_wallet_transactions_commission_key",
        ),
        Index("idx_wallet_transactions_user_type", "user_id", "type"),
        Index(
            "idx_wallet_transactions_referred_schedule",
            "referred_user_id",
            "commission_schedule",
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
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    reference_id: Mapped[str | None] = mapped_column(String(120), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TransactionStatus.COMPLETED.value,
    )

    # Commission idempotency key
    referred_user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    commission_level: Mapped[str | None] = mapped_column(
        String(10), nullable=True
    )
    commission_schedule: Mapped[str | None] = mapped_column(
        String(10), nullable=True
    )
    event_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
    source_event_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    @property
    def metadata_dict(self) -> dict[str, Any]:
        """Parsed metadata (empty dict if missing)."""
        if not self.metadata_json:
            return {}
        return json.loads(self.metadata_json)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<WalletTransaction(id={self.id}, user_id={self.user_id}, "
            f"type={self.type}, amount={self.amount})>"
        )
