"""
Commission distributor.

Pays one commission event up the A/B/C hierarchy. Each level is its own
savepoint: balance increment, ledger row and (task schedule) bonus row
are kept together or not at all. The ledger's commission key makes a
level payable at most once per event.

The distributor never commits or rolls back the session it is given;
the caller's transaction decides what becomes durable.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import CommissionSchedule, ReferralLevel
from app.models.user import User
from app.repositories.task_management_bonus_repository import (
    TaskManagementBonusRepository,
)
from app.repositories.user_repository import UserRepository
from app.repositories.wallet_transaction_repository import (
    WalletTransactionRepository,
)
from app.services.base_service import BaseService
from app.services.referral.commission_calculator import (
    LevelAmounts,
    compute_for_event,
)
from app.services.referral.config import TASK_COMMISSION_RATES
from app.services.referral.events import (
    CommissionEvent,
    PlanPurchase,
    TaskCompletion,
)
from app.services.referral.hierarchy_builder import Ancestor, HierarchyBuilder
from app.utils.exceptions import (
    InvalidEventError,
    LedgerWriteError,
    NotFoundError,
    is_per_item_failure,
)

# Reasons a level was not paid
SKIP_NO_ANCESTOR = "no_ancestor"
SKIP_INACTIVE_ANCESTOR = "inactive_ancestor"
SKIP_ZERO_AMOUNT = "zero_amount"
SKIP_ALREADY_PAID = "already_paid"
SKIP_INTERN = "intern"


@dataclass(frozen=True)
class RewardPaid:
    """One level paid by a distribution."""

    level: ReferralLevel
    ancestor_id: int
    amount: Decimal
    transaction_id: int


@dataclass
class DistributionResult:
    """Outcome of distributing one event."""

    schedule: CommissionSchedule
    referred_user_id: int
    event_key: str
    rewards_paid: list[RewardPaid] = field(default_factory=list)
    skipped_levels: dict[ReferralLevel, str] = field(default_factory=dict)

    @property
    def total_paid(self) -> Decimal:
        return sum((reward.amount for reward in self.rewards_paid), Decimal("0"))

    @property
    def paid_levels(self) -> list[ReferralLevel]:
        return [reward.level for reward in self.rewards_paid]


@dataclass(frozen=True)
class _Payout:
    ancestor: Ancestor
    amount: Decimal


class CommissionDistributor(BaseService):
    """Orchestrates commission payouts for plan purchases and tasks."""

    def __init__(
        self,
        session: AsyncSession,
        hierarchy_builder: HierarchyBuilder | None = None,
    ) -> None:
        """
        Initialize distributor.

        Args:
            session: Database session
            hierarchy_builder: Optional builder sharing the session
        """
        super().__init__(session)
        self.hierarchy_builder = hierarchy_builder or HierarchyBuilder(session)
        self.user_repo = UserRepository(session)
        self.transaction_repo = WalletTransactionRepository(session)
        self.bonus_repo = TaskManagementBonusRepository(session)

    async def distribute(self, event: CommissionEvent) -> DistributionResult:
        """
        Distribute commission for one event.

        Safe to call repeatedly: levels that already have a ledger row
        for this event are skipped, so a retry only pays what is missing.
        Paid levels are pending in the caller's transaction until it
        commits.

        Args:
            event: PlanPurchase or TaskCompletion

        Returns:
            DistributionResult with paid and skipped levels

        Raises:
            InvalidEventError: If event kind or values are invalid
            NotFoundError: If the referred user does not exist
            LedgerWriteError: If a level write fails
        """
        if not isinstance(event, (PlanPurchase, TaskCompletion)):
            raise InvalidEventError(
                f"Unsupported commission event: {type(event).__name__}"
            )

        amounts = compute_for_event(event)
        result = DistributionResult(
            schedule=event.schedule,
            referred_user_id=event.user_id,
            event_key=event.event_key,
        )

        user = await self._get_user(event.user_id)
        if self._is_excluded(event, user):
            result.skipped_levels = {level: SKIP_INTERN for level in ReferralLevel}
            return result

        hierarchy = await self.hierarchy_builder.ensure_hierarchy(event.user_id)
        payouts, skipped = await self._plan_payouts(hierarchy.ancestors, amounts)
        result.skipped_levels.update(skipped)

        paid_levels = await self.transaction_repo.get_paid_levels(
            event.user_id, event.schedule, event.event_key
        )

        for payout in payouts:
            level = payout.ancestor.level
            if level in paid_levels:
                result.skipped_levels[level] = SKIP_ALREADY_PAID
                continue

            reward = await self._pay_level(event, payout)
            if reward is None:
                result.skipped_levels[level] = SKIP_ALREADY_PAID
            else:
                result.rewards_paid.append(reward)

        if result.rewards_paid:
            self.logger.info(
                "Commission distributed",
                extra={
                    "schedule": event.schedule.value,
                    "referred_user_id": event.user_id,
                    "event_key": event.event_key,
                    "levels_paid": [level.value for level in result.paid_levels],
                    "total_paid": str(result.total_paid),
                },
            )

        return result

    async def distribute_best_effort(
        self, event: CommissionEvent
    ) -> DistributionResult | None:
        """
        Distribute commission without failing the caller.

        Used by the purchase and task flows: the triggering action must
        not be undone by a commission failure. The whole distribution runs
        in one savepoint, so a failure discards only commission writes and
        the task or plan row the caller added stays pending for its
        commit. Missed levels are picked up by the repair sweep.

        Args:
            event: PlanPurchase or TaskCompletion

        Returns:
            DistributionResult or None on failure
        """
        try:
            async with self.savepoint():
                return await self.distribute(event)
        except Exception as e:
            log_extra = {
                "schedule": getattr(event, "schedule", None),
                "referred_user_id": getattr(event, "user_id", None),
                "error": str(e),
            }
            if is_per_item_failure(e):
                self.logger.warning(
                    "Commission distribution failed, left for repair",
                    extra=log_extra,
                )
            else:
                self.logger.exception(
                    "Unexpected error distributing commission",
                    extra=log_extra,
                )
            return None

    async def find_missing_levels(
        self, event: CommissionEvent
    ) -> list[ReferralLevel]:
        """
        Get payable levels of an event that have not been paid.

        Read-only check over persisted edges. A level is payable when its
        ancestor is active and its computed amount is non-zero, the same
        rules distribute() applies. For tasks, a TaskManagementBonus row
        also counts as paid.

        Args:
            event: PlanPurchase or TaskCompletion

        Returns:
            Missing levels in A, B, C order
        """
        amounts = compute_for_event(event)
        user = await self._get_user(event.user_id)
        if self._is_excluded(event, user):
            return []

        ancestors = await self.hierarchy_builder.get_ancestors(event.user_id)
        payouts, _ = await self._plan_payouts(ancestors, amounts)
        if not payouts:
            return []

        paid_levels = await self.transaction_repo.get_paid_levels(
            event.user_id, event.schedule, event.event_key
        )
        missing = [
            payout.ancestor.level
            for payout in payouts
            if payout.ancestor.level not in paid_levels
        ]

        if missing and isinstance(event, TaskCompletion):
            missing = [
                level
                for level in missing
                if not await self.bonus_repo.exists_for_task(
                    event.user_id, level, event.task_id
                )
            ]

        return missing

    async def _get_user(self, user_id: int) -> User:
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    @staticmethod
    def _is_excluded(event: CommissionEvent, user: User) -> bool:
        # Interns earn task income but never generate management bonuses
        return isinstance(event, TaskCompletion) and user.is_intern

    async def _plan_payouts(
        self, ancestors: list[Ancestor], amounts: LevelAmounts
    ) -> tuple[list[_Payout], dict[ReferralLevel, str]]:
        """Split levels into payouts (A, B, C order) and skip reasons."""
        by_level = {ancestor.level: ancestor for ancestor in ancestors}
        active = await self.user_repo.get_active_map(
            [ancestor.user_id for ancestor in ancestors]
        )

        payouts: list[_Payout] = []
        skipped: dict[ReferralLevel, str] = {}
        for level in ReferralLevel:
            ancestor = by_level.get(level)
            amount = amounts.for_level(level)
            if ancestor is None:
                skipped[level] = SKIP_NO_ANCESTOR
            elif not active.get(ancestor.user_id, False):
                skipped[level] = SKIP_INACTIVE_ANCESTOR
            elif amount <= 0:
                skipped[level] = SKIP_ZERO_AMOUNT
            else:
                payouts.append(_Payout(ancestor=ancestor, amount=amount))

        return payouts, skipped

    async def _pay_level(
        self, event: CommissionEvent, payout: _Payout
    ) -> RewardPaid | None:
        """
        Pay one level in its own savepoint.

        Returns:
            RewardPaid, or None if a concurrent payer already wrote the key
        """
        ancestor = payout.ancestor
        try:
            async with self.savepoint():
                balance_after = await self.user_repo.credit_balance(
                    ancestor.user_id, payout.amount
                )
                if balance_after is None:
                    raise NotFoundError("User", ancestor.user_id)

                transaction = await self.transaction_repo.create_commission(
                    ancestor_id=ancestor.user_id,
                    referred_user_id=event.user_id,
                    level=ancestor.level,
                    schedule=event.schedule,
                    event_key=event.event_key,
                    source_event_id=event.source_event_id,
                    amount=payout.amount,
                    balance_after=balance_after,
                    description=self._describe(event, ancestor.level),
                    metadata=self._metadata(event, ancestor.level),
                )

                if isinstance(event, TaskCompletion):
                    await self.bonus_repo.create_bonus(
                        ancestor_id=ancestor.user_id,
                        subordinate_id=event.user_id,
                        level=ancestor.level,
                        bonus_amount=payout.amount,
                        task_income=event.reward_earned,
                        task_date=event.timestamp,
                        source_task_id=event.task_id,
                    )

                transaction_id = transaction.id
        except IntegrityError:
            self.logger.info(
                "Commission level already paid concurrently",
                extra={
                    "referred_user_id": event.user_id,
                    "level": ancestor.level.value,
                    "event_key": event.event_key,
                },
            )
            return None
        except SQLAlchemyError as e:
            raise LedgerWriteError(
                f"Failed to pay {ancestor.level.value} {event.schedule.value} "
                f"commission for user {event.user_id}: {e}"
            ) from e

        return RewardPaid(
            level=ancestor.level,
            ancestor_id=ancestor.user_id,
            amount=payout.amount,
            transaction_id=transaction_id,
        )

    @staticmethod
    def _describe(event: CommissionEvent, level: ReferralLevel) -> str:
        if isinstance(event, PlanPurchase):
            return (
                f"Invite commission {level.value} from user {event.user_id} "
                f"({event.position_tier})"
            )
        return (
            f"Management bonus {level.value} from user {event.user_id} "
            f"task {event.task_id}"
        )

    @staticmethod
    def _metadata(event: CommissionEvent, level: ReferralLevel) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "referred_user_id": event.user_id,
            "level": level.value,
            "schedule": event.schedule.value,
            "event_key": event.event_key,
            "source_event_id": event.source_event_id,
        }
        if isinstance(event, PlanPurchase):
            metadata["position_tier"] = event.position_tier
            metadata["amount_paid"] = event.amount_paid
        else:
            metadata["task_income"] = event.reward_earned
            metadata["rate"] = TASK_COMMISSION_RATES[level]
        return metadata
