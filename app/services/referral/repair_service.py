"""
Referral repair service.

Reconciliation sweep over the referral ledger: rebuilds missing
hierarchy edges, then replays invite and task commissions whose ledger
rows are missing. Every step re-checks the ledger first, so the sweep
can be interrupted and rerun at any time. A second run right after a
complete one performs no repairs.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.models.enums import CommissionSchedule
from app.repositories.referral_hierarchy_repository import (
    ReferralHierarchyRepository,
)
from app.repositories.user_plan_repository import UserPlanRepository
from app.repositories.user_repository import UserRepository
from app.repositories.user_video_task_repository import (
    UserVideoTaskRepository,
)
from app.repositories.wallet_transaction_repository import (
    WalletTransactionRepository,
)
from app.services.base_service import BaseService, log_operation, transaction
from app.services.referral.commission_distributor import (
    CommissionDistributor,
    DistributionResult,
)
from app.services.referral.events import (
    CommissionEvent,
    PlanPurchase,
    TaskCompletion,
)
from app.services.referral.hierarchy_builder import (
    HierarchyBuilder,
    HierarchyBuildResult,
)
from app.utils.datetime_utils import window_start
from app.utils.exceptions import is_per_item_failure

PHASE_HIERARCHY = "hierarchy"
PHASE_INVITE = "invite"
PHASE_TASK = "task"


@dataclass(frozen=True)
class ItemOutcome:
    """Result of repairing one item (user or event)."""

    phase: str
    user_id: int
    source_event_id: int | None = None
    repaired: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def describe(self) -> str:
        item = f"user {self.user_id}"
        if self.source_event_id is not None:
            item += f" event {self.source_event_id}"
        return f"{self.phase} {item}: {self.error}"


@dataclass
class RepairReport:
    """Accumulated outcome of a repair run."""

    outcomes: list[ItemOutcome] = field(default_factory=list)

    def record(self, outcome: ItemOutcome) -> None:
        self.outcomes.append(outcome)

    def _repaired(self, phase: str) -> int:
        return sum(o.repaired for o in self.outcomes if o.phase == phase)

    @property
    def hierarchies_rebuilt(self) -> int:
        """Users that got at least one new edge."""
        return self._repaired(PHASE_HIERARCHY)

    @property
    def invite_commissions_fixed(self) -> int:
        """Invite ledger rows written."""
        return self._repaired(PHASE_INVITE)

    @property
    def task_commissions_fixed(self) -> int:
        """Task ledger rows written."""
        return self._repaired(PHASE_TASK)

    @property
    def users_processed(self) -> list[int]:
        """Users with at least one repair, in first-seen order."""
        seen: dict[int, None] = {}
        for outcome in self.outcomes:
            if outcome.repaired:
                seen.setdefault(outcome.user_id, None)
        return list(seen)

    @property
    def errors(self) -> list[str]:
        return [o.describe() for o in self.outcomes if o.failed]

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def repairs_performed(self) -> int:
        return (
            self.hierarchies_rebuilt
            + self.invite_commissions_fixed
            + self.task_commissions_fixed
        )

    def to_dict(self) -> dict[str, Any]:
        """Summary for logs and job results."""
        return {
            "success": self.success,
            "repairs_performed": self.repairs_performed,
            "hierarchies_rebuilt": self.hierarchies_rebuilt,
            "invite_commissions_fixed": self.invite_commissions_fixed,
            "task_commissions_fixed": self.task_commissions_fixed,
            "users_processed": self.users_processed,
            "errors": self.errors,
        }


@dataclass
class IntegrityReport:
    """Read-only consistency check of the referral tables."""

    is_valid: bool
    issues: list[str]
    statistics: dict[str, int]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ReferralRepairService(BaseService):
    """
    Reconciliation sweep for hierarchy edges and commissions.

    Passes run in order: hierarchy, invite, task. The service owns its
    session and commits after every repaired item. Failures of single
    items are rolled back, recorded in the report and the sweep
    continues; failures of the scan queries themselves propagate.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        task_window_days: int | None = None,
        batch_size: int | None = None,
    ) -> None:
        """
        Initialize repair service.

        Args:
            session: Database session
            task_window_days: Task pass window (defaults to settings)
            batch_size: Scan page size (defaults to settings)
        """
        super().__init__(session)
        self.task_window_days = (
            task_window_days or settings.referral_task_repair_window_days
        )
        self.batch_size = batch_size or settings.referral_repair_batch_size

        self.hierarchy_builder = HierarchyBuilder(session)
        self.distributor = CommissionDistributor(
            session, hierarchy_builder=self.hierarchy_builder
        )
        self.user_repo = UserRepository(session)
        self.hierarchy_repo = ReferralHierarchyRepository(session)
        self.plan_repo = UserPlanRepository(session)
        self.task_repo = UserVideoTaskRepository(session)
        self.transaction_repo = WalletTransactionRepository(session)

    @log_operation
    async def repair_all(self) -> RepairReport:
        """
        Run the full reconciliation sweep.

        Returns:
            RepairReport with per-item outcomes
        """
        report = RepairReport()
        since = window_start(self.task_window_days)

        await self._repair_hierarchies(report)
        await self._repair_invite_commissions(report)
        await self._repair_task_commissions(report, since)

        self.logger.info("Referral repair finished", extra=report.to_dict())
        return report

    @log_operation
    async def repair_user(self, user_id: int) -> RepairReport:
        """
        Run all three passes for a single user.

        An unknown user is reported as an error, not raised.

        Args:
            user_id: User ID

        Returns:
            RepairReport for this user
        """
        report = RepairReport()

        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            report.record(
                ItemOutcome(
                    phase=PHASE_HIERARCHY,
                    user_id=user_id,
                    error=f"User {user_id} not found",
                )
            )
            return report

        if user.referred_by is not None:
            await self._repair_user_hierarchy(report, user_id)

        plans = await self.plan_repo.list_active_for_user(user_id)
        for event in [PlanPurchase.from_user_plan(plan) for plan in plans]:
            await self._replay(report, PHASE_INVITE, event)

        since = window_start(self.task_window_days)
        await self._repair_user_tasks(report, user_id, since)

        self.logger.info(
            "Referral repair for user finished",
            extra={"user_id": user_id, **report.to_dict()},
        )
        return report

    async def validate_integrity(self) -> IntegrityReport:
        """
        Check the referral tables for gaps without changing anything.

        Returns:
            IntegrityReport with issues and counts
        """
        users_missing_hierarchy = await self.user_repo.count_missing_hierarchy()
        statistics = {
            "total_users": await self.user_repo.count(),
            "users_with_referrers": await self.user_repo.count_referred(),
            "users_with_hierarchy": (
                await self.hierarchy_repo.count_users_with_hierarchy()
            ),
            "hierarchy_edges": await self.hierarchy_repo.count(),
            "active_plans": await self.plan_repo.count_active(),
            "invite_commissions": await self.transaction_repo.count_commissions(
                CommissionSchedule.INVITE
            ),
            "task_commissions": await self.transaction_repo.count_commissions(
                CommissionSchedule.TASK
            ),
            "users_missing_hierarchy": users_missing_hierarchy,
            # Includes plans that legitimately pay nothing (Intern tier,
            # inactive ancestors), so it is reported but not an issue
            "plans_without_invite_commission": (
                await self.plan_repo.count_active_without_invite_commission()
            ),
        }

        issues: list[str] = []
        if users_missing_hierarchy > 0:
            issues.append(
                f"{users_missing_hierarchy} users have referrers "
                f"but no hierarchy records"
            )

        return IntegrityReport(
            is_valid=not issues,
            issues=issues,
            statistics=statistics,
        )

    async def _repair_hierarchies(self, report: RepairReport) -> None:
        async for page in self.user_repo.iter_users_missing_hierarchy(
            self.batch_size
        ):
            user_ids = [user.id for user in page]
            for user_id in user_ids:
                await self._repair_user_hierarchy(report, user_id)

    async def _repair_user_hierarchy(
        self, report: RepairReport, user_id: int
    ) -> None:
        try:
            result = await self._build_hierarchy(user_id)
        except Exception as e:
            await self._record_failure(report, PHASE_HIERARCHY, user_id, None, e)
            return

        if result.created:
            report.record(
                ItemOutcome(phase=PHASE_HIERARCHY, user_id=user_id, repaired=1)
            )

    async def _repair_invite_commissions(self, report: RepairReport) -> None:
        async for page in self.plan_repo.iter_active_for_referred_users(
            self.batch_size
        ):
            # Plain events: a rollback below expires the ORM rows
            events = [PlanPurchase.from_user_plan(plan) for plan in page]
            for event in events:
                await self._replay(report, PHASE_INVITE, event)

    async def _repair_task_commissions(
        self, report: RepairReport, since: datetime
    ) -> None:
        after_user_id = 0
        while True:
            summaries = await self.task_repo.group_verified_by_user(
                since, after_user_id=after_user_id, limit=self.batch_size
            )
            if not summaries:
                break

            for summary in summaries:
                await self._repair_user_tasks(report, summary.user_id, since)

            if len(summaries) < self.batch_size:
                break
            after_user_id = summaries[-1].user_id

    async def _repair_user_tasks(
        self, report: RepairReport, user_id: int, since: datetime
    ) -> None:
        tasks = await self.task_repo.list_verified_for_user(user_id, since)
        events = [TaskCompletion.from_video_task(task) for task in tasks]
        for event in events:
            await self._replay(report, PHASE_TASK, event)

    async def _replay(
        self, report: RepairReport, phase: str, event: CommissionEvent
    ) -> None:
        """Check one event and replay the distributor if levels are missing."""
        try:
            missing = await self.distributor.find_missing_levels(event)
            if not missing:
                return

            result = await self._distribute(event)
        except Exception as e:
            await self._record_failure(
                report, phase, event.user_id, event.source_event_id, e
            )
            return

        if result.rewards_paid:
            report.record(
                ItemOutcome(
                    phase=phase,
                    user_id=event.user_id,
                    source_event_id=event.source_event_id,
                    repaired=len(result.rewards_paid),
                )
            )
            self.logger.info(
                f"Repaired {phase} commission",
                extra={
                    "referred_user_id": event.user_id,
                    "source_event_id": event.source_event_id,
                    "levels": [level.value for level in result.paid_levels],
                },
            )

    @transaction
    async def _build_hierarchy(self, user_id: int) -> HierarchyBuildResult:
        return await self.hierarchy_builder.ensure_hierarchy(user_id)

    @transaction
    async def _distribute(self, event: CommissionEvent) -> DistributionResult:
        return await self.distributor.distribute(event)

    async def _record_failure(
        self,
        report: RepairReport,
        phase: str,
        user_id: int,
        source_event_id: int | None,
        error: Exception,
    ) -> None:
        await self.rollback()
        report.record(
            ItemOutcome(
                phase=phase,
                user_id=user_id,
                source_event_id=source_event_id,
                error=str(error),
            )
        )

        log_extra = {
            "phase": phase,
            "user_id": user_id,
            "source_event_id": source_event_id,
            "error": str(error),
        }
        if is_per_item_failure(error):
            self.logger.warning("Repair item failed", extra=log_extra)
        else:
            self.logger.exception("Unexpected error repairing item", extra=log_extra)
