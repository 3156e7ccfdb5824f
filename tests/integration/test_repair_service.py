"""
Integration tests for ReferralRepairService against SQLite.

Tests cover:
- Convergence of hierarchy, invite and task passes
- Fixed point (second run repairs nothing)
- Task window
- Per-item error collection
- Single-user repair and integrity validation
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from app.models import PlanStatus, ReferralHierarchy
from app.services.referral.commission_distributor import CommissionDistributor
from app.services.referral.events import PlanPurchase
from app.services.referral.repair_service import ReferralRepairService
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import LedgerWriteError


async def total_edges(session) -> int:
    return await session.scalar(select(func.count(ReferralHierarchy.id)))


@pytest.fixture
def repair_service(session):
    return ReferralRepairService(session, task_window_days=90, batch_size=2)


class TestRepairAll:
    """Test the full sweep."""

    @pytest.mark.asyncio
    async def test_converges_and_reaches_fixed_point(
        self,
        session,
        make_chain,
        make_plan,
        make_task,
        repair_service,
        wallet_balance,
        commission_rows,
    ):
        # Nothing materialized yet: no edges, no commission rows
        _, c, b, a, buyer = await make_chain(5)
        await make_plan(buyer, "P1")
        await make_task(buyer, Decimal("62"))
        await make_task(a, Decimal("100"))

        report = await repair_service.repair_all()

        assert report.success is True
        # c, b, a and buyer are referred users without edges
        assert report.hierarchies_rebuilt == 4
        assert report.invite_commissions_fixed == 3
        # buyer's task: 4/2/1 on three levels, a's task: 6/3/1 on three levels
        assert report.task_commissions_fixed == 6
        assert await wallet_balance(a) == Decimal("312") + Decimal("4")
        assert await wallet_balance(b) == Decimal("117") + Decimal("2") + Decimal("6")

        second = await repair_service.repair_all()

        assert second.repairs_performed == 0
        assert second.success is True
        assert await wallet_balance(a) == Decimal("316")

    @pytest.mark.asyncio
    async def test_skips_tasks_outside_window(
        self, session, make_chain, make_task, repair_service, commission_rows
    ):
        _, worker = await make_chain(2)
        await make_task(worker, watched_at=utc_now() - timedelta(days=120))
        recent = await make_task(worker, watched_at=utc_now() - timedelta(days=5))

        report = await repair_service.repair_all()

        rows = await commission_rows(worker)
        assert report.task_commissions_fixed == 1
        assert [row.event_key for row in rows] == [f"task:{recent}"]

    @pytest.mark.asyncio
    async def test_ignores_unverified_tasks_and_inactive_plans(
        self, session, make_chain, make_plan, make_task, repair_service
    ):
        _, worker = await make_chain(2)
        await make_task(worker, is_verified=False)
        await make_plan(worker, "P1", status=PlanStatus.EXPIRED)

        report = await repair_service.repair_all()

        assert report.invite_commissions_fixed == 0
        assert report.task_commissions_fixed == 0

    @pytest.mark.asyncio
    async def test_already_paid_events_are_not_replayed(
        self, session, make_chain, make_plan, repair_service, wallet_balance
    ):
        _, parent, buyer = await make_chain(3)
        plan_id = await make_plan(buyer, "P1")
        await CommissionDistributor(session).distribute(
            PlanPurchase(
                user_id=buyer,
                amount_paid=Decimal("5000"),
                position_tier="P1",
                plan_id=plan_id,
            )
        )
        await session.commit()

        report = await repair_service.repair_all()

        assert report.invite_commissions_fixed == 0
        assert await wallet_balance(parent) == Decimal("312")

    @pytest.mark.asyncio
    async def test_pages_through_all_plans(
        self, session, make_user, make_plan, repair_service, wallet_balance
    ):
        """batch_size=2 with five buyers still visits every plan."""
        parent = await make_user()
        for _ in range(5):
            buyer = await make_user(referred_by=parent)
            await make_plan(buyer, "P1")

        report = await repair_service.repair_all()

        assert report.invite_commissions_fixed == 5
        assert await wallet_balance(parent) == Decimal("312") * 5

    @pytest.mark.asyncio
    async def test_item_failures_are_collected(
        self, session, make_user, make_plan, repair_service, wallet_balance
    ):
        parent = await make_user()
        failing = await make_user(referred_by=parent)
        healthy = await make_user(referred_by=parent)
        await make_plan(failing, "P1")
        await make_plan(healthy, "P2")

        distributor = repair_service.distributor
        original = distributor.distribute

        async def distribute(event):
            if event.user_id == failing:
                raise LedgerWriteError("store rejected write")
            return await original(event)

        with patch.object(distributor, "distribute", side_effect=distribute):
            report = await repair_service.repair_all()

        assert report.success is False
        assert len(report.errors) == 1
        assert f"user {failing}" in report.errors[0]
        assert "store rejected write" in report.errors[0]
        assert report.invite_commissions_fixed == 1
        assert await wallet_balance(parent) == Decimal("1440")

        # The next sweep completes the failed item
        retry = await repair_service.repair_all()

        assert retry.success is True
        assert retry.invite_commissions_fixed == 1
        assert await wallet_balance(parent) == Decimal("1440") + Decimal("312")

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_collected(
        self, session, make_chain, repair_service
    ):
        _, child = await make_chain(2)

        with patch.object(
            repair_service.hierarchy_builder,
            "ensure_hierarchy",
            side_effect=RuntimeError("boom"),
        ):
            report = await repair_service.repair_all()

        assert report.errors == [f"hierarchy user {child}: boom"]
        assert await total_edges(session) == 0


class TestRepairUser:
    """Test single-user repair."""

    @pytest.mark.asyncio
    async def test_repairs_one_user(
        self, session, make_chain, make_plan, make_task, repair_service, wallet_balance
    ):
        _, parent, buyer = await make_chain(3)
        other = await make_chain(2)
        await make_plan(buyer, "P1")
        await make_task(buyer, Decimal("62"))
        await make_plan(other[1], "P1")

        report = await repair_service.repair_user(buyer)

        assert report.hierarchies_rebuilt == 1
        assert report.invite_commissions_fixed == 2
        assert report.task_commissions_fixed == 2
        assert report.users_processed == [buyer]
        assert await wallet_balance(parent) == Decimal("316")
        # Other users untouched
        assert await wallet_balance(other[0]) == Decimal("0")

    @pytest.mark.asyncio
    async def test_unknown_user_reported(self, repair_service):
        report = await repair_service.repair_user(4242)

        assert report.success is False
        assert "User 4242 not found" in report.errors[0]


class TestValidateIntegrity:
    """Test the read-only integrity check."""

    @pytest.mark.asyncio
    async def test_reports_missing_hierarchy(
        self, session, make_chain, make_plan, repair_service
    ):
        _, _, buyer = await make_chain(3)
        await make_plan(buyer, "P1")

        before = await repair_service.validate_integrity()

        assert before.is_valid is False
        assert before.statistics["users_missing_hierarchy"] == 2
        assert before.statistics["plans_without_invite_commission"] == 1
        assert before.statistics["total_users"] == 3
        assert before.statistics["users_with_referrers"] == 2

        await repair_service.repair_all()
        after = await repair_service.validate_integrity()

        assert after.is_valid is True
        assert after.issues == []
        assert after.statistics["users_with_hierarchy"] == 2
        assert after.statistics["hierarchy_edges"] == 3
        assert after.statistics["invite_commissions"] == 2
        assert after.statistics["plans_without_invite_commission"] == 0
