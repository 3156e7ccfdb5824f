"""
Unit tests for CommissionDistributor with mocked repositories.

Tests cover:
- Fail-fast validation before any store access
- Intern exclusion
- Per-level savepoints and write failure handling
- Best-effort wrapper
- Missing-level check
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.models.enums import CommissionSchedule, ReferralLevel
from app.services.referral.commission_distributor import (
    SKIP_ALREADY_PAID,
    SKIP_INACTIVE_ANCESTOR,
    SKIP_INTERN,
    SKIP_NO_ANCESTOR,
    CommissionDistributor,
    DistributionResult,
    RewardPaid,
)
from app.services.referral.events import PlanPurchase, TaskCompletion
from app.services.referral.hierarchy_builder import Ancestor, HierarchyBuildResult
from app.utils.exceptions import (
    InvalidEventError,
    LedgerWriteError,
    NotFoundError,
)

FULL_CHAIN = [
    Ancestor(ReferralLevel.A_LEVEL, 10),
    Ancestor(ReferralLevel.B_LEVEL, 20),
    Ancestor(ReferralLevel.C_LEVEL, 30),
]


@pytest.fixture
def hierarchy_builder():
    builder = AsyncMock()
    builder.ensure_hierarchy = AsyncMock(
        return_value=HierarchyBuildResult(user_id=1, ancestors=FULL_CHAIN)
    )
    builder.get_ancestors = AsyncMock(return_value=FULL_CHAIN)
    return builder


@pytest.fixture
def distributor(mock_session, hierarchy_builder):
    """Distributor with every repository mocked."""
    service = CommissionDistributor(mock_session, hierarchy_builder=hierarchy_builder)

    service.user_repo = AsyncMock()
    service.user_repo.get_by_id = AsyncMock(return_value=MagicMock(is_intern=False))
    service.user_repo.get_active_map = AsyncMock(
        return_value={10: True, 20: True, 30: True}
    )
    service.user_repo.credit_balance = AsyncMock(return_value=Decimal("500"))

    service.transaction_repo = AsyncMock()
    service.transaction_repo.get_paid_levels = AsyncMock(return_value=set())
    service.transaction_repo.create_commission = AsyncMock(
        return_value=MagicMock(id=77)
    )

    service.bonus_repo = AsyncMock()
    service.bonus_repo.exists_for_task = AsyncMock(return_value=False)
    return service


def plan_event(tier: str = "P1") -> PlanPurchase:
    return PlanPurchase(
        user_id=1, amount_paid=Decimal("5000"), position_tier=tier, plan_id=3
    )


def task_event(reward: str = "62") -> TaskCompletion:
    return TaskCompletion(user_id=1, reward_earned=Decimal(reward), task_id=8)


class TestValidation:
    """Invalid events fail before touching the store."""

    @pytest.mark.asyncio
    async def test_rejects_unknown_event(self, distributor, mock_session):
        with pytest.raises(InvalidEventError):
            await distributor.distribute({"user_id": 1})

        distributor.user_repo.get_by_id.assert_not_awaited()
        mock_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejects_unknown_tier(self, distributor, hierarchy_builder):
        with pytest.raises(InvalidEventError):
            await distributor.distribute(plan_event("P99"))

        hierarchy_builder.ensure_hierarchy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejects_negative_income(self, distributor):
        with pytest.raises(InvalidEventError):
            await distributor.distribute(task_event("-5"))


class TestDistribute:
    """Test the per-level payout loop."""

    @pytest.mark.asyncio
    async def test_pays_all_levels_in_order(self, distributor, mock_session):
        result = await distributor.distribute(plan_event("P1"))

        assert result.paid_levels == [
            ReferralLevel.A_LEVEL,
            ReferralLevel.B_LEVEL,
            ReferralLevel.C_LEVEL,
        ]
        assert result.total_paid == Decimal("468")
        # One savepoint per level, the caller's transaction is left open
        assert mock_session.begin_nested.call_count == 3
        mock_session.commit.assert_not_awaited()

        credited = [c.args for c in distributor.user_repo.credit_balance.await_args_list]
        assert credited == [
            (10, Decimal("312")),
            (20, Decimal("117")),
            (30, Decimal("39")),
        ]

    @pytest.mark.asyncio
    async def test_invite_does_not_write_bonus_rows(self, distributor):
        await distributor.distribute(plan_event("P1"))

        distributor.bonus_repo.create_bonus.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_task_writes_bonus_rows(self, distributor):
        result = await distributor.distribute(task_event("62"))

        assert [r.amount for r in result.rewards_paid] == [
            Decimal("4"),
            Decimal("2"),
            Decimal("1"),
        ]
        assert distributor.bonus_repo.create_bonus.await_count == 3
        kwargs = distributor.bonus_repo.create_bonus.await_args_list[0].kwargs
        assert kwargs["source_task_id"] == 8
        assert kwargs["task_income"] == Decimal("62")

    @pytest.mark.asyncio
    async def test_commission_key_passed_to_ledger(self, distributor):
        await distributor.distribute(task_event("62"))

        kwargs = distributor.transaction_repo.create_commission.await_args_list[0].kwargs
        assert kwargs["schedule"] == CommissionSchedule.TASK
        assert kwargs["event_key"] == "task:8"
        assert kwargs["level"] == ReferralLevel.A_LEVEL
        assert kwargs["balance_after"] == Decimal("500")

    @pytest.mark.asyncio
    async def test_skips_paid_levels(self, distributor):
        distributor.transaction_repo.get_paid_levels.return_value = {
            ReferralLevel.A_LEVEL
        }

        result = await distributor.distribute(plan_event("P1"))

        assert result.paid_levels == [ReferralLevel.B_LEVEL, ReferralLevel.C_LEVEL]
        assert result.skipped_levels[ReferralLevel.A_LEVEL] == SKIP_ALREADY_PAID

    @pytest.mark.asyncio
    async def test_skips_inactive_ancestor(self, distributor):
        distributor.user_repo.get_active_map.return_value = {
            10: True,
            20: False,
            30: True,
        }

        result = await distributor.distribute(plan_event("P1"))

        assert result.paid_levels == [ReferralLevel.A_LEVEL, ReferralLevel.C_LEVEL]
        assert result.skipped_levels[ReferralLevel.B_LEVEL] == SKIP_INACTIVE_ANCESTOR

    @pytest.mark.asyncio
    async def test_partial_chain(self, distributor, hierarchy_builder):
        hierarchy_builder.ensure_hierarchy.return_value = HierarchyBuildResult(
            user_id=1, ancestors=FULL_CHAIN[:1]
        )

        result = await distributor.distribute(plan_event("P1"))

        assert result.paid_levels == [ReferralLevel.A_LEVEL]
        assert result.skipped_levels[ReferralLevel.B_LEVEL] == SKIP_NO_ANCESTOR
        assert result.skipped_levels[ReferralLevel.C_LEVEL] == SKIP_NO_ANCESTOR

    @pytest.mark.asyncio
    async def test_intern_generates_no_task_commission(
        self, distributor, hierarchy_builder
    ):
        distributor.user_repo.get_by_id.return_value = MagicMock(is_intern=True)

        result = await distributor.distribute(task_event("62"))

        assert result.rewards_paid == []
        assert set(result.skipped_levels.values()) == {SKIP_INTERN}
        hierarchy_builder.ensure_hierarchy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_intern_still_generates_invite_commission(self, distributor):
        distributor.user_repo.get_by_id.return_value = MagicMock(is_intern=True)

        result = await distributor.distribute(plan_event("P1"))

        assert len(result.rewards_paid) == 3


class TestLevelWriteFailures:
    """Test per-level savepoint handling."""

    @pytest.mark.asyncio
    async def test_unique_violation_counts_as_paid(
        self, distributor, mock_session, savepoint_exits
    ):
        distributor.transaction_repo.create_commission.side_effect = [
            IntegrityError("INSERT", {}, Exception("duplicate key")),
            MagicMock(id=2),
            MagicMock(id=3),
        ]

        result = await distributor.distribute(plan_event("P1"))

        assert result.paid_levels == [ReferralLevel.B_LEVEL, ReferralLevel.C_LEVEL]
        assert result.skipped_levels[ReferralLevel.A_LEVEL] == SKIP_ALREADY_PAID
        # Only level A's savepoint is rolled back
        assert savepoint_exits() == [IntegrityError, None, None]
        mock_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_error_raises_ledger_write_error(
        self, distributor, mock_session, savepoint_exits
    ):
        distributor.user_repo.credit_balance.side_effect = OperationalError(
            "UPDATE", {}, Exception("connection lost")
        )

        with pytest.raises(LedgerWriteError):
            await distributor.distribute(plan_event("P1"))

        assert savepoint_exits() == [OperationalError]
        mock_session.rollback.assert_not_awaited()
        mock_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_ancestor_row_rolls_back_level(
        self, distributor, savepoint_exits
    ):
        distributor.user_repo.credit_balance.return_value = None

        with pytest.raises(NotFoundError):
            await distributor.distribute(plan_event("P1"))

        assert savepoint_exits() == [NotFoundError]
        distributor.transaction_repo.create_commission.assert_not_awaited()


class TestBestEffort:
    """Test distribute_best_effort."""

    @pytest.mark.asyncio
    async def test_returns_result(self, distributor, mock_session):
        result = await distributor.distribute_best_effort(plan_event("P1"))

        assert isinstance(result, DistributionResult)
        mock_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_swallows_failure(self, distributor, mock_session, savepoint_exits):
        distributor.user_repo.credit_balance.side_effect = OperationalError(
            "UPDATE", {}, Exception("connection lost")
        )

        result = await distributor.distribute_best_effort(plan_event("P1"))

        assert result is None
        # Level savepoint, then the enclosing distribution savepoint
        assert savepoint_exits() == [OperationalError, LedgerWriteError]
        mock_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_swallows_unexpected_error(
        self, distributor, mock_session, savepoint_exits
    ):
        distributor.user_repo.get_by_id.side_effect = RuntimeError("boom")

        assert await distributor.distribute_best_effort(plan_event("P1")) is None
        assert savepoint_exits() == [RuntimeError]
        mock_session.rollback.assert_not_awaited()


class TestFindMissingLevels:
    """Test the read-only missing-level check."""

    @pytest.mark.asyncio
    async def test_all_missing(self, distributor, mock_session):
        missing = await distributor.find_missing_levels(plan_event("P1"))

        assert missing == list(ReferralLevel)
        mock_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_paid_levels_not_missing(self, distributor):
        distributor.transaction_repo.get_paid_levels.return_value = set(ReferralLevel)

        assert await distributor.find_missing_levels(plan_event("P1")) == []

    @pytest.mark.asyncio
    async def test_zero_amount_levels_not_expected(self, distributor):
        # 10 -> 0.6 / 0.3 / 0.1 -> 1 / 0 / 0
        missing = await distributor.find_missing_levels(task_event("10"))

        assert missing == [ReferralLevel.A_LEVEL]

    @pytest.mark.asyncio
    async def test_bonus_row_counts_as_paid(self, distributor):
        distributor.bonus_repo.exists_for_task.side_effect = (
            lambda user_id, level, task_id: level == ReferralLevel.A_LEVEL
        )

        missing = await distributor.find_missing_levels(task_event("62"))

        assert missing == [ReferralLevel.B_LEVEL, ReferralLevel.C_LEVEL]

    @pytest.mark.asyncio
    async def test_intern_task_expects_nothing(self, distributor):
        distributor.user_repo.get_by_id.return_value = MagicMock(is_intern=True)

        assert await distributor.find_missing_levels(task_event("62")) == []


def test_distribution_result_totals():
    result = DistributionResult(
        schedule=CommissionSchedule.INVITE, referred_user_id=1, event_key="qualification"
    )
    result.rewards_paid.append(
        RewardPaid(ReferralLevel.A_LEVEL, 10, Decimal("312"), 1)
    )
    result.rewards_paid.append(
        RewardPaid(ReferralLevel.B_LEVEL, 20, Decimal("117"), 2)
    )

    assert result.total_paid == Decimal("429")
    assert result.paid_levels == [ReferralLevel.A_LEVEL, ReferralLevel.B_LEVEL]
