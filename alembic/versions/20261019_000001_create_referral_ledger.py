"""Create referral ledger tables

Revision ID: 20261019_000001
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.DECIMAL(18, 8)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('referral_code', sa.String(20), nullable=True),
        sa.Column('referred_by', sa.Integer(), nullable=True),
        sa.Column('wallet_balance', MONEY, nullable=False, server_default='0'),
        sa.Column('commission_balance', MONEY, nullable=False, server_default='0'),
        sa.Column('total_earnings', MONEY, nullable=False, server_default='0'),
        sa.Column('position_tier', sa.String(20), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column(
            'is_intern', sa.Boolean(), nullable=False, server_default='false',
            comment='Interns do not generate task commissions for their upline',
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['referred_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('phone'),
        sa.UniqueConstraint('email'),
        sa.CheckConstraint('wallet_balance >= 0', name='check_user_wallet_balance_non_negative'),
        sa.CheckConstraint('commission_balance >= 0', name='check_user_commission_balance_non_negative'),
        sa.CheckConstraint('total_earnings >= 0', name='check_user_total_earnings_non_negative'),
        sa.CheckConstraint('referred_by IS NULL OR referred_by <> id', name='check_user_not_self_referred'),
    )
    op.create_index('ix_users_referral_code', 'users', ['referral_code'], unique=True)
    op.create_index('ix_users_referred_by', 'users', ['referred_by'])

    op.create_table(
        'referral_hierarchy',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('referrer_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.String(10), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'level', name='uq_referral_hierarchy_user_level'),
    )
    op.create_index('ix_referral_hierarchy_user_id', 'referral_hierarchy', ['user_id'])
    op.create_index('idx_referral_hierarchy_referrer_level', 'referral_hierarchy', ['referrer_id', 'level'])

    op.create_table(
        'wallet_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(40), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('balance_after', MONEY, nullable=False),
        sa.Column('reference_id', sa.String(120), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('metadata_json', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='COMPLETED'),
        sa.Column('referred_user_id', sa.Integer(), nullable=True),
        sa.Column('commission_level', sa.String(10), nullable=True),
        sa.Column('commission_schedule', sa.String(10), nullable=True),
        sa.Column('event_key', sa.String(64), nullable=True),
        sa.Column('source_event_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['referred_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'referred_user_id', 'commission_level', 'commission_schedule', 'event_key',
            name='uq_wallet_transactions_commission_key',
        ),
    )
    op.create_index('ix_wallet_transactions_user_id', 'wallet_transactions', ['user_id'])
    op.create_index('ix_wallet_transactions_created_at', 'wallet_transactions', ['created_at'])
    op.create_index('idx_wallet_transactions_user_type', 'wallet_transactions', ['user_id', 'type'])
    op.create_index(
        'idx_wallet_transactions_referred_schedule',
        'wallet_transactions',
        ['referred_user_id', 'commission_schedule'],
    )

    op.create_table(
        'user_plans',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('plan_name', sa.String(100), nullable=False),
        sa.Column('position_tier', sa.String(20), nullable=False),
        sa.Column('amount_paid', MONEY, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_plans_user_id', 'user_plans', ['user_id'])
    op.create_index('idx_user_plans_status_created', 'user_plans', ['status', 'created_at'])

    op.create_table(
        'user_video_tasks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('video_id', sa.Integer(), nullable=True),
        sa.Column('reward_earned', MONEY, nullable=False, server_default='0'),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('watched_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_video_tasks_user_id', 'user_video_tasks', ['user_id'])
    op.create_index('idx_user_video_tasks_verified_watched', 'user_video_tasks', ['is_verified', 'watched_at'])

    op.create_table(
        'task_management_bonuses',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('subordinate_id', sa.Integer(), nullable=False),
        sa.Column('subordinate_level', sa.String(10), nullable=False),
        sa.Column('bonus_amount', MONEY, nullable=False),
        sa.Column('task_income', MONEY, nullable=False),
        sa.Column('task_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('source_task_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['subordinate_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'subordinate_id', 'subordinate_level', 'source_task_id',
            name='uq_task_management_bonuses_task_level',
        ),
    )
    op.create_index('ix_task_management_bonuses_user_id', 'task_management_bonuses', ['user_id'])
    op.create_index('ix_task_management_bonuses_subordinate_id', 'task_management_bonuses', ['subordinate_id'])
    op.create_index('idx_task_management_bonuses_user_date', 'task_management_bonuses', ['user_id', 'task_date'])


def downgrade() -> None:
    op.drop_table('task_management_bonuses')
    op.drop_table('user_video_tasks')
    op.drop_table('user_plans')
    op.drop_table('wallet_transactions')
    op.drop_table('referral_hierarchy')
    op.drop_table('users')
