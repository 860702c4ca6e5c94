"""create_cuentas_schema

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = 'a1c2e3f4b5d6'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    # Email lookups are case-insensitive
    op.create_index('ix_users_email_lower', 'users', [sa.text('lower(email)')], unique=True)

    op.create_table(
        'groups',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_groups_created_by', 'groups', ['created_by'])

    op.create_table(
        'group_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', sa.String(length=16), server_default='member', nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('invited_by', sa.Integer(), nullable=True),
        sa.Column('invitation_token', sa.String(length=64), nullable=True),
        sa.Column('invitation_expires_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('joined_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('group_id', 'user_id', name='uq_group_members_group_user'),
        sa.UniqueConstraint('invitation_token'),
    )
    op.create_index('ix_group_members_group_id', 'group_members', ['group_id'])
    op.create_index('ix_group_members_user_status', 'group_members', ['user_id', 'status'])

    op.create_table(
        'recurring_obligations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('owner_user_id', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=200), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('direction', sa.String(length=16), nullable=False),
        sa.Column('category', sa.String(length=64), server_default='uncategorized', nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('start_year', sa.SmallInteger(), nullable=False),
        sa.Column('start_month', sa.SmallInteger(), nullable=False),
        sa.Column('end_year', sa.SmallInteger(), nullable=False),
        sa.Column('end_month', sa.SmallInteger(), nullable=False),
        sa.Column('payment_day', sa.SmallInteger(), nullable=True),
        sa.Column('is_goal', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='ck_recurring_obligations_amount_positive'),
        sa.CheckConstraint(
            'start_year * 12 + start_month <= end_year * 12 + end_month',
            name='ck_recurring_obligations_range',
        ),
    )
    op.create_index('ix_recurring_obligations_group_id', 'recurring_obligations', ['group_id'])

    op.create_table(
        'one_off_obligations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('owner_user_id', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=200), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('direction', sa.String(length=16), nullable=False),
        sa.Column('category', sa.String(length=64), server_default='uncategorized', nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('year', sa.SmallInteger(), nullable=False),
        sa.Column('month', sa.SmallInteger(), nullable=False),
        sa.Column('deadline', sa.Date(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='ck_one_off_obligations_amount_positive'),
    )
    op.create_index('ix_one_off_obligations_group_id', 'one_off_obligations', ['group_id'])
    op.create_index('ix_one_off_obligations_group_period', 'one_off_obligations', ['group_id', 'year', 'month'])

    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('recorded_by', sa.Integer(), nullable=False),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('source_id', sa.Integer(), nullable=False),
        sa.Column('period_year', sa.SmallInteger(), nullable=False),
        sa.Column('period_month', sa.SmallInteger(), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('paid_at', sa.Date(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='ck_ledger_entries_amount_positive'),
    )
    op.create_index('ix_ledger_entries_group_id', 'ledger_entries', ['group_id'])
    op.create_index(
        'ix_ledger_entries_instance', 'ledger_entries',
        ['source', 'source_id', 'period_year', 'period_month'],
    )

    op.create_table(
        'group_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('is_default', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('group_id', 'name', name='uq_group_categories_group_name'),
    )
    op.create_index('ix_group_categories_group_id', 'group_categories', ['group_id'])

    op.create_table(
        'scope_versions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.Integer(), server_default='0', nullable=False),
        sa.Column('version', sa.BigInteger(), server_default='0', nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'group_id', name='uq_scope_versions_user_group'),
    )

    op.create_table(
        'group_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=128), nullable=False),
        sa.Column('payload_json', JSONB, nullable=False),
        sa.Column('occurred_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_group_events_group_id', 'group_events', ['group_id'])
    op.create_index('ix_group_events_event_type', 'group_events', ['event_type'])
    op.create_index('ix_group_events_occurred_at', 'group_events', ['occurred_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('group_events')
    op.drop_table('scope_versions')
    op.drop_table('ledger_entries')
    op.drop_table('group_categories')
    op.drop_table('one_off_obligations')
    op.drop_table('recurring_obligations')
    op.drop_table('group_members')
    op.drop_table('groups')
    op.drop_index('ix_users_email_lower', table_name='users')
    op.drop_table('users')
