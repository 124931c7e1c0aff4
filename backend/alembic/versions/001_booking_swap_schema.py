"""Booking swap schema

Revision ID: 001_booking_swap_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision = '001_booking_swap_schema'
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(JSONB(), "postgresql")
MONEY = sa.Numeric(12, 2, asdecimal=False)
OPEN_SWAP = sa.text("status NOT IN ('completed', 'cancelled', 'expired')")
ACTIVE = sa.text("status = 'active'")


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'bookings',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('city', sa.String(), nullable=False),
        sa.Column('country', sa.String(), nullable=False),
        sa.Column('check_in_date', sa.DateTime(), nullable=False),
        sa.Column('check_out_date', sa.DateTime(), nullable=False),
        sa.Column('original_price', MONEY, nullable=False),
        sa.Column('swap_value', MONEY, nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='available'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bookings_owner_id', 'bookings', ['owner_id'])
    op.create_index('ix_bookings_check_in_date', 'bookings', ['check_in_date'])

    op.create_table(
        'swaps',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('source_booking_id', sa.String(), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('acceptance_strategy', JSON_TYPE, nullable=False),
        sa.Column('accepts_booking_exchange', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('accepts_cash_payment', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('minimum_cash_amount', MONEY, nullable=True),
        sa.Column('preferred_cash_amount', MONEY, nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['source_booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'uq_swaps_owner_booking_open',
        'swaps',
        ['owner_id', 'source_booking_id'],
        unique=True,
        postgresql_where=OPEN_SWAP,
        sqlite_where=OPEN_SWAP,
    )
    op.create_index('ix_swaps_owner_id', 'swaps', ['owner_id'])
    op.create_index('ix_swaps_status', 'swaps', ['status'])

    op.create_table(
        'swap_auctions',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('swap_id', sa.String(), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('auto_select_after_hours', sa.Integer(), nullable=True),
        sa.Column('winning_proposal_id', sa.String(), nullable=True),
        sa.Column('auto_selected', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['swap_id'], ['swaps.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('swap_id'),
    )
    op.create_index('ix_swap_auctions_status_end_date', 'swap_auctions', ['status', 'end_date'])

    op.create_table(
        'proposals',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('target_swap_id', sa.String(), nullable=False),
        sa.Column('source_swap_id', sa.String(), nullable=False),
        sa.Column('proposer_id', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('payload', JSON_TYPE, nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('conditions', JSON_TYPE, nullable=True),
        sa.Column('escrow_id', sa.String(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['target_swap_id'], ['swaps.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['source_swap_id'], ['swaps.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['proposer_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_proposals_target_swap_status', 'proposals', ['target_swap_id', 'status'])
    op.create_index('ix_proposals_source_swap_id', 'proposals', ['source_swap_id'])
    op.create_index('ix_proposals_proposer_id', 'proposals', ['proposer_id'])

    op.create_table(
        'swap_targets',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('source_swap_id', sa.String(), nullable=False),
        sa.Column('target_swap_id', sa.String(), nullable=False),
        sa.Column('proposal_id', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('source_swap_id <> target_swap_id', name='ck_swap_targets_not_self'),
        sa.ForeignKeyConstraint(['source_swap_id'], ['swaps.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['target_swap_id'], ['swaps.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['proposal_id'], ['proposals.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'uq_swap_targets_active_source',
        'swap_targets',
        ['source_swap_id'],
        unique=True,
        postgresql_where=ACTIVE,
        sqlite_where=ACTIVE,
    )
    op.create_index('ix_swap_targets_target_status', 'swap_targets', ['target_swap_id', 'status'])
    op.create_index('ix_swap_targets_proposal_id', 'swap_targets', ['proposal_id'])

    op.create_table(
        'targeting_history',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('source_swap_id', sa.String(), nullable=False),
        sa.Column('target_swap_id', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('actor_id', sa.String(), nullable=True),
        sa.Column('metadata', JSON_TYPE, nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['source_swap_id'], ['swaps.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['target_swap_id'], ['swaps.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_targeting_history_source', 'targeting_history', ['source_swap_id', 'created_at'])
    op.create_index('ix_targeting_history_target', 'targeting_history', ['target_swap_id', 'created_at'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', JSON_TYPE, nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_notifications_user_id', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_targeting_history_target', table_name='targeting_history')
    op.drop_index('ix_targeting_history_source', table_name='targeting_history')
    op.drop_table('targeting_history')
    op.drop_index('ix_swap_targets_proposal_id', table_name='swap_targets')
    op.drop_index('ix_swap_targets_target_status', table_name='swap_targets')
    op.drop_index('uq_swap_targets_active_source', table_name='swap_targets')
    op.drop_table('swap_targets')
    op.drop_index('ix_proposals_proposer_id', table_name='proposals')
    op.drop_index('ix_proposals_source_swap_id', table_name='proposals')
    op.drop_index('ix_proposals_target_swap_status', table_name='proposals')
    op.drop_table('proposals')
    op.drop_index('ix_swap_auctions_status_end_date', table_name='swap_auctions')
    op.drop_table('swap_auctions')
    op.drop_index('ix_swaps_status', table_name='swaps')
    op.drop_index('ix_swaps_owner_id', table_name='swaps')
    op.drop_index('uq_swaps_owner_booking_open', table_name='swaps')
    op.drop_table('swaps')
    op.drop_index('ix_bookings_check_in_date', table_name='bookings')
    op.drop_index('ix_bookings_owner_id', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
