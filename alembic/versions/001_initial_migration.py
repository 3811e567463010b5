"""Initial migration - users and award log

Revision ID: 001
Revises: 
Create Date: 2026-10-19 00:05:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table
    op.create_table('users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=50), nullable=True, comment='Display name'),
        sa.Column('wallet_address', sa.String(length=42), nullable=True, comment='Linked EVM wallet address'),
        sa.Column('last_login', sa.DateTime(), nullable=True, comment='Last qualifying login (UTC)'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_users_last_login', 'users', ['last_login'])
    op.create_index('idx_users_wallet_address', 'users', ['wallet_address'])

    # Create award_logs table
    op.create_table('award_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('address', sa.String(length=42), nullable=False, comment='Lower-cased subject address'),
        sa.Column('action_kind', sa.String(length=50), nullable=False, comment='ActionKind value'),
        sa.Column('period_key', sa.String(length=10), nullable=False, comment='UTC day key YYYY-MM-DD'),
        sa.Column('action_id', sa.String(length=66), nullable=False, comment='keccak256 idempotency token as 0x hex'),
        sa.Column('amount', sa.BigInteger(), nullable=False, comment='Reward amount'),
        sa.Column('tx_hash', sa.String(length=66), nullable=True, comment='Ledger transaction hash when submitted on-chain'),
        sa.Column('confirmed_on_ledger', sa.Boolean(), nullable=False, comment='Whether the ledger holds this award'),
        sa.Column('outcome', sa.String(length=30), nullable=False, comment='AwardStatus value'),
        sa.Column('error_message', sa.Text(), nullable=True, comment='Raw error when the attempt failed'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_award_logs_address_period', 'award_logs', ['address', 'period_key'])
    op.create_index('idx_award_logs_kind_period', 'award_logs', ['action_kind', 'period_key'])
    op.create_index('idx_award_logs_action_id', 'award_logs', ['action_id'])
    op.create_index(
        'uq_award_logs_confirmed',
        'award_logs',
        ['address', 'action_kind', 'period_key'],
        unique=True,
        postgresql_where=sa.text('confirmed_on_ledger IS TRUE'),
        sqlite_where=sa.text('confirmed_on_ledger = 1')
    )


def downgrade() -> None:
    # Drop indexes
    op.drop_index('uq_award_logs_confirmed', table_name='award_logs')
    op.drop_index('idx_award_logs_action_id', table_name='award_logs')
    op.drop_index('idx_award_logs_kind_period', table_name='award_logs')
    op.drop_index('idx_award_logs_address_period', table_name='award_logs')

    op.drop_index('idx_users_wallet_address', table_name='users')
    op.drop_index('idx_users_last_login', table_name='users')

    # Drop tables
    op.drop_table('award_logs')
    op.drop_table('users')
