"""Pooled returns initial schema

Revision ID: 4a7d2c9e1b03
Revises:
Create Date: 2026-10-01 09:00
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '4a7d2c9e1b03'
down_revision = None
branch_labels = None
depends_on = None


transaction_kind = sa.Enum('DEPOSIT', 'WITHDRAWAL', name='transactionkindenum')
transaction_status = sa.Enum('ACTIVE', 'CANCELLED', name='transactionstatusenum')
platform_status = sa.Enum('ACTIVE', 'CLOSED', name='platformstatusenum')


def upgrade():
    op.create_table('client',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table('investment_transaction',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('kind', transaction_kind, nullable=False),
        sa.Column('transaction_date', sa.Date(), nullable=False),
        sa.Column('status', transaction_status, nullable=False),
        sa.Column('is_edited', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['client.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_investment_transaction_client_id', 'investment_transaction', ['client_id'])
    op.create_index('ix_investment_transaction_date', 'investment_transaction', ['transaction_date'])
    op.create_index(
        'ix_investment_transaction_client_date',
        'investment_transaction',
        ['client_id', 'transaction_date'],
    )

    op.create_table('transaction_edit',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('previous_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('new_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('edited_by', sa.String(length=100), nullable=True),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('edited_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['transaction_id'], ['investment_transaction.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transaction_edit_transaction_id', 'transaction_edit', ['transaction_id'])

    op.create_table('platform_allocation',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('platform_name', sa.String(length=100), nullable=False),
        sa.Column('principal_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('allocation_date', sa.Date(), nullable=False),
        sa.Column('return_percentage', sa.Numeric(precision=10, scale=4), nullable=False),
        sa.Column('current_value', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('status', platform_status, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_platform_allocation_platform_name', 'platform_allocation', ['platform_name'])
    op.create_index('ix_platform_allocation_allocation_date', 'platform_allocation', ['allocation_date'])

    op.create_table('weekly_platform_snapshot',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('platform_id', sa.Integer(), nullable=False),
        sa.Column('week_start_date', sa.Date(), nullable=False),
        sa.Column('week_end_date', sa.Date(), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('opening_value', sa.Numeric(precision=18, scale=6), nullable=False),
        sa.Column('closing_value', sa.Numeric(precision=18, scale=6), nullable=False),
        sa.Column('weekly_return_pct', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('profit_amount', sa.Numeric(precision=18, scale=6), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('entered_by', sa.String(length=100), nullable=True),
        sa.Column('is_interpolated', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['platform_id'], ['platform_allocation.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('platform_id', 'week_start_date', name='uq_weekly_platform_week')
    )
    op.create_index('ix_weekly_platform_snapshot_platform_id', 'weekly_platform_snapshot', ['platform_id'])
    op.create_index('ix_weekly_platform_end', 'weekly_platform_snapshot', ['platform_id', 'week_end_date'])

    op.create_table('monthly_return',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('month', sa.Date(), nullable=False),
        sa.Column('total_corpus', sa.Numeric(precision=18, scale=6), nullable=False),
        sa.Column('total_platform_value', sa.Numeric(precision=18, scale=6), nullable=False),
        sa.Column('monthly_return_percentage', sa.Numeric(precision=20, scale=10), nullable=False),
        sa.Column('client_returns', sa.JSON(), nullable=False),
        sa.Column('platform_returns', sa.JSON(), nullable=False),
        sa.Column('calculated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_monthly_return_month', 'monthly_return', ['month'], unique=True)


def downgrade():
    op.drop_index('ix_monthly_return_month', table_name='monthly_return')
    op.drop_table('monthly_return')
    op.drop_index('ix_weekly_platform_end', table_name='weekly_platform_snapshot')
    op.drop_index('ix_weekly_platform_snapshot_platform_id', table_name='weekly_platform_snapshot')
    op.drop_table('weekly_platform_snapshot')
    op.drop_index('ix_platform_allocation_allocation_date', table_name='platform_allocation')
    op.drop_index('ix_platform_allocation_platform_name', table_name='platform_allocation')
    op.drop_table('platform_allocation')
    op.drop_index('ix_transaction_edit_transaction_id', table_name='transaction_edit')
    op.drop_table('transaction_edit')
    op.drop_index('ix_investment_transaction_client_date', table_name='investment_transaction')
    op.drop_index('ix_investment_transaction_date', table_name='investment_transaction')
    op.drop_index('ix_investment_transaction_client_id', table_name='investment_transaction')
    op.drop_table('investment_transaction')
    op.drop_table('client')

    bind = op.get_bind()
    platform_status.drop(bind, checkfirst=True)
    transaction_status.drop(bind, checkfirst=True)
    transaction_kind.drop(bind, checkfirst=True)
