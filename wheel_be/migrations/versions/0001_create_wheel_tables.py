"""create wheel tables

Revision ID: 0001_create_wheel_tables
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_create_wheel_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'wheel_campaign',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_wheel_campaign_status', 'wheel_campaign', ['status'])

    op.create_table(
        'wheel_slice',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('campaign_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('label', sa.String(length=100), nullable=False),
        sa.Column('prize_value', sa.String(length=50), nullable=True),
        sa.Column('cost', sa.BigInteger(), nullable=False, server_default='0'),  # minor units
        sa.Column('color', sa.String(length=7), nullable=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('max_wins', sa.Integer(), nullable=True),
        sa.Column('current_wins', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['campaign_id'], ['wheel_campaign.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('campaign_id', 'position', name='uq_wheel_slice_campaign_position'),
        sa.CheckConstraint('cost >= 0', name='ck_wheel_slice_cost_non_negative')
    )
    op.create_index('ix_wheel_slice_campaign_id', 'wheel_slice', ['campaign_id'])

    op.create_table(
        'wheel_budget',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('campaign_id', sa.Integer(), nullable=False),
        sa.Column('mode', sa.String(length=30), nullable=False, server_default='auto'),
        sa.Column('total_budget', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('budget_spent', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('budget_remaining', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('total_spins', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('average_payout_per_spin', sa.Float(), nullable=False, server_default='0'),
        sa.Column('target_spins', sa.Integer(), nullable=True),
        sa.Column('target_expense_per_day', sa.BigInteger(), nullable=True),
        sa.Column('target_expense_per_rolling_spins', sa.BigInteger(), nullable=True),
        sa.Column('rolling_spin_window_size', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['campaign_id'], ['wheel_campaign.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('campaign_id'),
        sa.CheckConstraint('budget_remaining >= 0', name='ck_wheel_budget_remaining_non_negative'),
        sa.CheckConstraint('budget_spent >= 0', name='ck_wheel_budget_spent_non_negative')
    )

    op.create_table(
        'wheel_fairness_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('campaign_id', sa.Integer(), nullable=False),
        sa.Column('spins_per_window', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('free_spin_cannot_chain', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(['campaign_id'], ['wheel_campaign.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('campaign_id')
    )

    op.create_table(
        'wheel_spin',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('campaign_id', sa.Integer(), nullable=False),
        sa.Column('slice_id', sa.Integer(), nullable=False),
        sa.Column('slice_position', sa.Integer(), nullable=False),
        sa.Column('slice_type', sa.String(length=20), nullable=False),
        sa.Column('reward_label', sa.String(length=100), nullable=False),
        sa.Column('prize_value', sa.String(length=50), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('cost', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('used_bonus_spin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['campaign_id'], ['wheel_campaign.id']),
        sa.ForeignKeyConstraint(['slice_id'], ['wheel_slice.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_wheel_spin_user_created', 'wheel_spin', ['user_id', 'created_at'])
    op.create_index('ix_wheel_spin_campaign_created', 'wheel_spin', ['campaign_id', 'created_at'])

    op.create_table(
        'wheel_bonus_spin',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('campaign_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['campaign_id'], ['wheel_campaign.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('campaign_id', 'user_id', name='uq_wheel_bonus_spin_campaign_user'),
        sa.CheckConstraint('credits >= 0', name='ck_wheel_bonus_spin_credits_non_negative')
    )


def downgrade():
    op.drop_table('wheel_bonus_spin')
    op.drop_index('ix_wheel_spin_campaign_created', table_name='wheel_spin')
    op.drop_index('ix_wheel_spin_user_created', table_name='wheel_spin')
    op.drop_table('wheel_spin')
    op.drop_table('wheel_fairness_rules')
    op.drop_table('wheel_budget')
    op.drop_index('ix_wheel_slice_campaign_id', table_name='wheel_slice')
    op.drop_table('wheel_slice')
    op.drop_index('ix_wheel_campaign_status', table_name='wheel_campaign')
    op.drop_table('wheel_campaign')
