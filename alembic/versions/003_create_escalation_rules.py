"""Create escalation_rules table.

Revision ID: 003
Revises: 002
Create Date: 2026-09-28

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '003'
down_revision = '002'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create escalation_rules table."""
    op.create_table(
        'escalation_rules',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('source_group_id', sa.Integer(), sa.ForeignKey('support_groups.id'), nullable=False, index=True),
        sa.Column('target_group_id', sa.Integer(), sa.ForeignKey('support_groups.id'), nullable=False),
        sa.Column('trigger_type', sa.String(20), nullable=False),
        sa.Column('delay_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reopen_threshold', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_index(
        'idx_escalation_rules_source_trigger',
        'escalation_rules',
        ['source_group_id', 'trigger_type'],
    )


def downgrade() -> None:
    """Drop escalation_rules table."""
    op.drop_index('idx_escalation_rules_source_trigger')
    op.drop_table('escalation_rules')
