"""Create group_members table.

Revision ID: 002
Revises: 001
Create Date: 2026-09-28

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create group_members table."""
    op.create_table(
        'group_members',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('support_groups.id'), nullable=False, index=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('can_assign', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_escalate', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE', index=True),
        sa.Column('joined_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # One membership per user and group
    op.create_index('idx_group_members_user_group', 'group_members', ['user_id', 'group_id'], unique=True)


def downgrade() -> None:
    """Drop group_members table."""
    op.drop_index('idx_group_members_user_group')
    op.drop_table('group_members')
