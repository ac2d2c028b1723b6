"""Create support_groups table.

Revision ID: 001
Revises:
Create Date: 2026-09-28

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create support_groups table."""
    op.create_table(
        'support_groups',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('building', sa.String(100), nullable=False, index=True),
        sa.Column('floor', sa.Integer(), nullable=False),
        sa.Column('parent_group_id', sa.Integer(), sa.ForeignKey('support_groups.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_index('idx_support_groups_building_floor', 'support_groups', ['building', 'floor'])


def downgrade() -> None:
    """Drop support_groups table."""
    op.drop_index('idx_support_groups_building_floor')
    op.drop_table('support_groups')
