"""Create workflow_logs table.

Revision ID: 005
Revises: 004
Create Date: 2026-09-29

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '005'
down_revision = '004'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create workflow_logs table (append-only)."""
    op.create_table(
        'workflow_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('ticket_id', sa.String(64), nullable=False, index=True),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('from_group_id', sa.Integer(), nullable=True),
        sa.Column('to_group_id', sa.Integer(), nullable=True),
        sa.Column('from_member_id', sa.Integer(), nullable=True),
        sa.Column('to_member_id', sa.Integer(), nullable=True),
        sa.Column('performed_by', sa.Integer(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True),
    )

    op.create_index('idx_workflow_logs_ticket_created', 'workflow_logs', ['ticket_id', 'created_at'])


def downgrade() -> None:
    """Drop workflow_logs table."""
    op.drop_index('idx_workflow_logs_ticket_created')
    op.drop_table('workflow_logs')
