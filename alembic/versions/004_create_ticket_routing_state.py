"""Create ticket_routing_state table.

Revision ID: 004
Revises: 003
Create Date: 2026-09-29

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '004'
down_revision = '003'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create ticket_routing_state table."""
    op.create_table(
        'ticket_routing_state',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('ticket_id', sa.String(64), nullable=False, unique=True, index=True),
        sa.Column('current_group_id', sa.Integer(), sa.ForeignKey('support_groups.id'), nullable=False, index=True),
        sa.Column('assigned_member_id', sa.Integer(), sa.ForeignKey('group_members.id'), nullable=True, index=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='UNASSIGNED', index=True),
        sa.Column('escalation_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_escalated_at', sa.DateTime(), nullable=True),
        sa.Column('claimed_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('sync_pending', sa.Boolean(), nullable=False, server_default=sa.false(), index=True),
        sa.Column('sync_error', sa.Text(), nullable=True),
        sa.Column('pending_notifications', sa.JSON(), nullable=True),
        sa.CheckConstraint('escalation_count >= 0', name='ck_routing_state_escalation_count'),
        sa.CheckConstraint(
            "status <> 'UNASSIGNED' OR assigned_member_id IS NULL",
            name='ck_routing_state_unassigned_member',
        ),
        sa.CheckConstraint(
            "status <> 'ASSIGNED' OR assigned_member_id IS NOT NULL",
            name='ck_routing_state_assigned_member',
        ),
    )


def downgrade() -> None:
    """Drop ticket_routing_state table."""
    op.drop_table('ticket_routing_state')
