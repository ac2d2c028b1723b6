"""Add version column to ticket_routing_state.

Revision ID: 006
Revises: 005
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '006'
down_revision = '005'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Add version column to ticket_routing_state."""
    op.add_column(
        'ticket_routing_state',
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
    )


def downgrade() -> None:
    """Drop version column from ticket_routing_state."""
    op.drop_column('ticket_routing_state', 'version')
