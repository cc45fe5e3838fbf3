"""integration event outbox and dead-letter tables

Revision ID: 3b8e61c4f0a2
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00

"""
from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3b8e61c4f0a2'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        'integration_event_outbox',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_name', sa.String(length=100), nullable=True, comment='Envelope event_name'),
        sa.Column('routing_key', sa.String(length=255), nullable=True, comment='Routing key used on replay'),
        sa.Column('operation', sa.String(length=32), nullable=True, comment='Outbox operation'),
        sa.Column('payload', sa.Text(), nullable=False, comment='JSON-serialized outbox record'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_integration_event_outbox')),
    )
    op.create_index(
        op.f('ix_integration_event_outbox_event_name'),
        'integration_event_outbox',
        ['event_name'],
        unique=False,
    )

    op.create_table(
        'integration_event_dead_letter',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('original_id', sa.Integer(), nullable=False, comment='Id the record had in the outbox'),
        sa.Column('event_name', sa.String(length=100), nullable=True),
        sa.Column('routing_key', sa.String(length=255), nullable=True),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False, comment='Why the record could not be replayed'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='When the record entered the outbox'),
        sa.Column('dead_lettered_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_integration_event_dead_letter')),
    )
    op.create_index(
        op.f('ix_integration_event_dead_letter_original_id'),
        'integration_event_dead_letter',
        ['original_id'],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index(
        op.f('ix_integration_event_dead_letter_original_id'),
        table_name='integration_event_dead_letter',
    )
    op.drop_table('integration_event_dead_letter')
    op.drop_index(
        op.f('ix_integration_event_outbox_event_name'),
        table_name='integration_event_outbox',
    )
    op.drop_table('integration_event_outbox')
