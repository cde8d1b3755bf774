"""create notification tables

Revision ID: 3f9c1a7e2b10
Revises:
Create Date: 2026-10-18 12:00:00.000000+00:00

"""
from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f9c1a7e2b10'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        'notification_contents',
        sa.Column(
            'channel',
            sa.String(length=50),
            nullable=False,
            comment='Channel the content was created for (sms, email, push)',
        ),
        sa.Column('text', sa.Text(), nullable=False, comment='Free-text body'),
        sa.Column(
            'properties',
            postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), 'sqlite'),
            nullable=False,
            comment='Channel-agnostic structured properties (string keys, JSON values)',
        ),
        sa.Column(
            'id',
            sa.Uuid(),
            nullable=False,
            comment='UUID v7 primary key (time-sortable)',
        ),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('(CURRENT_TIMESTAMP)'),
            nullable=False,
            comment='Timestamp of record creation',
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('(CURRENT_TIMESTAMP)'),
            nullable=False,
            comment='Timestamp of last update',
        ),
        sa.Column(
            'tenant_id',
            sa.String(length=255),
            nullable=True,
            comment='Tenant ID for multi-tenant isolation',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_notification_contents')),
    )
    op.create_index(
        op.f('ix_notification_contents_tenant_id'),
        'notification_contents',
        ['tenant_id'],
        unique=False,
    )

    op.create_table(
        'notification_deliveries',
        sa.Column(
            'content_id',
            sa.Uuid(),
            nullable=False,
            comment='Content this delivery sends (lookup only)',
        ),
        sa.Column(
            'recipient_id',
            sa.String(length=255),
            nullable=False,
            comment='Directory identifier of the recipient',
        ),
        sa.Column(
            'channel',
            sa.String(length=50),
            nullable=False,
            comment='Channel used to resolve and send: sms, email, push',
        ),
        sa.Column(
            'state',
            sa.String(length=20),
            nullable=False,
            comment='Delivery state: pending, sending, succeeded, failed',
        ),
        sa.Column(
            'success',
            sa.Boolean(),
            nullable=False,
            comment='True iff the delivery succeeded',
        ),
        sa.Column(
            'completion_time',
            sa.DateTime(timezone=True),
            nullable=True,
            comment='When the delivery reached a terminal state',
        ),
        sa.Column(
            'failure_reason',
            sa.String(length=100),
            nullable=True,
            comment='Classified failure reason (ReceiverInfoNotFound or channel-reported)',
        ),
        sa.Column(
            'error_message',
            sa.Text(),
            nullable=True,
            comment='Diagnostic message for failed deliveries (truncated)',
        ),
        sa.Column(
            'id',
            sa.Uuid(),
            nullable=False,
            comment='UUID v7 primary key (time-sortable)',
        ),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('(CURRENT_TIMESTAMP)'),
            nullable=False,
            comment='Timestamp of record creation',
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('(CURRENT_TIMESTAMP)'),
            nullable=False,
            comment='Timestamp of last update',
        ),
        sa.Column(
            'tenant_id',
            sa.String(length=255),
            nullable=True,
            comment='Tenant ID for multi-tenant isolation',
        ),
        sa.CheckConstraint(
            "state IN ('pending', 'sending', 'succeeded', 'failed')",
            name=op.f('ck_notification_deliveries_state_valid'),
        ),
        sa.ForeignKeyConstraint(
            ['content_id'],
            ['notification_contents.id'],
            name=op.f('fk_notification_deliveries_content_id_notification_contents'),
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_notification_deliveries')),
    )
    op.create_index(
        op.f('ix_notification_deliveries_content_id'),
        'notification_deliveries',
        ['content_id'],
        unique=False,
    )
    op.create_index(
        op.f('ix_notification_deliveries_tenant_id'),
        'notification_deliveries',
        ['tenant_id'],
        unique=False,
    )

    # Outcome counts per tenant
    op.create_index(
        'ix_notification_deliveries_tenant_state',
        'notification_deliveries',
        ['tenant_id', 'state'],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index('ix_notification_deliveries_tenant_state', table_name='notification_deliveries')
    op.drop_index(op.f('ix_notification_deliveries_tenant_id'), table_name='notification_deliveries')
    op.drop_index(op.f('ix_notification_deliveries_content_id'), table_name='notification_deliveries')
    op.drop_table('notification_deliveries')
    op.drop_index(op.f('ix_notification_contents_tenant_id'), table_name='notification_contents')
    op.drop_table('notification_contents')
