"""Baseline migration - identity, sessions, departments and tickets

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-17

Creates every helpdesk table. Types are portable (PostgreSQL in production,
SQLite for local runs).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TS = sa.DateTime(timezone=True)


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, create_constraint=True, length=30)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
    ]


def _soft_delete() -> list[sa.Column]:
    return [
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('deleted_at', TS, nullable=True),
    ]


def upgrade() -> None:
    """Create helpdesk tables."""

    # ==========================================================================
    # Departments
    # ==========================================================================
    op.create_table(
        'departments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('color', sa.String(7), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('sla_hours', sa.Float(), nullable=True),
        *_timestamps(),
        *_soft_delete(),
    )

    # ==========================================================================
    # Users (single table, discriminated by role)
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('last_login_at', TS, nullable=True),
        # Customer
        sa.Column('organization_department', sa.String(100), nullable=True),
        # Agent
        sa.Column('specialization', sa.String(100), nullable=True),
        sa.Column('level', sa.Integer(), nullable=True),
        sa.Column('is_available', sa.Boolean(), nullable=True),
        sa.Column(
            'department_id',
            sa.Uuid(),
            sa.ForeignKey('departments.id', ondelete='SET NULL'),
            nullable=True,
        ),
        # Admin
        sa.Column('can_manage_users', sa.Boolean(), nullable=True),
        sa.Column('can_manage_system', sa.Boolean(), nullable=True),
        sa.Column('can_view_reports', sa.Boolean(), nullable=True),
        sa.Column('can_manage_departments', sa.Boolean(), nullable=True),
        *_timestamps(),
        *_soft_delete(),
        sa.CheckConstraint('level IS NULL OR level >= 1', name='ck_users_agent_level'),
    )
    op.create_index('idx_users_role', 'users', ['role'])
    op.create_index('idx_users_department', 'users', ['department_id'])

    # ==========================================================================
    # Refresh tokens
    # ==========================================================================
    op.create_table(
        'refresh_tokens',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('family_id', sa.Uuid(), nullable=False),
        sa.Column(
            'user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('token_hash', sa.String(64), nullable=False, unique=True),
        sa.Column('issued_at', TS, nullable=False),
        sa.Column('expires_at', TS, nullable=False),
        sa.Column('rotated_at', TS, nullable=True),
        sa.Column(
            'replaced_by_id',
            sa.Uuid(),
            sa.ForeignKey('refresh_tokens.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('revoked_at', TS, nullable=True),
        sa.Column('revoked_reason', sa.String(50), nullable=True),
    )
    op.create_index('idx_refresh_tokens_family', 'refresh_tokens', ['family_id'])
    op.create_index('idx_refresh_tokens_user', 'refresh_tokens', ['user_id'])
    op.create_index('idx_refresh_tokens_expires', 'refresh_tokens', ['expires_at'])

    # ==========================================================================
    # Tickets
    # ==========================================================================
    op.create_table(
        'ticket_counters',
        sa.Column('counter_type', sa.String(50), primary_key=True),
        sa.Column('current_value', sa.BigInteger(), server_default=sa.text('0'), nullable=False),
        sa.Column('updated_at', TS, nullable=True),
    )

    op.create_table(
        'tickets',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('number', sa.String(20), nullable=False, unique=True),
        sa.Column('subject', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('priority', _enum('ticket_priority', 'low', 'normal', 'high', 'urgent'), nullable=False),
        sa.Column(
            'status',
            _enum(
                'ticket_status',
                'open',
                'in_progress',
                'waiting_customer',
                'waiting_agent',
                'resolved',
                'closed',
                'cancelled',
            ),
            nullable=False,
        ),
        sa.Column(
            'department_id',
            sa.Uuid(),
            sa.ForeignKey('departments.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column(
            'customer_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False
        ),
        sa.Column(
            'assigned_agent_id',
            sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('sla_hours', sa.Float(), nullable=False),
        sa.Column('first_response_at', TS, nullable=True),
        sa.Column('resolved_at', TS, nullable=True),
        sa.Column('closed_at', TS, nullable=True),
        sa.Column('last_message_at', TS, nullable=True),
        sa.Column('customer_rating', sa.Integer(), nullable=True),
        sa.Column('customer_feedback', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        *_soft_delete(),
        sa.CheckConstraint(
            'customer_rating IS NULL OR (customer_rating >= 1 AND customer_rating <= 5)',
            name='ck_tickets_rating_range',
        ),
    )
    op.create_index('idx_tickets_status', 'tickets', ['status'])
    op.create_index('idx_tickets_customer', 'tickets', ['customer_id'])
    op.create_index('idx_tickets_assignee', 'tickets', ['assigned_agent_id'])
    op.create_index('idx_tickets_department', 'tickets', ['department_id'])

    op.create_table(
        'ticket_messages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'ticket_id', sa.Uuid(), sa.ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column(
            'author_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False
        ),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column(
            'type', _enum('message_type', 'customer', 'agent', 'internal_note', 'system'), nullable=False
        ),
        sa.Column('is_internal', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('edited_at', TS, nullable=True),
        sa.Column('original_content', sa.Text(), nullable=True),
        *_timestamps(),
        *_soft_delete(),
    )
    op.create_index('idx_ticket_messages_ticket', 'ticket_messages', ['ticket_id', 'created_at'])

    op.create_table(
        'ticket_events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'ticket_id', sa.Uuid(), sa.ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column(
            'actor_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True
        ),
        sa.Column(
            'event_type',
            _enum(
                'ticket_event_type',
                'created',
                'updated',
                'status_changed',
                'assigned',
                'message_posted',
                'rated',
                'deleted',
            ),
            nullable=False,
        ),
        sa.Column('event_data', sa.JSON(), nullable=False),
        sa.Column('created_at', TS, nullable=False),
    )
    op.create_index('idx_ticket_events_ticket', 'ticket_events', ['ticket_id', 'created_at'])


def downgrade() -> None:
    """Drop helpdesk tables."""
    op.drop_table('ticket_events')
    op.drop_table('ticket_messages')
    op.drop_table('tickets')
    op.drop_table('ticket_counters')
    op.drop_table('refresh_tokens')
    op.drop_table('users')
    op.drop_table('departments')
