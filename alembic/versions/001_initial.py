"""Initial schema - users, tasks, update log, notifications and outbox

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='EMPLOYEE'),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_department', 'users', ['department'])

    op.create_table(
        'tasks',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('assigned_to_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assigned_by_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('department', sa.String(100), nullable=False),
        sa.Column('parent_task_id', sa.String(36), sa.ForeignKey('tasks.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('priority', sa.String(10), nullable=False, server_default='MEDIUM'),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('is_daily_plan', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('hod_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('hod_approved_at', sa.DateTime(), nullable=True),
        sa.Column('hod_approved_by_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('director_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('director_approved_at', sa.DateTime(), nullable=True),
        sa.Column('director_approved_by_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_tasks_assigned_to_id', 'tasks', ['assigned_to_id'])
    op.create_index('ix_tasks_assigned_by_id', 'tasks', ['assigned_by_id'])
    op.create_index('ix_tasks_department', 'tasks', ['department'])
    op.create_index('ix_tasks_parent_task_id', 'tasks', ['parent_task_id'])
    op.create_index('ix_tasks_status', 'tasks', ['status'])
    op.create_index('ix_tasks_created_at', 'tasks', ['created_at'])
    op.create_index('ix_tasks_daily_plan_start', 'tasks', ['is_daily_plan', 'start_date'])

    op.create_table(
        'task_updates',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('task_id', sa.String(36), sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('updated_by_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=True),
        sa.Column('previous_status', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_task_updates_task_id', 'task_updates', ['task_id'])

    op.create_table(
        'task_replies',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('update_id', sa.String(36), sa.ForeignKey('task_updates.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('replied_by_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_task_replies_update_id', 'task_replies', ['update_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('recipient_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(30), nullable=False, server_default='OTHER'),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('related_task_id', sa.String(36), nullable=True),
        sa.Column('outbox_id', sa.String(36), nullable=True, unique=True),
        sa.Column('is_read', sa.Boolean(), nullable=True, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_notifications_recipient_id', 'notifications', ['recipient_id'])
    op.create_index('ix_notifications_type', 'notifications', ['type'])
    op.create_index('ix_notifications_is_read', 'notifications', ['is_read'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])
    op.create_index(
        'ix_notifications_recipient_read_created', 'notifications',
        ['recipient_id', 'is_read', 'created_at'],
    )

    op.create_table(
        'notification_outbox',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('recipient_id', sa.String(36), nullable=False),
        sa.Column('notification_type', sa.String(30), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('related_task_id', sa.String(36), nullable=True),
        sa.Column('status', sa.String(20), nullable=True, server_default='PENDING'),
        sa.Column('attempts', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=True, server_default='5'),
        sa.Column('next_attempt_at', sa.DateTime(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('delivered_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_notification_outbox_status_next', 'notification_outbox', ['status', 'next_attempt_at'])


def downgrade() -> None:
    op.drop_table('notification_outbox')
    op.drop_table('notifications')
    op.drop_table('task_replies')
    op.drop_table('task_updates')
    op.drop_table('tasks')
    op.drop_table('users')
