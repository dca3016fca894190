"""initial_schema

Revision ID: 0f3a9c1d2b7e
Revises:
Create Date: 2026-10-01 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = '0f3a9c1d2b7e'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('admin', 'member', 'viewer', name='user_role')
project_status = sa.Enum('active', 'archived', 'completed', name='project_status')
project_visibility = sa.Enum('private', 'public', name='project_visibility')
project_role = sa.Enum('owner', 'admin', 'member', 'viewer', name='project_role')
task_status = sa.Enum(
    'backlog', 'todo', 'in_progress', 'in_review', 'done', 'cancelled', name='task_status'
)
task_priority = sa.Enum('low', 'medium', 'high', 'urgent', name='task_priority')
task_type = sa.Enum('task', 'bug', 'feature', 'improvement', 'epic', 'story', name='task_type')
entity_type = sa.Enum('user', 'project', 'task', 'comment', 'label', name='entity_type')
activity_action = sa.Enum(
    'user.login', 'user.logout', 'user.register', 'user.password_change',
    'user.update', 'user.delete', 'user.role_change',
    'project.create', 'project.update', 'project.delete', 'project.archive',
    'project.member_add', 'project.member_remove', 'project.member_role_change',
    'task.create', 'task.update', 'task.delete', 'task.status_change',
    'task.assign', 'task.unassign', 'task.priority_change',
    'task.label_add', 'task.label_remove',
    'comment.create', 'comment.update', 'comment.delete',
    'comment.reaction_add', 'comment.reaction_remove',
    'label.create', 'label.update', 'label.delete',
    name='activity_action',
)
notification_type = sa.Enum(
    'task_assigned', 'task_unassigned', 'task_status_changed', 'task_commented',
    'comment_mentioned', 'comment_replied', 'project_invited',
    'project_role_changed', 'project_removed',
    name='notification_type',
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(50), nullable=False),
        sa.Column('last_name', sa.String(50), nullable=False),
        sa.Column('role', user_role, nullable=False, server_default='member'),
        sa.Column('avatar', sa.String(500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_refresh_token_hash', sa.String(64), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_is_active', 'users', ['is_active'])
    op.create_index('ix_users_created_at', 'users', ['created_at'])

    op.create_table(
        'projects',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('key', sa.String(10), nullable=False),
        sa.Column('owner_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('status', project_status, nullable=False, server_default='active'),
        sa.Column('visibility', project_visibility, nullable=False, server_default='private'),
        sa.Column('settings', JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('task_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_task_count', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index('ix_projects_key', 'projects', ['key'], unique=True)
    op.create_index('ix_projects_owner_id', 'projects', ['owner_id'])
    op.create_index('ix_projects_status', 'projects', ['status'])
    op.create_index('ix_projects_created_at', 'projects', ['created_at'])

    op.create_table(
        'project_members',
        sa.Column('project_id', UUID(as_uuid=True), sa.ForeignKey('projects.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('role', project_role, nullable=False, server_default='member'),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("role <> 'owner'", name='ck_project_members_not_owner'),
    )
    op.create_index('ix_project_members_user_id', 'project_members', ['user_id'])

    op.create_table(
        'project_task_counters',
        sa.Column('project_id', UUID(as_uuid=True), sa.ForeignKey('projects.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('last_number', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_table(
        'labels',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('color', sa.String(7), nullable=False, server_default='#6B7280'),
        sa.Column('description', sa.String(200), nullable=True),
        sa.Column('project_id', UUID(as_uuid=True), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=True),
        sa.Column('created_by_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('ix_labels_project_id', 'labels', ['project_id'])
    op.create_index('ix_labels_created_at', 'labels', ['created_at'])

    op.create_table(
        'tasks',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('project_id', UUID(as_uuid=True), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('task_number', sa.String(24), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', task_status, nullable=False, server_default='todo'),
        sa.Column('priority', task_priority, nullable=False, server_default='medium'),
        sa.Column('type', task_type, nullable=False, server_default='task'),
        sa.Column('assignee_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('reporter_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('parent_task_id', UUID(as_uuid=True), sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('estimated_hours', sa.Float(), nullable=True),
        sa.Column('actual_hours', sa.Float(), nullable=False, server_default='0'),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('project_id', 'sequence', name='uq_tasks_project_sequence'),
    )
    op.create_index('ix_tasks_project_id', 'tasks', ['project_id'])
    op.create_index('ix_tasks_task_number', 'tasks', ['task_number'], unique=True)
    op.create_index('ix_tasks_status', 'tasks', ['status'])
    op.create_index('ix_tasks_priority', 'tasks', ['priority'])
    op.create_index('ix_tasks_assignee_id', 'tasks', ['assignee_id'])
    op.create_index('ix_tasks_reporter_id', 'tasks', ['reporter_id'])
    op.create_index('ix_tasks_parent_task_id', 'tasks', ['parent_task_id'])
    op.create_index('ix_tasks_due_date', 'tasks', ['due_date'])
    op.create_index('ix_tasks_completed_at', 'tasks', ['completed_at'])
    op.create_index('ix_tasks_created_at', 'tasks', ['created_at'])

    op.create_table(
        'task_labels',
        sa.Column('task_id', UUID(as_uuid=True), sa.ForeignKey('tasks.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('label_id', UUID(as_uuid=True), sa.ForeignKey('labels.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'comments',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('task_id', UUID(as_uuid=True), sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('author_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('parent_comment_id', UUID(as_uuid=True), sa.ForeignKey('comments.id', ondelete='CASCADE'), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('mentions', JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('is_edited', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('edited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('ix_comments_task_id', 'comments', ['task_id'])
    op.create_index('ix_comments_author_id', 'comments', ['author_id'])
    op.create_index('ix_comments_parent_comment_id', 'comments', ['parent_comment_id'])
    op.create_index('ix_comments_is_deleted', 'comments', ['is_deleted'])
    op.create_index('ix_comments_created_at', 'comments', ['created_at'])

    op.create_table(
        'comment_reactions',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('comment_id', UUID(as_uuid=True), sa.ForeignKey('comments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('emoji', sa.String(32), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('comment_id', 'user_id', 'emoji', name='uq_comment_reactions_user_emoji'),
    )
    op.create_index('ix_comment_reactions_comment_id', 'comment_reactions', ['comment_id'])
    op.create_index('ix_comment_reactions_created_at', 'comment_reactions', ['created_at'])

    # Audit entries outlive the projects and entities they describe: no FK on
    # project_id or entity_id.
    op.create_table(
        'activities',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('action', activity_action, nullable=False),
        sa.Column('actor_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('entity_type', entity_type, nullable=False),
        sa.Column('entity_id', UUID(as_uuid=True), nullable=False),
        sa.Column('project_id', UUID(as_uuid=True), nullable=True),
        sa.Column('changes', JSONB(), nullable=True),
        sa.Column('metadata', JSONB(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_activities_project_created', 'activities', ['project_id', 'created_at'])
    op.create_index('ix_activities_actor_created', 'activities', ['actor_id', 'created_at'])
    op.create_index('ix_activities_entity_created', 'activities', ['entity_type', 'entity_id', 'created_at'])

    op.create_table(
        'notifications',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('recipient_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sender_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('type', notification_type, nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.String(500), nullable=False),
        sa.Column('entity_type', sa.String(20), nullable=True),
        sa.Column('entity_id', UUID(as_uuid=True), nullable=True),
        sa.Column('project_id', UUID(as_uuid=True), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('metadata', JSONB(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_notifications_recipient_read', 'notifications', ['recipient_id', 'is_read', 'created_at'])
    op.create_index('ix_notifications_project_id', 'notifications', ['project_id'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])


def downgrade() -> None:
    for table in (
        'notifications',
        'activities',
        'comment_reactions',
        'comments',
        'task_labels',
        'tasks',
        'labels',
        'project_task_counters',
        'project_members',
        'projects',
        'users',
    ):
        op.drop_table(table)
    for enum in (
        notification_type,
        activity_action,
        entity_type,
        task_type,
        task_priority,
        task_status,
        project_role,
        project_visibility,
        project_status,
        user_role,
    ):
        enum.drop(op.get_bind(), checkfirst=True)
