"""Initial schema: accounts, social, workspaces, chat

Revision ID: 3f1c9a2e7b04
Revises:
Create Date: 2026-10-18 09:12:40.118204
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2e7b04'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=True)]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True))
    return cols


def _user_fk(name: str = 'user_id') -> sa.Column:
    return sa.Column(name, sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)


def _workspace_fk() -> sa.Column:
    return sa.Column(
        'workspace_id', sa.Uuid(), sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False
    )


def upgrade() -> None:
    # ─── Accounts ────────────────────────────────────────
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('nickname', sa.String(length=100), nullable=False),
        sa.Column('avatar', sa.Text(), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'refresh_tokens',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('token', sa.String(length=512), nullable=False, unique=True),
        _user_fk(),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index('ix_refresh_tokens_user_id', 'refresh_tokens', ['user_id'])
    op.create_index('ix_refresh_tokens_expires_at', 'refresh_tokens', ['expires_at'])

    # ─── Social ──────────────────────────────────────────
    op.create_table(
        'friends',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _user_fk(),
        _user_fk('friend_id'),
        sa.Column('status', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'friend_id', name='uq_friends_pair'),
    )
    op.create_index('ix_friends_user_id', 'friends', ['user_id'])
    op.create_index('ix_friends_friend_id', 'friends', ['friend_id'])
    op.create_index('ix_friends_status', 'friends', ['status'])

    op.create_table(
        'personal_todos',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _user_fk(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('priority', sa.String(length=20), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    for col in ('user_id', 'status', 'priority', 'start_date', 'due_date'):
        op.create_index(f'ix_personal_todos_{col}', 'personal_todos', [col])

    # ─── Workspaces ──────────────────────────────────────
    op.create_table(
        'workspaces',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _user_fk('owner_id'),
        *_timestamps(),
    )
    op.create_index('ix_workspaces_owner_id', 'workspaces', ['owner_id'])

    op.create_table(
        'workspace_members',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _workspace_fk(),
        _user_fk(),
        sa.Column('accepted', sa.Boolean(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('workspace_id', 'user_id', name='uq_workspace_members'),
    )
    op.create_index('ix_workspace_members_workspace_id', 'workspace_members', ['workspace_id'])
    op.create_index('ix_workspace_members_user_id', 'workspace_members', ['user_id'])

    op.create_table(
        'group_tasks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _workspace_fk(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('department', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    for col in ('workspace_id', 'department', 'status', 'start_date', 'due_date'):
        op.create_index(f'ix_group_tasks_{col}', 'group_tasks', [col])

    # ─── Chat ────────────────────────────────────────────
    op.create_table(
        'chat_messages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _workspace_fk(),
        _user_fk(),
        sa.Column('content', sa.Text(), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index('ix_chat_messages_workspace_id', 'chat_messages', ['workspace_id'])
    op.create_index('ix_chat_messages_user_id', 'chat_messages', ['user_id'])
    op.create_index('ix_chat_messages_created_at', 'chat_messages', ['created_at'])

    op.create_table(
        'chat_notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _user_fk(),
        _workspace_fk(),
        sa.Column('unread_count', sa.Integer(), nullable=False),
        sa.Column('last_read_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('user_id', 'workspace_id', name='uq_chat_notifications'),
    )
    op.create_index('ix_chat_notifications_workspace_id', 'chat_notifications', ['workspace_id'])


def downgrade() -> None:
    for table in (
        'chat_notifications',
        'chat_messages',
        'group_tasks',
        'workspace_members',
        'workspaces',
        'personal_todos',
        'friends',
        'refresh_tokens',
        'users',
    ):
        op.drop_table(table)
