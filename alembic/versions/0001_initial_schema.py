"""initial communication schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TS = postgresql.TIMESTAMP(timezone=True)
UUID = postgresql.UUID(as_uuid=True)
JSONB_EMPTY = sa.text("'{}'::jsonb")


def _id() -> sa.Column:
    return sa.Column('id', UUID, server_default=sa.text('gen_random_uuid()'), nullable=False)


def upgrade() -> None:
    op.create_table('conversations',
    _id(),
    sa.Column('type', sa.String(length=20), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=True),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('avatar_url', sa.String(length=500), nullable=True),
    sa.Column('created_by', sa.String(length=64), nullable=False),
    sa.Column('metadata', postgresql.JSONB(), server_default=JSONB_EMPTY, nullable=False),
    sa.Column('last_message_at', TS, nullable=True),
    sa.Column('created_at', TS, server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', TS, server_default=sa.text('now()'), nullable=False),
    sa.Column('deleted_at', TS, nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_conversations_type_last_message', 'conversations', ['type', sa.text('last_message_at DESC')], unique=False)
    op.create_index('ix_conversations_created_by', 'conversations', ['created_by'], unique=False)

    op.create_table('conversation_participants',
    _id(),
    sa.Column('conversation_id', UUID, nullable=False),
    sa.Column('user_id', sa.String(length=64), nullable=False),
    sa.Column('role', sa.String(length=20), nullable=False),
    sa.Column('joined_at', TS, server_default=sa.text('now()'), nullable=False),
    sa.Column('left_at', TS, nullable=True),
    sa.Column('last_read_at', TS, nullable=True),
    sa.Column('is_muted', sa.Boolean(), server_default=sa.text('false'), nullable=False),
    sa.Column('muted_until', TS, nullable=True),
    sa.Column('archived_at', TS, nullable=True),
    sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('conversation_id', 'user_id', name='uq_participant_member')
    )
    op.create_index('ix_participants_user', 'conversation_participants', ['user_id', 'conversation_id'], unique=False)

    op.create_table('messages',
    _id(),
    sa.Column('conversation_id', UUID, nullable=False),
    sa.Column('sender_id', sa.String(length=64), nullable=False),
    sa.Column('type', sa.String(length=20), nullable=False),
    sa.Column('content', sa.Text(), nullable=True),
    sa.Column('reply_to_id', UUID, nullable=True),
    sa.Column('metadata', postgresql.JSONB(), server_default=JSONB_EMPTY, nullable=False),
    sa.Column('created_at', TS, server_default=sa.text('now()'), nullable=False),
    sa.Column('edited_at', TS, nullable=True),
    sa.Column('deleted_at', TS, nullable=True),
    sa.Column('deleted_by', sa.String(length=64), nullable=True),
    sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['reply_to_id'], ['messages.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_messages_conversation_timeline', 'messages', ['conversation_id', 'created_at', 'id'], unique=False)
    op.create_index('ix_messages_sender', 'messages', ['sender_id'], unique=False)

    op.create_table('message_attachments',
    _id(),
    sa.Column('message_id', UUID, nullable=False),
    sa.Column('url', sa.String(length=1000), nullable=False),
    sa.Column('file_name', sa.String(length=255), nullable=False),
    sa.Column('file_type', sa.String(length=100), nullable=False),
    sa.Column('file_size', sa.BigInteger(), nullable=False),
    sa.Column('type', sa.String(length=20), nullable=False),
    sa.Column('thumbnail_url', sa.String(length=1000), nullable=True),
    sa.Column('width', sa.Integer(), nullable=True),
    sa.Column('height', sa.Integer(), nullable=True),
    sa.Column('duration', sa.Integer(), nullable=True),
    sa.ForeignKeyConstraint(['message_id'], ['messages.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_message_attachments_message', 'message_attachments', ['message_id'], unique=False)

    op.create_table('message_reactions',
    _id(),
    sa.Column('message_id', UUID, nullable=False),
    sa.Column('user_id', sa.String(length=64), nullable=False),
    sa.Column('emoji', sa.String(length=32), nullable=False),
    sa.Column('created_at', TS, server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['message_id'], ['messages.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('message_id', 'user_id', 'emoji', name='uq_message_reaction')
    )

    op.create_table('message_read_receipts',
    _id(),
    sa.Column('message_id', UUID, nullable=False),
    sa.Column('user_id', sa.String(length=64), nullable=False),
    sa.Column('read_at', TS, server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['message_id'], ['messages.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('message_id', 'user_id', name='uq_message_read_receipt')
    )
    op.create_index('ix_read_receipts_user', 'message_read_receipts', ['user_id'], unique=False)

    op.create_table('notifications',
    _id(),
    sa.Column('recipient_id', sa.String(length=64), nullable=False),
    sa.Column('team_id', sa.String(length=64), nullable=True),
    sa.Column('type', sa.String(length=50), nullable=False),
    sa.Column('title', sa.String(length=255), nullable=False),
    sa.Column('message', sa.Text(), nullable=False),
    sa.Column('priority', sa.String(length=20), nullable=False),
    sa.Column('status', sa.String(length=20), server_default=sa.text("'pending'"), nullable=False),
    sa.Column('channels', postgresql.ARRAY(sa.String(length=20)), nullable=False),
    sa.Column('action_url', sa.String(length=500), nullable=True),
    sa.Column('metadata', postgresql.JSONB(), server_default=JSONB_EMPTY, nullable=False),
    sa.Column('scheduled_for', TS, nullable=True),
    sa.Column('sent_at', TS, nullable=True),
    sa.Column('delivered_at', TS, nullable=True),
    sa.Column('read_at', TS, nullable=True),
    sa.Column('error_message', sa.Text(), nullable=True),
    sa.Column('created_at', TS, server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', TS, server_default=sa.text('now()'), nullable=False),
    sa.Column('deleted_at', TS, nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_recipient_status', 'notifications', ['recipient_id', 'status', 'created_at'], unique=False)
    op.create_index('ix_notifications_team', 'notifications', ['team_id', 'created_at'], unique=False)

    op.create_table('notification_queue',
    _id(),
    sa.Column('notification_id', UUID, nullable=False),
    sa.Column('channel', sa.String(length=20), nullable=False),
    sa.Column('status', sa.String(length=20), server_default=sa.text("'pending'"), nullable=False),
    sa.Column('priority', sa.String(length=20), nullable=False),
    sa.Column('scheduled_for', TS, nullable=True),
    sa.Column('attempt_count', sa.Integer(), server_default=sa.text('0'), nullable=False),
    sa.Column('next_attempt_at', TS, nullable=True),
    sa.Column('last_error', sa.Text(), nullable=True),
    sa.Column('started_at', TS, nullable=True),
    sa.Column('completed_at', TS, nullable=True),
    sa.Column('created_at', TS, server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['notification_id'], ['notifications.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notification_queue_due', 'notification_queue', ['status', 'scheduled_for', 'next_attempt_at'], unique=False)

    op.create_table('notification_templates',
    _id(),
    sa.Column('type', sa.String(length=50), nullable=False),
    sa.Column('channel', sa.String(length=20), nullable=False),
    sa.Column('subject_template', sa.String(length=255), nullable=True),
    sa.Column('body_template', sa.Text(), nullable=False),
    sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('type', 'channel', name='uq_notification_template')
    )

    op.create_table('notification_preferences',
    _id(),
    sa.Column('user_id', sa.String(length=64), nullable=False),
    sa.Column('type', sa.String(length=50), nullable=False),
    sa.Column('channel', sa.String(length=20), nullable=False),
    sa.Column('is_enabled', sa.Boolean(), server_default=sa.text('true'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_id', 'type', 'channel', name='uq_notification_preference')
    )

    op.create_table('user_presence',
    sa.Column('user_id', sa.String(length=64), nullable=False),
    sa.Column('status', sa.String(length=20), server_default=sa.text("'offline'"), nullable=False),
    sa.Column('status_message', sa.String(length=255), nullable=True),
    sa.Column('last_seen_at', TS, server_default=sa.text('now()'), nullable=False),
    sa.Column('last_active_at', TS, server_default=sa.text('now()'), nullable=False),
    sa.Column('active_connections', sa.Integer(), server_default=sa.text('0'), nullable=False),
    sa.PrimaryKeyConstraint('user_id')
    )
    op.create_index('ix_user_presence_status', 'user_presence', ['status', 'last_seen_at'], unique=False)

    op.create_table('outbox_messages',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('event_type', sa.String(length=100), nullable=False),
    sa.Column('payload', postgresql.JSONB(), nullable=False),
    sa.Column('status', sa.String(length=20), server_default=sa.text("'pending'"), nullable=False),
    sa.Column('attempts', sa.Integer(), server_default=sa.text('0'), nullable=False),
    sa.Column('last_error', sa.Text(), nullable=True),
    sa.Column('next_retry_at', TS, nullable=True),
    sa.Column('published_at', TS, nullable=True),
    sa.Column('created_at', TS, server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_outbox_due', 'outbox_messages', ['status', 'next_retry_at', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_outbox_due', table_name='outbox_messages')
    op.drop_table('outbox_messages')
    op.drop_index('ix_user_presence_status', table_name='user_presence')
    op.drop_table('user_presence')
    op.drop_table('notification_preferences')
    op.drop_table('notification_templates')
    op.drop_index('ix_notification_queue_due', table_name='notification_queue')
    op.drop_table('notification_queue')
    op.drop_index('ix_notifications_team', table_name='notifications')
    op.drop_index('ix_notifications_recipient_status', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_read_receipts_user', table_name='message_read_receipts')
    op.drop_table('message_read_receipts')
    op.drop_table('message_reactions')
    op.drop_index('ix_message_attachments_message', table_name='message_attachments')
    op.drop_table('message_attachments')
    op.drop_index('ix_messages_sender', table_name='messages')
    op.drop_index('ix_messages_conversation_timeline', table_name='messages')
    op.drop_table('messages')
    op.drop_index('ix_participants_user', table_name='conversation_participants')
    op.drop_table('conversation_participants')
    op.drop_index('ix_conversations_created_by', table_name='conversations')
    op.drop_index('ix_conversations_type_last_message', table_name='conversations')
    op.drop_table('conversations')
