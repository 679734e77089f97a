"""Initial schema - identities, partners, scoped messages, quotas, daily audio

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18
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
    # Identities
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('whatsapp', sa.String(32), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('birth_date', sa.Date, nullable=False),
        sa.Column('birth_time', sa.String(5), nullable=True),
        sa.Column('birth_city', sa.String(255), nullable=False),
        sa.Column('birth_state', sa.String(64), nullable=True),
        sa.Column('sun_sign', sa.String(32), nullable=True),
        sa.Column('moon_sign', sa.String(32), nullable=True),
        sa.Column('ascendant_sign', sa.String(32), nullable=True),
        sa.Column('voice_preference', sa.String(20), nullable=False, server_default='feminine'),
        sa.Column('notification_time', sa.String(5), nullable=False, server_default='08:00'),
        sa.Column('plan', sa.String(20), nullable=False, server_default='essencia'),
        sa.Column('terms_accepted', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_whatsapp', 'users', ['whatsapp'], unique=True)
    op.create_index('ix_users_plan', 'users', ['plan'])

    # Partners
    op.create_table(
        'partners',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('birth_date', sa.Date, nullable=False),
        sa.Column('birth_time', sa.String(5), nullable=True),
        sa.Column('birth_city', sa.String(255), nullable=False),
        sa.Column('birth_state', sa.String(64), nullable=True),
        sa.Column('sun_sign', sa.String(32), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_partners_user_id', 'partners', ['user_id'])

    # Messages of every conversation scope; id order == append order
    op.create_table(
        'messages',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('scope_kind', sa.String(20), nullable=False),
        sa.Column('scope_id', sa.String(36), nullable=False),
        sa.Column('author_id', sa.String(36), nullable=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('model_used', sa.String(100), nullable=True),
        sa.Column('processing_time_ms', sa.Integer, nullable=True),
        sa.Column('truncated', sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index('ix_messages_scope', 'messages', ['scope_kind', 'scope_id', 'id'])

    # Daily question counters
    op.create_table(
        'daily_question_counts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('scope_kind', sa.String(20), nullable=False),
        sa.Column('scope_id', sa.String(36), nullable=False),
        sa.Column('for_date', sa.Date, nullable=False),
        sa.Column('question_count', sa.Integer, nullable=False, server_default='0'),
        sa.UniqueConstraint('scope_kind', 'scope_id', 'for_date', name='uq_daily_question_counts_scope_day'),
    )

    # Daily audio transcripts
    op.create_table(
        'daily_audios',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('audio_url', sa.Text, nullable=True),
        sa.Column('transcript', sa.Text, nullable=False),
        sa.Column('for_date', sa.Date, nullable=False),
        sa.Column('listened', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'for_date', name='uq_daily_audios_user_day'),
    )
    op.create_index('ix_daily_audios_user_id', 'daily_audios', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_daily_audios_user_id', table_name='daily_audios')
    op.drop_table('daily_audios')
    op.drop_table('daily_question_counts')
    op.drop_index('ix_messages_scope', table_name='messages')
    op.drop_table('messages')
    op.drop_index('ix_partners_user_id', table_name='partners')
    op.drop_table('partners')
    op.drop_index('ix_users_plan', table_name='users')
    op.drop_index('ix_users_whatsapp', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
