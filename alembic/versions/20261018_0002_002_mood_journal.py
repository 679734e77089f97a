"""002 - Mood journal: diary_entries table.

One row per journal entry: free text, an optional mood tag, and Luna's
reflection once it has been requested.

Revision ID: 002_mood_journal
Revises: 001_initial
"""

from alembic import op
import sqlalchemy as sa

revision = "002_mood_journal"
down_revision = "001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "diary_entries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("mood", sa.String(20), nullable=True),
        sa.Column("ai_response", sa.Text, nullable=True),
        sa.Column("pattern_detected", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_diary_entries_user_id", "diary_entries", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_diary_entries_user_id", table_name="diary_entries")
    op.drop_table("diary_entries")
