"""
Инициальная миграция.

Создаёт таблицы:
- blocks
- block_meetings
- block_attendees
- turns
- block_turns
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "blocks",
        sa.Column("block_id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "block_type",
            sa.Enum("meeting", "session", name="blocktype"),
            nullable=False,
        ),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "block_meetings",
        sa.Column(
            "block_id",
            sa.String(length=36),
            sa.ForeignKey("blocks.block_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("bot_id", sa.String(length=128), nullable=False, unique=True),
        sa.Column("meeting_url", sa.Text(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("joining", "in_progress", "completed", "failed", name="meetingstatus"),
            nullable=False,
        ),
        sa.Column("invited_by_user_id", sa.BigInteger(), nullable=True),
        sa.Column("full_transcript", sa.JSON(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_block_meetings_status", "block_meetings", ["status"])

    op.create_table(
        "block_attendees",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "block_id",
            sa.String(length=36),
            sa.ForeignKey("blocks.block_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("story", sa.Text(), nullable=True),
        sa.Column("speaking_time_seconds", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("block_id", "name", name="uq_block_attendees_block_name"),
    )
    op.create_index("ix_block_attendees_block_id", "block_attendees", ["block_id"])
    op.create_index("ix_block_attendees_user_id", "block_attendees", ["user_id"])

    op.create_table(
        "turns",
        sa.Column("turn_id", sa.String(length=36), primary_key=True),
        sa.Column(
            "attendee_id",
            sa.Integer(),
            sa.ForeignKey("block_attendees.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("source_type", sa.String(length=50), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_turns_attendee_id", "turns", ["attendee_id"])
    op.create_index("ix_turns_source_type", "turns", ["source_type"])

    op.create_table(
        "block_turns",
        sa.Column(
            "block_id",
            sa.String(length=36),
            sa.ForeignKey("blocks.block_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "turn_id",
            sa.String(length=36),
            sa.ForeignKey("turns.turn_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("sequence_order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("block_id", "sequence_order", name="uq_block_turns_block_sequence"),
    )
    op.create_index("ix_block_turns_block_id", "block_turns", ["block_id"])


def downgrade() -> None:
    op.drop_index("ix_block_turns_block_id", table_name="block_turns")
    op.drop_table("block_turns")
    op.drop_index("ix_turns_source_type", table_name="turns")
    op.drop_index("ix_turns_attendee_id", table_name="turns")
    op.drop_table("turns")
    op.drop_index("ix_block_attendees_user_id", table_name="block_attendees")
    op.drop_index("ix_block_attendees_block_id", table_name="block_attendees")
    op.drop_table("block_attendees")
    op.drop_index("ix_block_meetings_status", table_name="block_meetings")
    op.drop_table("block_meetings")
    op.drop_table("blocks")

    op.execute("DROP TYPE IF EXISTS meetingstatus")
    op.execute("DROP TYPE IF EXISTS blocktype")
