"""
Состояние загрузки финального транскрипта.

block_meetings:
- transcript_fetch_attempts: число неудачных загрузок
- transcript_unavailable: провайдер ответил 404, backfill больше не пробует
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0002_transcript_fetch_state"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "block_meetings",
        sa.Column(
            "transcript_fetch_attempts",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
    )
    op.add_column(
        "block_meetings",
        sa.Column(
            "transcript_unavailable",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
    )


def downgrade() -> None:
    op.drop_column("block_meetings", "transcript_unavailable")
    op.drop_column("block_meetings", "transcript_fetch_attempts")
