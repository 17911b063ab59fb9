"""notes + tags

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    if not _table_exists("notes"):
        _ = op.create_table(
            "notes",
            sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
            sa.Column("summary", sa.String(length=60), nullable=False),
            sa.Column("details", sa.String(length=1024), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("modified_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_notes_created_at", "notes", ["created_at"], unique=False)

    if not _table_exists("tags"):
        _ = op.create_table(
            "tags",
            sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
            sa.Column("note_id", sa.String(length=36), sa.ForeignKey("notes.id"), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
        )
        op.create_index("ix_tags_note_id", "tags", ["note_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_tags_note_id", table_name="tags")
    op.drop_table("tags")
    op.drop_index("ix_notes_created_at", table_name="notes")
    op.drop_table("notes")
