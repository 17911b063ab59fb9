from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Note(SQLModel, table=True):
    __tablename__ = "notes"  # pyright: ignore[reportAssignmentType]

    # Canonical lowercase UUID text; also the attachment container name.
    id: str = Field(primary_key=True, min_length=36, max_length=36)

    summary: str = Field(min_length=1, max_length=60)
    details: str = Field(min_length=1, max_length=1024)

    created_at: datetime = Field(default_factory=utc_now, index=True)
    modified_at: Optional[datetime] = Field(default=None)


class Tag(SQLModel, table=True):
    __tablename__ = "tags"  # pyright: ignore[reportAssignmentType]

    id: str = Field(primary_key=True, min_length=36, max_length=36)
    note_id: str = Field(index=True, foreign_key="notes.id", min_length=36, max_length=36)
    name: str = Field(min_length=1, max_length=200)
