from __future__ import annotations

from typing import cast

from sqlalchemy import func
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from notekeeper_backend.models import Note, Tag


async def get_note(session: AsyncSession, *, note_id: str) -> Note | None:
    return await session.get(Note, note_id)


async def note_exists(session: AsyncSession, *, note_id: str) -> bool:
    stmt = select(Note.id).where(Note.id == note_id)
    return (await session.exec(stmt)).first() is not None


async def count_notes(session: AsyncSession) -> int:
    stmt = select(func.count()).select_from(Note)
    return int((await session.exec(stmt)).one())


async def list_notes(session: AsyncSession) -> list[Note]:
    stmt = select(Note).order_by(col(Note.created_at))
    return list((await session.exec(stmt)).all())


async def list_tag_names(session: AsyncSession, *, note_ids: list[str]) -> dict[str, list[str]]:
    if not note_ids:
        return {}
    stmt = (
        select(Tag)
        .where(cast(ColumnElement[object], cast(object, Tag.note_id)).in_(note_ids))
        .order_by(col(Tag.name))
    )
    out: dict[str, list[str]] = {note_id: [] for note_id in note_ids}
    for tag in (await session.exec(stmt)).all():
        out.setdefault(tag.note_id, []).append(tag.name)
    return out


async def delete_tags(session: AsyncSession, *, note_id: str) -> None:
    stmt = select(Tag).where(Tag.note_id == note_id)
    for tag in (await session.exec(stmt)).all():
        await session.delete(tag)
