from __future__ import annotations

import logging
import uuid

from sqlmodel.ext.asyncio.session import AsyncSession

from notekeeper_backend.errors import InvalidArgument, NoteLimitReached, NotFound
from notekeeper_backend.integrations.tagging import TagGenerator
from notekeeper_backend.models import Note, Tag, utc_now
from notekeeper_backend.repositories import notes_repo
from notekeeper_backend.validators import validate_note_id

logger = logging.getLogger(__name__)

MAX_SUMMARY_LENGTH = 60
MAX_DETAILS_LENGTH = 1024


def _valid_summary(value: str | None) -> bool:
    return bool(value and value.strip()) and len(value or "") <= MAX_SUMMARY_LENGTH


def _valid_details(value: str | None) -> bool:
    return bool(value and value.strip()) and len(value or "") <= MAX_DETAILS_LENGTH


async def ensure_note_exists(session: AsyncSession, *, note_id: str) -> str:
    """Validate the id and check the relational store; returns the canonical id."""
    canonical = validate_note_id(note_id)
    if not await notes_repo.note_exists(session, note_id=canonical):
        logger.warning("note not found note_id=%s", canonical)
        raise NotFound("Note not found.", details={"noteId": note_id})
    return canonical


async def _replace_tags(session: AsyncSession, *, note_id: str, names: list[str]) -> list[str]:
    await notes_repo.delete_tags(session, note_id=note_id)
    seen: set[str] = set()
    out: list[str] = []
    for name in names:
        lower = name.lower()
        if lower in seen:
            continue
        seen.add(lower)
        session.add(Tag(id=str(uuid.uuid4()), note_id=note_id, name=name[:200]))
        out.append(name[:200])
    return sorted(out)


async def create_note(
    *,
    session: AsyncSession,
    tagger: TagGenerator,
    summary: str | None,
    details: str | None,
    max_notes: int,
) -> tuple[Note, list[str]]:
    if (
        summary is None
        or details is None
        or not _valid_summary(summary)
        or not _valid_details(details)
    ):
        logger.warning(
            "validation error: invalid note payload=%r",
            {"summaryLength": len(summary or ""), "detailsLength": len(details or "")},
        )
        raise InvalidArgument("Invalid summary or details. Check constraints.")

    if max_notes > 0 and await notes_repo.count_notes(session) >= max_notes:
        logger.warning("note limit reached max_notes=%s", max_notes)
        raise NoteLimitReached(max_notes)

    # Call the model before opening the write; it can be slow.
    tag_names = await tagger.generate_tags(details)

    note = Note(id=str(uuid.uuid4()), summary=summary, details=details, created_at=utc_now())
    session.add(note)
    await session.flush()
    tags = await _replace_tags(session, note_id=note.id, names=tag_names)
    await session.commit()
    logger.info("note created note_id=%s tags=%s", note.id, len(tags))
    return note, tags


async def get_note(*, session: AsyncSession, note_id: str) -> tuple[Note, list[str]]:
    canonical = validate_note_id(note_id)
    note = await notes_repo.get_note(session, note_id=canonical)
    if note is None:
        logger.warning("note not found note_id=%s", canonical)
        raise NotFound("Note not found.", details={"noteId": note_id})
    tags = await notes_repo.list_tag_names(session, note_ids=[note.id])
    return note, tags.get(note.id, [])


async def list_notes(*, session: AsyncSession) -> list[tuple[Note, list[str]]]:
    notes = await notes_repo.list_notes(session)
    tags = await notes_repo.list_tag_names(session, note_ids=[n.id for n in notes])
    return [(n, tags.get(n.id, [])) for n in notes]


async def update_note(
    *,
    session: AsyncSession,
    tagger: TagGenerator,
    note_id: str,
    summary: str | None,
    details: str | None,
) -> bool:
    """Apply valid fields; tags are regenerated only when details change."""
    canonical = validate_note_id(note_id)
    note = await notes_repo.get_note(session, note_id=canonical)
    if note is None:
        logger.warning("note not found note_id=%s", canonical)
        raise NotFound("Note not found.", details={"noteId": note_id})

    updated = False
    if summary is not None and _valid_summary(summary):
        note.summary = summary
        updated = True

    tag_names: list[str] | None = None
    if details is not None and _valid_details(details) and details != note.details:
        note.details = details
        tag_names = await tagger.generate_tags(details)
        updated = True

    if not updated:
        return False

    note.modified_at = utc_now()
    session.add(note)
    if tag_names is not None:
        _ = await _replace_tags(session, note_id=note.id, names=tag_names)
    await session.commit()
    logger.info("note updated note_id=%s", note.id)
    return True


async def delete_note(*, session: AsyncSession, note_id: str) -> None:
    canonical = validate_note_id(note_id)
    note = await notes_repo.get_note(session, note_id=canonical)
    if note is None:
        logger.warning("note not found note_id=%s", canonical)
        raise NotFound("Note not found.", details={"noteId": note_id})
    await notes_repo.delete_tags(session, note_id=note.id)
    await session.delete(note)
    await session.commit()
    logger.info("note deleted note_id=%s", note.id)
