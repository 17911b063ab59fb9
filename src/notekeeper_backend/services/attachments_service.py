from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar
from urllib.parse import quote

from sqlmodel.ext.asyncio.session import AsyncSession

from notekeeper_backend.errors import InvalidArgument, NoteKeeperError, NotFound, StorageFailure
from notekeeper_backend.integrations.storage.object_storage import (
    ObjectContent,
    ObjectInfo,
    ObjectStorage,
    container_name_for,
)
from notekeeper_backend.services import quota_guard
from notekeeper_backend.services.notes_service import ensure_note_exists
from notekeeper_backend.validators import validate_attachment_key, validate_note_id

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Custom metadata recorded on every attachment object (audit/repair only).
NOTE_ID_METADATA_KEY = "noteid"


@dataclass(frozen=True)
class PutResult:
    created: bool
    # Path of the attachment resource; absolute URLs are built at the HTTP layer.
    location: str


class DeleteResult(enum.Enum):
    DELETED = "deleted"
    ALREADY_ABSENT = "already_absent"


def attachment_location(note_id: str, attachment_id: str) -> str:
    return f"/notes/{note_id}/attachments/{quote(attachment_id, safe='')}"


async def _storage_call(
    action: str, *, note_id: str, attachment_id: str | None, aw: Awaitable[T]
) -> T:
    try:
        return await aw
    except NoteKeeperError:
        raise
    except Exception as exc:
        payload = {"noteId": note_id, "attachmentId": attachment_id}
        logger.error("storage %s failed payload=%r", action, payload, exc_info=True)
        raise StorageFailure(f"Error {action} attachment.", details=payload) from exc


async def _validate_key(
    session: AsyncSession, *, note_id: str, attachment_id: str
) -> tuple[str, str]:
    # Syntax first so malformed input never reaches the database.
    canonical = validate_note_id(note_id)
    key = validate_attachment_key(note_id, attachment_id)
    _ = await ensure_note_exists(session, note_id=canonical)
    return canonical, key


async def put_attachment(
    *,
    session: AsyncSession,
    storage: ObjectStorage,
    note_id: str,
    attachment_id: str,
    data: bytes,
    content_type: str | None,
    max_attachments: int,
) -> PutResult:
    """Create or overwrite one attachment.

    New keys go through the quota guard; overwrites are always admitted. There is
    no rollback: a failure after the body write can leave the object without its
    final metadata, and the caller may simply retry the put.
    """
    canonical = validate_note_id(note_id)
    key = validate_attachment_key(note_id, attachment_id)
    if not data:
        logger.warning(
            "validation error: empty file payload=%r", {"noteId": note_id, "attachmentId": key}
        )
        raise InvalidArgument(
            "File data must be provided and not empty.",
            details={"noteId": note_id, "attachmentId": key},
        )
    _ = await ensure_note_exists(session, note_id=canonical)

    container = container_name_for(canonical)
    await _storage_call(
        "preparing", note_id=canonical, attachment_id=key, aw=storage.ensure_container(container)
    )
    existed = await _storage_call(
        "checking", note_id=canonical, attachment_id=key, aw=storage.object_exists(container, key)
    )

    if not existed:
        _ = await _storage_call(
            "counting",
            note_id=canonical,
            attachment_id=key,
            aw=quota_guard.ensure_quota_allows_new_object(
                storage, container=container, max_objects=max_attachments
            ),
        )

    await _storage_call(
        "uploading",
        note_id=canonical,
        attachment_id=key,
        aw=storage.put_object(
            container,
            key,
            data,
            content_type=content_type,
            metadata={NOTE_ID_METADATA_KEY: canonical},
        ),
    )

    if existed:
        logger.info(
            "attachment updated note_id=%s attachment_id=%s size=%s", canonical, key, len(data)
        )
    else:
        logger.info(
            "attachment created note_id=%s attachment_id=%s size=%s", canonical, key, len(data)
        )
    return PutResult(created=not existed, location=attachment_location(canonical, key))


async def delete_attachment(
    *,
    session: AsyncSession,
    storage: ObjectStorage,
    note_id: str,
    attachment_id: str,
) -> DeleteResult:
    canonical, key = await _validate_key(session, note_id=note_id, attachment_id=attachment_id)
    container = container_name_for(canonical)

    exists = await _storage_call(
        "checking", note_id=canonical, attachment_id=key, aw=storage.object_exists(container, key)
    )
    if not exists:
        logger.warning(
            "attachment not found (already missing) note_id=%s attachment_id=%s", canonical, key
        )
        return DeleteResult.ALREADY_ABSENT

    await _storage_call(
        "deleting", note_id=canonical, attachment_id=key, aw=storage.delete_object(container, key)
    )
    logger.info("attachment deleted note_id=%s attachment_id=%s", canonical, key)
    return DeleteResult.DELETED


async def get_attachment(
    *,
    session: AsyncSession,
    storage: ObjectStorage,
    note_id: str,
    attachment_id: str,
) -> ObjectContent:
    canonical, key = await _validate_key(session, note_id=note_id, attachment_id=attachment_id)
    container = container_name_for(canonical)

    exists = await _storage_call(
        "checking", note_id=canonical, attachment_id=key, aw=storage.object_exists(container, key)
    )
    if not exists:
        logger.warning("attachment not found note_id=%s attachment_id=%s", canonical, key)
        raise NotFound(
            "Attachment not found.", details={"noteId": note_id, "attachmentId": key}
        )

    return await _storage_call(
        "reading", note_id=canonical, attachment_id=key, aw=storage.get_object(container, key)
    )


async def list_attachments(
    *,
    session: AsyncSession,
    storage: ObjectStorage,
    note_id: str,
) -> list[ObjectInfo]:
    """All attachments of a note in backend enumeration order (not sorted)."""
    canonical = await ensure_note_exists(session, note_id=note_id)
    container = container_name_for(canonical)
    return await _storage_call(
        "listing", note_id=canonical, attachment_id=None, aw=storage.list_objects(container)
    )
