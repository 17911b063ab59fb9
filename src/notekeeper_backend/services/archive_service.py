"""Archive (zip) requests: validate the note, then hand the job to the worker queue.

This module only dispatches. The worker builds the archive and publishes it under
``zipFileId`` in the archive container, which is where the returned locator points.
The note can be deleted after dispatch; the worker is expected to skip such
messages with a warning rather than fail.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlmodel.ext.asyncio.session import AsyncSession

from notekeeper_backend.errors import DispatchFailure, NoteKeeperError, StorageFailure
from notekeeper_backend.integrations.queue.message_queue import MessageQueue
from notekeeper_backend.integrations.storage.object_storage import (
    ObjectStorage,
    container_name_for,
)
from notekeeper_backend.services.notes_service import ensure_note_exists

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".zip"


@dataclass(frozen=True)
class ArchiveDispatch:
    zip_file_id: str
    # Pending-result locator; the archive appears there once the worker is done.
    location: str


def new_zip_file_id() -> str:
    return f"{uuid.uuid4()}{ARCHIVE_SUFFIX}"


def archive_location(base_url: str, zip_file_id: str) -> str:
    return f"{base_url.rstrip('/')}/blobs/{zip_file_id}"


async def _has_attachments(storage: ObjectStorage, *, container: str) -> bool:
    try:
        await storage.ensure_container(container)
        return len(await storage.list_objects(container)) > 0
    except NoteKeeperError:
        raise
    except Exception as exc:
        logger.error("storage listing failed container=%s", container, exc_info=True)
        raise StorageFailure(
            "Error listing attachments.", details={"container": container}
        ) from exc


async def request_archive(
    *,
    session: AsyncSession,
    storage: ObjectStorage,
    queue: MessageQueue,
    note_id: str,
    queue_name: str,
    public_base_url: str,
) -> ArchiveDispatch | None:
    """Enqueue a zip job for the note's attachments.

    Returns None when the note has no attachments (nothing is enqueued).
    Raises DispatchFailure when the queue does not accept the message.
    """
    canonical = await ensure_note_exists(session, note_id=note_id)
    container = container_name_for(canonical)

    if not await _has_attachments(storage, container=container):
        logger.info("archive skipped, no attachments note_id=%s", canonical)
        return None

    zip_file_id = new_zip_file_id()
    message = {"noteId": canonical, "zipFileId": zip_file_id}

    try:
        enqueued = await queue.enqueue(queue_name, message)
    except Exception as exc:
        logger.error(
            "failed to enqueue zip creation request note_id=%s", canonical, exc_info=True
        )
        raise DispatchFailure(
            "Failed to enqueue zip creation request.", details={"noteId": canonical}
        ) from exc
    if not enqueued:
        logger.error("failed to enqueue zip creation request note_id=%s", canonical)
        raise DispatchFailure(
            "Failed to enqueue zip creation request.", details={"noteId": canonical}
        )

    logger.info(
        "zip creation request enqueued note_id=%s zip_file_id=%s queue=%s",
        canonical,
        zip_file_id,
        queue_name,
    )
    return ArchiveDispatch(
        zip_file_id=zip_file_id, location=archive_location(public_base_url, zip_file_id)
    )
