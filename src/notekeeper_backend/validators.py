from __future__ import annotations

import logging
import uuid

from notekeeper_backend.errors import InvalidArgument

logger = logging.getLogger(__name__)

# UTF-8 bytes; leaves room for the ".json" sidecar suffix under the 255-byte file name limit.
MAX_ATTACHMENT_KEY_BYTES = 250


def validate_note_id(note_id: str | None) -> str:
    """Return the canonical lowercase UUID text or raise InvalidArgument."""
    if note_id is None or not note_id.strip():
        logger.warning("validation error: noteId missing payload=%r", {"noteId": note_id})
        raise InvalidArgument("NoteId must be provided.", details={"noteId": note_id})
    try:
        return str(uuid.UUID(note_id.strip())).lower()
    except ValueError as exc:
        logger.warning("validation error: invalid noteId payload=%r", {"noteId": note_id})
        raise InvalidArgument("Invalid noteId format.", details={"noteId": note_id}) from exc


def validate_attachment_key(note_id: str | None, attachment_id: str | None) -> str:
    key = attachment_id or ""
    payload = {"noteId": note_id, "attachmentId": attachment_id}
    if not key.strip():
        logger.warning("validation error: attachmentId missing payload=%r", payload)
        raise InvalidArgument("NoteId and attachmentId must be provided.", details=payload)
    if (
        len(key.encode("utf-8")) > MAX_ATTACHMENT_KEY_BYTES
        or key in {".", ".."}
        or "/" in key
        or "\\" in key
        or any(ord(ch) < 32 or ord(ch) == 127 for ch in key)
    ):
        logger.warning("validation error: invalid attachmentId payload=%r", payload)
        raise InvalidArgument("Invalid attachmentId format.", details=payload)
    return key
