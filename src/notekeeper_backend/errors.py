"""Error taxonomy shared by services and mapped to HTTP in error_handlers."""

from __future__ import annotations


class NoteKeeperError(Exception):
    status_code: int = 500
    error: str = "internal_error"

    def __init__(self, message: str, *, details: object | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidArgument(NoteKeeperError):
    """Malformed identifiers or missing required input. Always client-caused."""

    status_code = 400
    error = "bad_request"


class NotFound(NoteKeeperError):
    status_code = 404
    error = "not_found"


class QuotaExceeded(NoteKeeperError):
    status_code = 403
    error = "attachment_limit_reached"

    def __init__(self, limit: int) -> None:
        super().__init__(
            f"Attachment limit reached MaxAttachments [{limit}]",
            details={"maxAttachments": limit},
        )
        self.limit = limit


class StorageFailure(NoteKeeperError):
    """Object storage I/O failed; the cause is chained via ``raise ... from``."""

    status_code = 500
    error = "storage_error"


class DispatchFailure(NoteKeeperError):
    status_code = 500
    error = "dispatch_error"


class NoteLimitReached(NoteKeeperError):
    status_code = 403
    error = "note_limit_reached"

    def __init__(self, limit: int) -> None:
        super().__init__(
            f"Note limit reached MaxNotes [{limit}]",
            details={"maxNotes": limit},
        )
        self.limit = limit
