from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Unified error body for every endpoint: {error, message, request_id, details}."""

    error: str
    message: str
    request_id: str | None = None
    details: object | None = None


class NoteCreateRequest(BaseModel):
    # Length limits are enforced by notes_service so violations map to 400, not 422.
    summary: str | None = None
    details: str | None = None


class NotePatchRequest(BaseModel):
    summary: str | None = None
    details: str | None = None


class Note(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    note_id: str = Field(alias="noteId")
    summary: str
    details: str
    created_date_utc: datetime = Field(alias="createdDateUtc")
    modified_date_utc: datetime | None = Field(default=None, alias="modifiedDateUtc")
    tags: list[str] = Field(default_factory=list)


class AttachmentInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    attachment_id: str = Field(alias="attachmentId")
    content_type: str | None = Field(default=None, alias="contentType")
    created_date: datetime | None = Field(default=None, alias="createdDate")
    last_modified_date: datetime | None = Field(default=None, alias="lastModifiedDate")
    length: int


class ArchiveAccepted(BaseModel):
    """Body of a 202: the archive is produced asynchronously at ``location``."""

    model_config = ConfigDict(populate_by_name=True)

    zip_file_id: str = Field(alias="zipFileId")
    location: str
    status: str = "pending"
