"""Note attachments router."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from fastapi.responses import Response
from sqlmodel.ext.asyncio.session import AsyncSession

from notekeeper_backend.config import settings
from notekeeper_backend.db import get_session
from notekeeper_backend.errors import InvalidArgument
from notekeeper_backend.http_headers import build_content_disposition_attachment
from notekeeper_backend.integrations.storage.object_storage import ObjectStorage, get_object_storage
from notekeeper_backend.schemas import AttachmentInfo
from notekeeper_backend.services import attachments_service

router = APIRouter(tags=["attachments"])


async def _read_upload_file_limited(*, file: UploadFile, max_bytes: int) -> bytes:
    # Read the file in chunks and hard-stop once size exceeds max_bytes.
    buf = bytearray()
    chunk_size = 1024 * 1024
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_CONTENT_TOO_LARGE,
                detail="attachment too large",
            )
    return bytes(buf)


@router.put(
    "/notes/{note_id}/attachments/{attachment_id}",
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Attachment created"},
        204: {"description": "Attachment replaced"},
        403: {"description": "Attachment limit reached"},
    },
)
async def put_attachment(
    request: Request,
    note_id: str,
    attachment_id: str,
    file_data: Annotated[UploadFile | None, File(alias="fileData")] = None,
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
) -> Response:
    if file_data is None:
        raise InvalidArgument(
            "File data must be provided and not empty.",
            details={"noteId": note_id, "attachmentId": attachment_id},
        )

    max_bytes = int(settings.attachments_max_size_bytes)
    if max_bytes > 0:
        data = await _read_upload_file_limited(file=file_data, max_bytes=max_bytes)
    else:
        data = await file_data.read()

    result = await attachments_service.put_attachment(
        session=session,
        storage=storage,
        note_id=note_id,
        attachment_id=attachment_id,
        data=data,
        content_type=file_data.content_type,
        max_attachments=settings.max_attachments_per_note,
    )
    if not result.created:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    location = str(request.base_url).rstrip("/") + result.location
    return Response(status_code=status.HTTP_201_CREATED, headers={"Location": location})


@router.delete(
    "/notes/{note_id}/attachments/{attachment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_attachment(
    note_id: str,
    attachment_id: str,
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
) -> Response:
    # Deleting a missing attachment is not an error.
    _ = await attachments_service.delete_attachment(
        session=session, storage=storage, note_id=note_id, attachment_id=attachment_id
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/notes/{note_id}/attachments/{attachment_id}",
    responses={200: {"content": {"application/octet-stream": {}}, "description": "File bytes"}},
)
async def get_attachment(
    note_id: str,
    attachment_id: str,
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
) -> Response:
    content = await attachments_service.get_attachment(
        session=session, storage=storage, note_id=note_id, attachment_id=attachment_id
    )
    headers = {"Content-Disposition": build_content_disposition_attachment(attachment_id)}
    return Response(content=content.data, media_type=content.content_type, headers=headers)


@router.get("/notes/{note_id}/attachments", response_model=list[AttachmentInfo])
async def list_attachments(
    note_id: str,
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
) -> list[AttachmentInfo]:
    objects = await attachments_service.list_attachments(
        session=session, storage=storage, note_id=note_id
    )
    return [
        AttachmentInfo(
            attachment_id=o.key,
            content_type=o.content_type,
            created_date=o.created_at,
            last_modified_date=o.modified_at,
            length=o.size,
        )
        for o in objects
    ]
