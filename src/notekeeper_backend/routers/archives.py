"""Attachment zip archive router."""

from __future__ import annotations

import re

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, Response
from sqlmodel.ext.asyncio.session import AsyncSession

from notekeeper_backend.config import settings
from notekeeper_backend.db import get_session
from notekeeper_backend.errors import InvalidArgument, NotFound, StorageFailure
from notekeeper_backend.http_headers import build_content_disposition_attachment
from notekeeper_backend.integrations.queue.message_queue import MessageQueue, get_message_queue
from notekeeper_backend.integrations.storage.object_storage import ObjectStorage, get_object_storage
from notekeeper_backend.schemas import ArchiveAccepted
from notekeeper_backend.services import archive_service

router = APIRouter(tags=["archives"])

_ZIP_FILE_ID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\.zip$"
)


@router.post(
    "/notes/{note_id}/attachmentzipfiles",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ArchiveAccepted,
    responses={204: {"description": "No attachments to archive"}},
)
async def request_attachment_zip(
    note_id: str,
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    queue: MessageQueue = Depends(get_message_queue),
) -> Response:
    dispatch = await archive_service.request_archive(
        session=session,
        storage=storage,
        queue=queue,
        note_id=note_id,
        queue_name=settings.archive_queue_name,
        public_base_url=settings.archive_public_base_url,
    )
    if dispatch is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    body = ArchiveAccepted(zip_file_id=dispatch.zip_file_id, location=dispatch.location)
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=body.model_dump(by_alias=True),
        headers={"Location": dispatch.location},
    )


@router.get(
    "/blobs/{zip_file_id}",
    responses={200: {"content": {"application/zip": {}}, "description": "Zip archive"}},
)
async def download_attachment_zip(
    zip_file_id: str,
    storage: ObjectStorage = Depends(get_object_storage),
) -> Response:
    # Serves archives published by the worker; 404 until the worker has finished.
    zip_id = zip_file_id.lower()
    if not _ZIP_FILE_ID_RE.match(zip_id):
        raise InvalidArgument("Invalid zipFileId format.", details={"zipFileId": zip_file_id})

    container = settings.archive_container
    try:
        exists = await storage.object_exists(container, zip_id)
        content = await storage.get_object(container, zip_id) if exists else None
    except Exception as exc:
        raise StorageFailure("Error reading archive.", details={"zipFileId": zip_id}) from exc
    if content is None:
        raise NotFound("Archive not available.", details={"zipFileId": zip_id})

    headers = {"Content-Disposition": build_content_disposition_attachment(zip_id)}
    return Response(content=content.data, media_type="application/zip", headers=headers)
