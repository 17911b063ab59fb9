"""Notes router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from notekeeper_backend.config import settings
from notekeeper_backend.db import get_session
from notekeeper_backend.integrations.tagging import TagGenerator, get_tag_generator
from notekeeper_backend.models import Note
from notekeeper_backend.schemas import Note as NoteSchema
from notekeeper_backend.schemas import NoteCreateRequest, NotePatchRequest
from notekeeper_backend.services import notes_service

router = APIRouter(tags=["notes"])


def _to_schema(note: Note, tags: list[str]) -> NoteSchema:
    return NoteSchema(
        note_id=note.id,
        summary=note.summary,
        details=note.details,
        created_date_utc=note.created_at,
        modified_date_utc=note.modified_at,
        tags=tags,
    )


@router.post("/notes", response_model=NoteSchema, status_code=status.HTTP_201_CREATED)
async def create_note(
    request: Request,
    payload: NoteCreateRequest,
    session: AsyncSession = Depends(get_session),
    tagger: TagGenerator = Depends(get_tag_generator),
) -> Response:
    note, tags = await notes_service.create_note(
        session=session,
        tagger=tagger,
        summary=payload.summary,
        details=payload.details,
        max_notes=settings.max_notes,
    )
    body = _to_schema(note, tags)
    location = str(request.base_url).rstrip("/") + f"/notes/{note.id}"
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=body.model_dump(mode="json", by_alias=True),
        headers={"Location": location},
    )


@router.get("/notes", response_model=list[NoteSchema])
async def list_notes(session: AsyncSession = Depends(get_session)) -> list[NoteSchema]:
    rows = await notes_service.list_notes(session=session)
    return [_to_schema(note, tags) for note, tags in rows]


@router.get("/notes/{note_id}", response_model=NoteSchema)
async def get_note(note_id: str, session: AsyncSession = Depends(get_session)) -> NoteSchema:
    note, tags = await notes_service.get_note(session=session, note_id=note_id)
    return _to_schema(note, tags)


@router.patch("/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_note(
    note_id: str,
    payload: NotePatchRequest,
    session: AsyncSession = Depends(get_session),
    tagger: TagGenerator = Depends(get_tag_generator),
) -> Response:
    _ = await notes_service.update_note(
        session=session,
        tagger=tagger,
        note_id=note_id,
        summary=payload.summary,
        details=payload.details,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(note_id: str, session: AsyncSession = Depends(get_session)) -> Response:
    await notes_service.delete_note(session=session, note_id=note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
