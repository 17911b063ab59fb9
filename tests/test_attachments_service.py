from __future__ import annotations

import uuid
from pathlib import Path

import pytest

from notekeeper_backend.db import session_scope
from notekeeper_backend.errors import InvalidArgument, NotFound, QuotaExceeded, StorageFailure
from notekeeper_backend.services import attachments_service
from notekeeper_backend.services.attachments_service import DeleteResult


async def _put(storage, note_id: str, key: str, data: bytes = b"x", *, max_attachments: int = 3):
    async with session_scope() as session:
        return await attachments_service.put_attachment(
            session=session,
            storage=storage,
            note_id=note_id,
            attachment_id=key,
            data=data,
            content_type="text/plain",
            max_attachments=max_attachments,
        )


@pytest.mark.anyio
async def test_quota_rejects_fourth_key_but_admits_overwrite(
    isolated_settings: Path, memory_storage, make_note
):
    note_id = await make_note()

    for key in ("a", "b", "c"):
        result = await _put(memory_storage, note_id, key)
        assert result.created is True
        assert result.location == f"/notes/{note_id}/attachments/{key}"

    with pytest.raises(QuotaExceeded) as excinfo:
        _ = await _put(memory_storage, note_id, "d")
    assert excinfo.value.details == {"maxAttachments": 3}
    assert excinfo.value.message == "Attachment limit reached MaxAttachments [3]"
    assert memory_storage.count(note_id) == 3

    overwrite = await _put(memory_storage, note_id, "a", b"new body")
    assert overwrite.created is False
    assert memory_storage.count(note_id) == 3


@pytest.mark.anyio
async def test_put_then_get_returns_same_bytes_and_records_note_metadata(
    isolated_settings: Path, memory_storage, make_note
):
    note_id = await make_note()
    _ = await _put(memory_storage, note_id, "report.pdf", b"%PDF-1.7 body")

    async with session_scope() as session:
        content = await attachments_service.get_attachment(
            session=session, storage=memory_storage, note_id=note_id, attachment_id="report.pdf"
        )
    assert content.data == b"%PDF-1.7 body"
    assert content.content_type == "text/plain"

    stored = memory_storage.containers[note_id]["report.pdf"]
    assert stored["metadata"] == {"noteid": note_id}


@pytest.mark.anyio
async def test_overwrite_keeps_created_timestamp(
    isolated_settings: Path, memory_storage, make_note
):
    note_id = await make_note()
    _ = await _put(memory_storage, note_id, "a", b"v1")
    created = memory_storage.containers[note_id]["a"]["created_at"]
    _ = await _put(memory_storage, note_id, "a", b"v2")

    stored = memory_storage.containers[note_id]["a"]
    assert stored["created_at"] == created
    assert stored["modified_at"] >= created
    assert stored["data"] == b"v2"


@pytest.mark.anyio
async def test_delete_is_idempotent(isolated_settings: Path, memory_storage, make_note):
    note_id = await make_note()
    _ = await _put(memory_storage, note_id, "a")

    async with session_scope() as session:
        first = await attachments_service.delete_attachment(
            session=session, storage=memory_storage, note_id=note_id, attachment_id="a"
        )
        second = await attachments_service.delete_attachment(
            session=session, storage=memory_storage, note_id=note_id, attachment_id="a"
        )
    assert first is DeleteResult.DELETED
    assert second is DeleteResult.ALREADY_ABSENT
    assert memory_storage.count(note_id) == 0


@pytest.mark.anyio
async def test_list_attachments_empty_and_populated(
    isolated_settings: Path, memory_storage, make_note
):
    note_id = await make_note()
    async with session_scope() as session:
        empty = await attachments_service.list_attachments(
            session=session, storage=memory_storage, note_id=note_id
        )
    assert empty == []

    _ = await _put(memory_storage, note_id, "a", b"12345")
    _ = await _put(memory_storage, note_id, "b")
    async with session_scope() as session:
        items = await attachments_service.list_attachments(
            session=session, storage=memory_storage, note_id=note_id
        )
    by_key = {i.key: i for i in items}
    assert set(by_key) == {"a", "b"}
    assert by_key["a"].size == 5
    assert by_key["a"].content_type == "text/plain"


@pytest.mark.anyio
async def test_missing_note_never_touches_storage(isolated_settings: Path, memory_storage):
    missing = str(uuid.uuid4())
    with pytest.raises(NotFound):
        _ = await _put(memory_storage, missing, "a")
    async with session_scope() as session:
        with pytest.raises(NotFound):
            _ = await attachments_service.get_attachment(
                session=session, storage=memory_storage, note_id=missing, attachment_id="a"
            )
    assert memory_storage.calls == []


@pytest.mark.anyio
async def test_invalid_arguments_rejected_before_storage(
    isolated_settings: Path, memory_storage, make_note
):
    note_id = await make_note()

    with pytest.raises(InvalidArgument, match="Invalid noteId format."):
        _ = await _put(memory_storage, "not-a-uuid", "a")
    with pytest.raises(InvalidArgument, match="Invalid attachmentId format."):
        _ = await _put(memory_storage, note_id, "../escape")
    with pytest.raises(InvalidArgument, match="File data must be provided and not empty."):
        _ = await _put(memory_storage, note_id, "a", b"")
    assert memory_storage.calls == []


@pytest.mark.anyio
async def test_get_missing_attachment_is_not_found(
    isolated_settings: Path, memory_storage, make_note
):
    note_id = await make_note()
    async with session_scope() as session:
        with pytest.raises(NotFound, match="Attachment not found."):
            _ = await attachments_service.get_attachment(
                session=session, storage=memory_storage, note_id=note_id, attachment_id="nope"
            )


@pytest.mark.anyio
async def test_backend_error_is_wrapped_with_cause(
    isolated_settings: Path, memory_storage, make_note
):
    note_id = await make_note()
    memory_storage.fail_on = {"put_object"}

    with pytest.raises(StorageFailure) as excinfo:
        _ = await _put(memory_storage, note_id, "a")
    assert excinfo.value.message == "Error uploading attachment."
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert memory_storage.count(note_id) == 0
