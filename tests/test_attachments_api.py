from __future__ import annotations

import uuid
from pathlib import Path
from typing import cast

import httpx
import pytest

from notekeeper_backend.config import settings
from notekeeper_backend.main import app  # pyright: ignore[reportMissingTypeStubs]


def _make_async_client() -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


def _file(body: bytes, content_type: str = "text/plain") -> dict[str, tuple[str, bytes, str]]:
    return {"fileData": ("upload.bin", body, content_type)}


@pytest.mark.anyio
async def test_put_create_overwrite_and_quota(isolated_settings: Path, make_note):
    note_id = await make_note()

    async with _make_async_client() as client:
        r = await client.put(f"/notes/{note_id}/attachments/a.txt", files=_file(b"hello"))
        assert r.status_code == 201
        assert r.headers["location"] == f"http://test/notes/{note_id}/attachments/a.txt"

        for key in ("b", "c"):
            r = await client.put(f"/notes/{note_id}/attachments/{key}", files=_file(b"x"))
            assert r.status_code == 201

        r = await client.put(f"/notes/{note_id}/attachments/d", files=_file(b"x"))
        assert r.status_code == 403
        body = cast(dict[str, object], r.json())
        assert body["error"] == "attachment_limit_reached"
        assert body["message"] == "Attachment limit reached MaxAttachments [3]"
        assert body["details"] == {"maxAttachments": 3}
        assert body.get("request_id") == r.headers.get("x-request-id")

        r = await client.put(f"/notes/{note_id}/attachments/a.txt", files=_file(b"hello again"))
        assert r.status_code == 204
        assert "location" not in r.headers

        r = await client.get(f"/notes/{note_id}/attachments")
        assert r.status_code == 200
        assert len(r.json()) == 3


@pytest.mark.anyio
async def test_get_and_list_attachment(isolated_settings: Path, make_note):
    note_id = await make_note()

    async with _make_async_client() as client:
        r = await client.put(
            f"/notes/{note_id}/attachments/photo.png", files=_file(b"\x89PNG...", "image/png")
        )
        assert r.status_code == 201

        r = await client.get(f"/notes/{note_id}/attachments/photo.png")
        assert r.status_code == 200
        assert r.content == b"\x89PNG..."
        assert r.headers["content-type"] == "image/png"
        assert 'filename="photo.png"' in r.headers["content-disposition"]

        r = await client.get(f"/notes/{note_id}/attachments")
        assert r.status_code == 200
        items = cast(list[dict[str, object]], r.json())
        assert len(items) == 1
        item = items[0]
        assert item["attachmentId"] == "photo.png"
        assert item["contentType"] == "image/png"
        assert item["length"] == len(b"\x89PNG...")
        assert item["createdDate"]
        assert item["lastModifiedDate"]

    # Local layout: {root}/{note_id}/objects/{key}
    assert (Path(settings.attachments_local_dir) / note_id / "objects" / "photo.png").is_file()


@pytest.mark.anyio
async def test_list_without_attachments_is_empty(isolated_settings: Path, make_note):
    note_id = await make_note()
    async with _make_async_client() as client:
        r = await client.get(f"/notes/{note_id}/attachments")
    assert r.status_code == 200
    assert r.json() == []


@pytest.mark.anyio
async def test_delete_twice_returns_204(isolated_settings: Path, make_note):
    note_id = await make_note()

    async with _make_async_client() as client:
        r = await client.put(f"/notes/{note_id}/attachments/a", files=_file(b"x"))
        assert r.status_code == 201

        r = await client.delete(f"/notes/{note_id}/attachments/a")
        assert r.status_code == 204
        r = await client.delete(f"/notes/{note_id}/attachments/a")
        assert r.status_code == 204

        r = await client.get(f"/notes/{note_id}/attachments/a")
        assert r.status_code == 404
        assert r.json()["error"] == "not_found"


@pytest.mark.anyio
async def test_bad_note_id_and_missing_note(isolated_settings: Path):
    async with _make_async_client() as client:
        r = await client.put("/notes/not-a-uuid/attachments/a", files=_file(b"x"))
        assert r.status_code == 400
        body = cast(dict[str, object], r.json())
        assert body["error"] == "bad_request"
        assert body["message"] == "Invalid noteId format."

        missing = str(uuid.uuid4())
        r = await client.put(f"/notes/{missing}/attachments/a", files=_file(b"x"))
        assert r.status_code == 404
        assert r.json()["message"] == "Note not found."

        r = await client.get(f"/notes/{missing}/attachments")
        assert r.status_code == 404

    assert not (Path(settings.attachments_local_dir) / missing).exists()


@pytest.mark.anyio
async def test_put_requires_file_data(isolated_settings: Path, make_note):
    note_id = await make_note()
    async with _make_async_client() as client:
        r = await client.put(f"/notes/{note_id}/attachments/a", files=_file(b""))
        assert r.status_code == 400
        assert r.json()["message"] == "File data must be provided and not empty."


@pytest.mark.anyio
async def test_put_rejects_oversized_upload(isolated_settings: Path, make_note):
    note_id = await make_note()
    settings.attachments_max_size_bytes = 4

    async with _make_async_client() as client:
        r = await client.put(f"/notes/{note_id}/attachments/big", files=_file(b"0123456789"))
    assert r.status_code == 413
    assert r.json()["error"] == "payload_too_large"


@pytest.mark.anyio
@pytest.mark.parametrize("key", ["x" * 250, "é" * 125])
async def test_longest_allowed_key_round_trips_on_local_storage(
    isolated_settings: Path, make_note, key: str
):
    note_id = await make_note()

    async with _make_async_client() as client:
        r = await client.put(f"/notes/{note_id}/attachments/{key}", files=_file(b"long key"))
        assert r.status_code == 201

        r = await client.get(f"/notes/{note_id}/attachments/{key}")
        assert r.status_code == 200
        assert r.content == b"long key"
        assert r.headers["content-type"].startswith("text/plain")

        r = await client.get(f"/notes/{note_id}/attachments")
        items = cast(list[dict[str, object]], r.json())
        assert [i["attachmentId"] for i in items] == [key]
        assert items[0]["contentType"] == "text/plain"


@pytest.mark.anyio
async def test_key_over_byte_limit_is_rejected_before_storage(isolated_settings: Path, make_note):
    note_id = await make_note()

    async with _make_async_client() as client:
        r = await client.put(f"/notes/{note_id}/attachments/{'é' * 126}", files=_file(b"x"))
        assert r.status_code == 400
        assert r.json()["message"] == "Invalid attachmentId format."

        r = await client.get(f"/notes/{note_id}/attachments")
        assert r.json() == []
