from __future__ import annotations

import inspect
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable, Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
from alembic import command
from alembic.config import Config

from notekeeper_backend.config import settings
from notekeeper_backend.db import (
    dispose_engine_cache,
    get_engine,
    reset_engine_cache,
    session_scope,
)
from notekeeper_backend.integrations.storage.object_storage import (
    DEFAULT_CONTENT_TYPE,
    ObjectContent,
    ObjectInfo,
)
from notekeeper_backend.main import app
from notekeeper_backend.models import Note


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
async def _dispose_engine_cache_per_test(  # pyright: ignore[reportUnusedFunction]
    anyio_backend: object,  # noqa: ARG001
) -> AsyncGenerator[None, None]:
    # Dispose the cached AsyncEngine (aiosqlite worker thread) while the
    # per-test event loop is still alive.
    _ = anyio_backend
    yield

    if get_engine.cache_info().currsize:
        result = get_engine().dispose()
        if inspect.isawaitable(result):
            await result

    get_engine.cache_clear()


def _alembic_upgrade_head() -> None:
    cfg = Config("alembic.ini")
    command.upgrade(cfg, "head")


@pytest.fixture
def isolated_settings(tmp_path: Path) -> Iterator[Path]:
    """Point DB, attachment storage and queue spool at tmp_path; restore afterwards."""
    old = {
        "database_url": settings.database_url,
        "attachments_local_dir": settings.attachments_local_dir,
        "attachments_max_size_bytes": settings.attachments_max_size_bytes,
        "queue_local_dir": settings.queue_local_dir,
        "max_attachments_per_note": settings.max_attachments_per_note,
        "max_notes": settings.max_notes,
        "archive_public_base_url": settings.archive_public_base_url,
        "s3_bucket": settings.s3_bucket,
        "sqs_endpoint_url": settings.sqs_endpoint_url,
        "ai_deployment_uri": settings.ai_deployment_uri,
    }
    try:
        settings.database_url = f"sqlite:///{tmp_path / 'test.db'}"
        settings.attachments_local_dir = str(tmp_path / "attachments")
        settings.attachments_max_size_bytes = 25 * 1024 * 1024
        settings.queue_local_dir = str(tmp_path / "queues")
        settings.max_attachments_per_note = 3
        settings.max_notes = 0
        settings.archive_public_base_url = "https://notes.example.com"
        # Force local backends and no AI calls.
        settings.s3_bucket = ""
        settings.sqs_endpoint_url = ""
        settings.ai_deployment_uri = ""
        reset_engine_cache()
        _alembic_upgrade_head()
        yield tmp_path
    finally:
        for name, value in old.items():
            setattr(settings, name, value)
        app.dependency_overrides.clear()


def pytest_sessionfinish(session: object, exitstatus: int) -> None:  # noqa: ARG001
    # Safety net: close cached engine so CI can exit cleanly.
    _ = session, exitstatus
    dispose_engine_cache()


class InMemoryObjectStorage:
    """ObjectStorage double that records calls and can fail chosen operations."""

    def __init__(self) -> None:
        self.containers: dict[str, dict[str, dict[str, Any]]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()

    def _record(self, op: str, container: str) -> None:
        self.calls.append((op, container))
        if op in self.fail_on:
            raise RuntimeError(f"backend {op} failed")

    def count(self, container: str) -> int:
        return len(self.containers.get(container, {}))

    async def ensure_container(self, container: str) -> None:
        self._record("ensure_container", container)
        self.containers.setdefault(container, {})

    async def list_objects(self, container: str) -> list[ObjectInfo]:
        self._record("list_objects", container)
        return [
            ObjectInfo(
                key=key,
                content_type=obj["content_type"],
                created_at=obj["created_at"],
                modified_at=obj["modified_at"],
                size=len(obj["data"]),
                metadata=dict(obj["metadata"]),
            )
            for key, obj in self.containers.get(container, {}).items()
        ]

    async def get_object_metadata(self, container: str, key: str) -> ObjectInfo | None:
        self._record("get_object_metadata", container)
        for info in await self.list_objects(container):
            if info.key == key:
                return info
        return None

    async def object_exists(self, container: str, key: str) -> bool:
        self._record("object_exists", container)
        return key in self.containers.get(container, {})

    async def put_object(
        self,
        container: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        self._record("put_object", container)
        bucket = self.containers.setdefault(container, {})
        now = datetime.now(timezone.utc)
        created_at = bucket[key]["created_at"] if key in bucket else now
        bucket[key] = {
            "data": data,
            "content_type": content_type or DEFAULT_CONTENT_TYPE,
            "metadata": dict(metadata or {}),
            "created_at": created_at,
            "modified_at": now,
        }

    async def get_object(self, container: str, key: str) -> ObjectContent:
        self._record("get_object", container)
        obj = self.containers[container][key]
        return ObjectContent(data=obj["data"], content_type=obj["content_type"])

    async def delete_object(self, container: str, key: str) -> None:
        self._record("delete_object", container)
        _ = self.containers.get(container, {}).pop(key, None)


class RecordingQueue:
    def __init__(self, *, accept: bool = True) -> None:
        self.accept = accept
        self.messages: list[tuple[str, dict[str, Any]]] = []

    async def enqueue(self, queue_name: str, payload: dict[str, Any]) -> bool:
        if not self.accept:
            return False
        self.messages.append((queue_name, dict(payload)))
        return True


@pytest.fixture
def memory_storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture
def recording_queue() -> RecordingQueue:
    return RecordingQueue()


async def create_note_row(summary: str = "Groceries", details: str = "Milk and eggs") -> str:
    note_id = str(uuid.uuid4())
    async with session_scope() as session:
        session.add(Note(id=note_id, summary=summary, details=details))
        await session.commit()
    return note_id


@pytest.fixture
def make_note() -> Callable[..., Awaitable[str]]:
    return create_note_row
