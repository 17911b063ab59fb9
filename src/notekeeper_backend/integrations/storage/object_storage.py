from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from notekeeper_backend.config import settings
from notekeeper_backend.errors import InvalidArgument

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    content_type: str | None
    created_at: datetime | None
    modified_at: datetime | None
    size: int
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ObjectContent:
    data: bytes
    content_type: str


class ObjectStorage(Protocol):
    """Container-scoped object store. Containers are created on demand and never deleted here."""

    async def ensure_container(self, container: str) -> None: ...

    async def list_objects(self, container: str) -> list[ObjectInfo]: ...

    async def get_object_metadata(self, container: str, key: str) -> ObjectInfo | None: ...

    async def object_exists(self, container: str, key: str) -> bool: ...

    async def put_object(
        self,
        container: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None: ...

    async def get_object(self, container: str, key: str) -> ObjectContent: ...

    async def delete_object(self, container: str, key: str) -> None: ...


def container_name_for(note_id: str) -> str:
    """Map a note id to its storage container name.

    The canonical lowercase UUID form only uses ``[0-9a-f-]`` and is 36 characters,
    which fits S3 bucket/prefix and Azure container naming rules alike.
    """
    try:
        return str(uuid.UUID(note_id.strip())).lower()
    except (AttributeError, ValueError) as exc:
        raise InvalidArgument("Invalid noteId format.", details={"noteId": note_id}) from exc


def get_object_storage() -> ObjectStorage:
    # Default to local storage when S3 config is incomplete.
    if settings.s3_configured():
        from .s3_storage import S3ObjectStorage

        return S3ObjectStorage(
            endpoint_url=settings.s3_endpoint_url,
            region=settings.s3_region,
            bucket=settings.s3_bucket,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            force_path_style=settings.s3_force_path_style,
            timeout_seconds=settings.backend_timeout_seconds,
        )

    from .local_storage import LocalObjectStorage

    return LocalObjectStorage(root_dir=settings.attachments_local_dir)
