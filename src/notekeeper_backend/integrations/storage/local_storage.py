from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from starlette.concurrency import run_in_threadpool

from .object_storage import DEFAULT_CONTENT_TYPE, ObjectContent, ObjectInfo

# Layout: {root}/{container}/objects/{key} plus a JSON sidecar at {root}/{container}/meta/{key}.json
_OBJECTS_DIR = "objects"
_META_DIR = "meta"
_TMP_DIR = "tmp"


def _safe_name(value: str) -> str:
    parts = [p for p in PurePosixPath(value).parts if p not in {"/", ""}]
    if len(parts) != 1 or parts[0] in {"..", "."} or "\\" in parts[0]:
        raise ValueError("invalid storage key")
    return parts[0]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _write_atomic(path: Path, data: bytes, *, tmp_dir: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_dir.mkdir(parents=True, exist_ok=True)
    tmp_path = tmp_dir / uuid.uuid4().hex
    _ = tmp_path.write_bytes(data)
    _ = tmp_path.replace(path)


class LocalObjectStorage:
    def __init__(self, *, root_dir: str) -> None:
        self._root = Path(root_dir)

    def container_path(self, container: str) -> Path:
        return self._root / _safe_name(container)

    def resolve_path(self, container: str, key: str) -> Path:
        return self.container_path(container) / _OBJECTS_DIR / _safe_name(key)

    def _meta_path(self, container: str, key: str) -> Path:
        return self.container_path(container) / _META_DIR / (_safe_name(key) + ".json")

    def _read_info(self, container: str, key: str) -> ObjectInfo | None:
        path = self.resolve_path(container, key)
        if not path.is_file():
            return None
        meta_path = self._meta_path(container, key)
        meta: dict[str, object] = {}
        if meta_path.is_file():
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
        stat = path.stat()
        raw_metadata = meta.get("metadata")
        custom = (
            {str(k): str(v) for k, v in raw_metadata.items()}
            if isinstance(raw_metadata, dict)
            else {}
        )
        content_type = meta.get("content_type")
        return ObjectInfo(
            key=key,
            content_type=content_type if isinstance(content_type, str) else None,
            created_at=_parse_dt(meta.get("created_at")),
            modified_at=_parse_dt(meta.get("modified_at"))
            or datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            size=stat.st_size,
            metadata=custom,
        )

    async def ensure_container(self, container: str) -> None:
        path = self.container_path(container) / _OBJECTS_DIR
        await run_in_threadpool(path.mkdir, parents=True, exist_ok=True)

    async def list_objects(self, container: str) -> list[ObjectInfo]:
        objects_dir = self.container_path(container) / _OBJECTS_DIR

        def _list() -> list[ObjectInfo]:
            if not objects_dir.is_dir():
                return []
            out: list[ObjectInfo] = []
            for child in objects_dir.iterdir():
                if not child.is_file():
                    continue
                info = self._read_info(container, child.name)
                if info is not None:
                    out.append(info)
            return out

        return await run_in_threadpool(_list)

    async def get_object_metadata(self, container: str, key: str) -> ObjectInfo | None:
        return await run_in_threadpool(self._read_info, container, key)

    async def object_exists(self, container: str, key: str) -> bool:
        path = self.resolve_path(container, key)
        return await run_in_threadpool(path.is_file)

    async def put_object(
        self,
        container: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        path = self.resolve_path(container, key)
        meta_path = self._meta_path(container, key)
        tmp_dir = self.container_path(container) / _TMP_DIR

        def _write() -> None:
            now = _utc_now().isoformat()
            created_at = now
            if meta_path.is_file() and path.is_file():
                previous = json.loads(meta_path.read_text(encoding="utf-8"))
                created_at = previous.get("created_at") or now
            # Body first, then the sidecar: a crash in between leaves stale metadata only.
            _write_atomic(path, data, tmp_dir=tmp_dir)
            sidecar = {
                "content_type": content_type or DEFAULT_CONTENT_TYPE,
                "metadata": dict(metadata or {}),
                "created_at": created_at,
                "modified_at": now,
            }
            _write_atomic(meta_path, json.dumps(sidecar).encode("utf-8"), tmp_dir=tmp_dir)

        await run_in_threadpool(_write)

    async def get_object(self, container: str, key: str) -> ObjectContent:
        path = self.resolve_path(container, key)

        def _read() -> ObjectContent:
            data = path.read_bytes()
            info = self._read_info(container, key)
            content_type = info.content_type if info is not None else None
            return ObjectContent(data=data, content_type=content_type or DEFAULT_CONTENT_TYPE)

        return await run_in_threadpool(_read)

    async def delete_object(self, container: str, key: str) -> None:
        path = self.resolve_path(container, key)
        meta_path = self._meta_path(container, key)

        def _delete() -> None:
            path.unlink(missing_ok=True)
            meta_path.unlink(missing_ok=True)

        await run_in_threadpool(_delete)
