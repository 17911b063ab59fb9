from __future__ import annotations

import json
import logging
import time
import uuid
from pathlib import Path
from typing import Any

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


class LocalMessageQueue:
    """Spools each message as ``{root}/{queue_name}/{ts}-{uuid}.json`` for a local worker to pick up."""

    def __init__(self, *, root_dir: str) -> None:
        self._root = Path(root_dir)

    def queue_path(self, queue_name: str) -> Path:
        name = queue_name.strip()
        if not name or "/" in name or "\\" in name or name in {".", ".."}:
            raise ValueError("invalid queue name")
        return self._root / name

    def pending(self, queue_name: str) -> list[dict[str, Any]]:
        """Messages still in the spool, oldest first."""
        path = self.queue_path(queue_name)
        if not path.is_dir():
            return []
        return [
            json.loads(p.read_text(encoding="utf-8")) for p in sorted(path.glob("*.json"))
        ]

    async def enqueue(self, queue_name: str, payload: dict[str, Any]) -> bool:
        path = self.queue_path(queue_name)
        body = json.dumps(payload).encode("utf-8")

        def _write() -> None:
            path.mkdir(parents=True, exist_ok=True)
            name = f"{time.time_ns():020d}-{uuid.uuid4().hex}"
            tmp_path = path / f".{name}.tmp"
            _ = tmp_path.write_bytes(body)
            _ = tmp_path.replace(path / f"{name}.json")

        try:
            await run_in_threadpool(_write)
        except OSError:
            logger.error("local enqueue failed queue=%s", queue_name, exc_info=True)
            return False
        return True
