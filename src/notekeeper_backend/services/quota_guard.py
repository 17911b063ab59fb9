"""Best-effort admission control for new attachment keys.

The decision holds only at observation time. Concurrent first-time uploads to a
container at ``limit - 1`` can all observe room and all be admitted, so the
container may briefly exceed the limit by up to (concurrent uploads - 1).
Strict enforcement would need per-container serialization; overwrites never
consult this guard because they do not change the count.
"""

from __future__ import annotations

import logging

from notekeeper_backend.errors import QuotaExceeded
from notekeeper_backend.integrations.storage.object_storage import ObjectStorage

logger = logging.getLogger(__name__)


async def ensure_quota_allows_new_object(
    storage: ObjectStorage, *, container: str, max_objects: int
) -> int:
    """Raise QuotaExceeded if the container is full; otherwise return the observed count."""
    count = len(await storage.list_objects(container))
    if count >= max_objects:
        logger.warning(
            "attachment limit reached container=%s count=%s max=%s", container, count, max_objects
        )
        raise QuotaExceeded(max_objects)
    return count
