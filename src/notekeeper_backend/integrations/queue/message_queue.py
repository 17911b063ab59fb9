from __future__ import annotations

from typing import Any, Protocol

from notekeeper_backend.config import settings


class MessageQueue(Protocol):
    async def enqueue(self, queue_name: str, payload: dict[str, Any]) -> bool:
        """Hand one JSON message to the queue; False means it was not accepted."""
        ...


def get_message_queue() -> MessageQueue:
    # Default to the local spool when SQS config is incomplete.
    if settings.sqs_configured():
        from .sqs_queue import SqsMessageQueue

        return SqsMessageQueue(
            endpoint_url=settings.sqs_endpoint_url,
            region=settings.sqs_region,
            access_key_id=settings.sqs_access_key_id,
            secret_access_key=settings.sqs_secret_access_key,
            timeout_seconds=settings.backend_timeout_seconds,
        )

    from .local_queue import LocalMessageQueue

    return LocalMessageQueue(root_dir=settings.queue_local_dir)
