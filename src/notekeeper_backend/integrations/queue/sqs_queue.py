from __future__ import annotations

import json
import logging
from typing import Any

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


class SqsMessageQueue:
    def __init__(
        self,
        *,
        endpoint_url: str,
        region: str,
        access_key_id: str,
        secret_access_key: str,
        timeout_seconds: float = 30.0,
    ) -> None:
        import boto3

        self._client = boto3.client(
            "sqs",
            endpoint_url=endpoint_url,
            region_name=region or None,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(
                connect_timeout=timeout_seconds,
                read_timeout=timeout_seconds,
                retries={"total_max_attempts": 1},
            ),
        )

    async def enqueue(self, queue_name: str, payload: dict[str, Any]) -> bool:
        body = json.dumps(payload)

        def _send() -> None:
            queue_url = self._client.get_queue_url(QueueName=queue_name)["QueueUrl"]
            self._client.send_message(QueueUrl=queue_url, MessageBody=body)

        try:
            await run_in_threadpool(_send)
        except (BotoCoreError, ClientError):
            logger.error("sqs enqueue failed queue=%s", queue_name, exc_info=True)
            return False
        return True
