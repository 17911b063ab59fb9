from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from botocore.config import Config
from botocore.exceptions import ClientError
from starlette.concurrency import run_in_threadpool

from .object_storage import DEFAULT_CONTENT_TYPE, ObjectContent, ObjectInfo

# S3 user metadata keys are lowercased by the service; keep ours lowercase too.
_CREATED_AT_META = "created-at"
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound", "NoSuchBucket"}


@dataclass(frozen=True)
class S3Config:
    endpoint_url: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str
    force_path_style: bool


def _is_not_found(exc: ClientError) -> bool:
    code = str(exc.response.get("Error", {}).get("Code", ""))
    return code in _NOT_FOUND_CODES


def _parse_dt(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class S3ObjectStorage:
    """One shared bucket; each container is the key prefix ``{container}/``."""

    def __init__(
        self,
        *,
        endpoint_url: str,
        region: str,
        bucket: str,
        access_key_id: str,
        secret_access_key: str,
        force_path_style: bool,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._cfg = S3Config(
            endpoint_url=endpoint_url,
            region=region,
            bucket=bucket,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            force_path_style=force_path_style,
        )

        import boto3

        addressing_style = "path" if force_path_style else "virtual"
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region or None,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(
                s3={"addressing_style": addressing_style},
                connect_timeout=timeout_seconds,
                read_timeout=timeout_seconds,
                retries={"total_max_attempts": 1},
            ),
        )

    def _key(self, container: str, key: str) -> str:
        return f"{container}/{key}"

    def _head(self, container: str, key: str) -> dict[str, Any] | None:
        try:
            return self._client.head_object(Bucket=self._cfg.bucket, Key=self._key(container, key))
        except ClientError as exc:
            if _is_not_found(exc):
                return None
            raise

    def _info_from_head(self, key: str, head: dict[str, Any]) -> ObjectInfo:
        metadata = {str(k): str(v) for k, v in (head.get("Metadata") or {}).items()}
        modified_at = head.get("LastModified")
        created_at = _parse_dt(metadata.get(_CREATED_AT_META)) or modified_at
        return ObjectInfo(
            key=key,
            content_type=head.get("ContentType"),
            created_at=created_at,
            modified_at=modified_at,
            size=int(head.get("ContentLength") or 0),
            metadata=metadata,
        )

    async def ensure_container(self, container: str) -> None:
        _ = container

        def _ensure() -> None:
            try:
                self._client.head_bucket(Bucket=self._cfg.bucket)
                return
            except ClientError as exc:
                if not _is_not_found(exc):
                    raise
            kwargs: dict[str, object] = {"Bucket": self._cfg.bucket, "ACL": "private"}
            if self._cfg.region and self._cfg.region != "us-east-1":
                kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self._cfg.region}
            try:
                self._client.create_bucket(**kwargs)
            except ClientError as exc:
                # Lost a creation race with another request; the bucket is there.
                code = str(exc.response.get("Error", {}).get("Code", ""))
                if code not in {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}:
                    raise

        await run_in_threadpool(_ensure)

    async def list_objects(self, container: str) -> list[ObjectInfo]:
        prefix = f"{container}/"

        def _list() -> list[ObjectInfo]:
            out: list[ObjectInfo] = []
            paginator = self._client.get_paginator("list_objects_v2")
            try:
                for page in paginator.paginate(Bucket=self._cfg.bucket, Prefix=prefix):
                    for item in page.get("Contents") or []:
                        key = str(item["Key"])[len(prefix) :]
                        if not key:
                            continue
                        # list_objects_v2 does not return content type or user metadata.
                        head = self._head(container, key)
                        if head is None:
                            continue
                        out.append(self._info_from_head(key, head))
            except ClientError as exc:
                if _is_not_found(exc):
                    return []
                raise
            return out

        return await run_in_threadpool(_list)

    async def get_object_metadata(self, container: str, key: str) -> ObjectInfo | None:
        def _get() -> ObjectInfo | None:
            head = self._head(container, key)
            return None if head is None else self._info_from_head(key, head)

        return await run_in_threadpool(_get)

    async def object_exists(self, container: str, key: str) -> bool:
        head = await run_in_threadpool(self._head, container, key)
        return head is not None

    async def put_object(
        self,
        container: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        def _put() -> None:
            # Preserve the original creation time across overwrites.
            previous = self._head(container, key)
            now = datetime.now(timezone.utc).isoformat()
            created_at = now
            if previous is not None:
                created_at = (previous.get("Metadata") or {}).get(_CREATED_AT_META) or now

            user_metadata = {str(k).lower(): str(v) for k, v in (metadata or {}).items()}
            user_metadata[_CREATED_AT_META] = created_at

            self._client.put_object(
                Bucket=self._cfg.bucket,
                Key=self._key(container, key),
                Body=data,
                ContentType=content_type or DEFAULT_CONTENT_TYPE,
                Metadata=user_metadata,
            )

        await run_in_threadpool(_put)

    async def get_object(self, container: str, key: str) -> ObjectContent:
        def _get() -> ObjectContent:
            resp = self._client.get_object(Bucket=self._cfg.bucket, Key=self._key(container, key))
            body = resp.get("Body")
            # StreamingBody.read() is blocking; run in threadpool.
            data = body.read() if body is not None else b""
            return ObjectContent(
                data=data, content_type=resp.get("ContentType") or DEFAULT_CONTENT_TYPE
            )

        return await run_in_threadpool(_get)

    async def delete_object(self, container: str, key: str) -> None:
        def _delete() -> None:
            self._client.delete_object(Bucket=self._cfg.bucket, Key=self._key(container, key))

        await run_in_threadpool(_delete)
