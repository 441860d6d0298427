"""S3 (or S3-compatible) implementation of BlobStore.

boto3 is synchronous; calls run in a worker thread.
"""

import asyncio
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from toolgate.db.errors import ConnectionError
from toolgate.observability.logging import get_logger
from toolgate.providers.blob.base import BlobStore

logger = get_logger(__name__)


def _botocore_config() -> Config:
    return Config(
        retries={"max_attempts": 5, "mode": "adaptive"},
        connect_timeout=2,
        read_timeout=12,
    )


class S3BlobStore(BlobStore):
    """BlobStore over one bucket with an optional key prefix."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: str | None = None,
        endpoint_url: str | None = None,
        client: Any = None,
    ) -> None:
        self._bucket = bucket
        self._prefix = prefix.strip("/")
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            config=_botocore_config(),
        )

    def _key(self, key: str) -> str:
        return f"{self._prefix}/{key}" if self._prefix else key

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> None:
        params: dict[str, Any] = {"Bucket": self._bucket, "Key": self._key(key), "Body": data}
        if content_type:
            params["ContentType"] = content_type
        try:
            await asyncio.to_thread(self._client.put_object, **params)
        except ClientError as e:
            logger.error("s3_put_error", key=key, error=str(e))
            raise ConnectionError(f"Failed to store blob: {e}", cause=e) from e

    async def get(self, key: str) -> bytes | None:
        try:
            response = await asyncio.to_thread(
                self._client.get_object, Bucket=self._bucket, Key=self._key(key)
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            logger.error("s3_get_error", key=key, error=str(e))
            raise ConnectionError(f"Failed to read blob: {e}", cause=e) from e
        return await asyncio.to_thread(response["Body"].read)

    async def list_keys(self, prefix: str) -> list[str]:
        full_prefix = self._key(prefix)
        strip = len(self._prefix) + 1 if self._prefix else 0

        def _list() -> list[str]:
            keys: list[str] = []
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=full_prefix):
                keys.extend(obj["Key"][strip:] for obj in page.get("Contents", []))
            return keys

        try:
            return sorted(await asyncio.to_thread(_list))
        except ClientError as e:
            logger.error("s3_list_error", prefix=prefix, error=str(e))
            raise ConnectionError(f"Failed to list blobs: {e}", cause=e) from e

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.delete_object, Bucket=self._bucket, Key=self._key(key)
            )
        except ClientError as e:
            logger.error("s3_delete_error", key=key, error=str(e))
            raise ConnectionError(f"Failed to delete blob: {e}", cause=e) from e
