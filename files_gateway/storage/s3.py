"""
Object storage implementation for S3-compatible services.

Uses an ``aioboto3`` session; each operation opens a short-lived client.
"""
from typing import Any

import aioboto3
from botocore.exceptions import ClientError

from files_gateway.config import settings
from files_gateway.storage.base import StorageBackend
from files_gateway.storage.exceptions import ObjectNotFoundError, StorageError

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class S3StorageBackend(StorageBackend):
    """S3-compatible object storage."""

    provider_name = "s3"

    def __init__(
        self,
        bucket_name: str | None = None,
        session: Any | None = None,
        endpoint_url: str | None = None,
        region_name: str | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.bucket_name = bucket_name or settings.S3_BUCKET_NAME
        if not self.bucket_name:
            raise ValueError("S3 bucket name is required when using S3 storage")

        self.endpoint_url = endpoint_url or settings.S3_ENDPOINT_URL
        self.session = session or aioboto3.Session(
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=region_name or settings.S3_REGION,
        )

    def _get_client(self):
        return self.session.client("s3", endpoint_url=self.endpoint_url)

    async def _put_object(self, key: str, content: bytes, content_type: str) -> str:
        try:
            async with self._get_client() as s3_client:
                await s3_client.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=content,
                    ContentType=content_type,
                )
        except ClientError as e:
            raise self._map_error(e, key) from e
        return key

    async def _delete_object(self, key: str) -> None:
        try:
            async with self._get_client() as s3_client:
                # DeleteObject succeeds for missing keys, so probe first
                await s3_client.head_object(Bucket=self.bucket_name, Key=key)
                await s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            raise self._map_error(e, key) from e

    async def _get_object(self, key: str) -> bytes:
        try:
            async with self._get_client() as s3_client:
                response = await s3_client.get_object(Bucket=self.bucket_name, Key=key)
                return await response["Body"].read()
        except ClientError as e:
            raise self._map_error(e, key) from e

    def _map_error(self, error: ClientError, key: str) -> StorageError:
        error_info = error.response.get("Error", {})
        error_code = str(error_info.get("Code", ""))
        if error_code in _NOT_FOUND_CODES:
            return ObjectNotFoundError(key)
        if error_code == "NoSuchBucket":
            return StorageError(f"S3 bucket '{self.bucket_name}' does not exist", details={"key": key})
        if error_code in ("AccessDenied", "InvalidAccessKeyId"):
            return StorageError("Access denied to S3 bucket", details={"key": key})
        message = error_info.get("Message", str(error))
        return StorageError(f"S3 request failed: {message}", details={"key": key, "code": error_code})
