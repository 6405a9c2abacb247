"""
Generic HTTP blob API implementation.

The service stores multipart uploads under the requested path and serves
them back at ``/files/{path}``.
"""
from urllib.parse import quote

import httpx

from files_gateway.config import settings
from files_gateway.storage.base import StorageBackend
from files_gateway.storage.exceptions import ObjectNotFoundError, StorageError


class BlobApiStorageBackend(StorageBackend):
    """Storage behind a bearer-authenticated HTTP blob service."""

    provider_name = "blob"

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        base_url = base_url or settings.BLOB_API_BASE_URL
        if not base_url:
            raise ValueError("Blob API base URL is required when using blob storage")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or settings.BLOB_API_KEY
        self._client = client or httpx.AsyncClient(timeout=self.timeout_seconds)

    def _headers(self, tenant: str | None = None) -> dict[str, str]:
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        if tenant:
            headers["X-Tenant-ID"] = tenant
        return headers

    def _file_url(self, key: str) -> str:
        return f"{self.base_url}/files/{quote(key, safe='')}"

    async def _put_object(self, key: str, content: bytes, content_type: str) -> str:
        tenant = key.split("/", 1)[0]
        try:
            response = await self._client.post(
                f"{self.base_url}/upload",
                params={"path": key},
                files={"file": (key.rsplit("/", 1)[-1], content, content_type)},
                headers=self._headers(tenant),
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Blob API upload failed: {e}", details={"key": key}) from e

        if response.status_code not in (200, 201):
            raise StorageError(
                f"Blob API upload failed with status {response.status_code}",
                details={"key": key},
            )
        return response.json().get("path", key)

    async def _delete_object(self, key: str) -> None:
        try:
            response = await self._client.delete(self._file_url(key), headers=self._headers())
        except httpx.HTTPError as e:
            raise StorageError(f"Blob API delete failed: {e}", details={"key": key}) from e

        if response.status_code == 404:
            raise ObjectNotFoundError(key)
        if response.status_code >= 400:
            raise StorageError(
                f"Blob API delete failed with status {response.status_code}",
                details={"key": key},
            )

    async def _get_object(self, key: str) -> bytes:
        try:
            response = await self._client.get(self._file_url(key), headers=self._headers())
        except httpx.HTTPError as e:
            raise StorageError(f"Blob API fetch failed: {e}", details={"key": key}) from e

        if response.status_code == 404:
            raise ObjectNotFoundError(key)
        if response.status_code >= 400:
            raise StorageError(
                f"Blob API fetch failed with status {response.status_code}",
                details={"key": key},
            )
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()
