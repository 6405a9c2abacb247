"""
CDN-backed image host implementation (Cloudinary REST API).

Only images are accepted. The storage key is the Cloudinary ``public_id``
(``{tenant}/{generatedName}`` without the extension); objects are fetched
back from the delivery URL.
"""
import hashlib
import time

import httpx

from files_gateway.config import settings
from files_gateway.models import UploadRequest
from files_gateway.storage.base import StorageBackend
from files_gateway.exceptions import UnsupportedFileTypeError
from files_gateway.storage.exceptions import ObjectNotFoundError, StorageError
from files_gateway.utils.validators import ALLOWED_FILE_TYPES

API_BASE_URL = "https://api.cloudinary.com/v1_1"
DELIVERY_BASE_URL = "https://res.cloudinary.com"


class CloudinaryStorageBackend(StorageBackend):
    """Image hosting on Cloudinary."""

    provider_name = "cloudinary"

    def __init__(
        self,
        cloud_name: str | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
        client: httpx.AsyncClient | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.cloud_name = cloud_name or settings.CLOUDINARY_CLOUD_NAME
        self.api_key = api_key or settings.CLOUDINARY_API_KEY
        self.api_secret = api_secret or settings.CLOUDINARY_API_SECRET
        if not (self.cloud_name and self.api_key and self.api_secret):
            raise ValueError("Cloudinary cloud name, API key and API secret are required")
        self._client = client or httpx.AsyncClient(timeout=self.timeout_seconds)

    def validate_upload(self, file: UploadRequest) -> None:
        if not file.mime_type.startswith("image/"):
            raise UnsupportedFileTypeError(file.mime_type, ALLOWED_FILE_TYPES["image"])

    def build_key(self, original_name: str, tenant_id: str | None = None) -> str:
        # Cloudinary appends the format itself; the public id has no extension
        key = super().build_key(original_name, tenant_id)
        stem, dot, _ = key.rpartition(".")
        return stem if dot and "/" not in key[len(stem):] else key

    def sign(self, params: dict) -> str:
        """Cloudinary request signature: sha1 of sorted params plus secret."""
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode()).hexdigest()

    def _signed(self, **params) -> dict:
        params["timestamp"] = int(time.time())
        return {**params, "api_key": self.api_key, "signature": self.sign(params)}

    async def _put_object(self, key: str, content: bytes, content_type: str) -> str:
        url = f"{API_BASE_URL}/{self.cloud_name}/image/upload"
        try:
            response = await self._client.post(
                url,
                data=self._signed(public_id=key),
                files={"file": (key.rsplit("/", 1)[-1], content, content_type)},
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Cloudinary upload failed: {e}", details={"key": key}) from e

        if response.status_code != 200:
            raise StorageError(
                f"Cloudinary upload failed with status {response.status_code}",
                details={"key": key},
            )
        return response.json().get("public_id", key)

    async def _delete_object(self, key: str) -> None:
        url = f"{API_BASE_URL}/{self.cloud_name}/image/destroy"
        try:
            response = await self._client.post(url, data=self._signed(public_id=key))
        except httpx.HTTPError as e:
            raise StorageError(f"Cloudinary delete failed: {e}", details={"key": key}) from e

        if response.status_code != 200:
            raise StorageError(
                f"Cloudinary delete failed with status {response.status_code}",
                details={"key": key},
            )
        result = response.json().get("result")
        if result == "not found":
            raise ObjectNotFoundError(key)
        if result != "ok":
            raise StorageError(f"Cloudinary delete returned {result!r}", details={"key": key})

    async def _get_object(self, key: str) -> bytes:
        url = f"{DELIVERY_BASE_URL}/{self.cloud_name}/image/upload/{key}"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise StorageError(f"Cloudinary fetch failed: {e}", details={"key": key}) from e

        if response.status_code == 404:
            raise ObjectNotFoundError(key)
        if response.status_code != 200:
            raise StorageError(
                f"Cloudinary fetch failed with status {response.status_code}",
                details={"key": key},
            )
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()
