"""
Abstract base class for storage backends.

This module defines the uniform {upload, delete, get} capability every
provider exposes. The public methods own key construction, policy
validation, timeouts, rollback and logging; providers only implement the
raw object operations.
"""
import asyncio
import time
from abc import ABC, abstractmethod

from files_gateway.config import settings
from files_gateway.logging_config import setup_logging
from files_gateway.models import UploadRequest
from files_gateway.storage.exceptions import ObjectNotFoundError, StorageError
from files_gateway.utils.formatting import format_file_size
from files_gateway.utils.naming import generate_object_name
from files_gateway.utils.validators import validate_file, validate_key, validate_tenant_id

logger = setup_logging()


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    All storage implementations (local filesystem, object store, CDN image
    host, HTTP blob API) implement the ``_put_object``, ``_delete_object``
    and ``_get_object`` primitives.
    """

    provider_name: str = "abstract"

    def __init__(
        self,
        default_tenant: str | None = None,
        timeout_seconds: float | None = None,
    ):
        self.default_tenant = default_tenant or settings.DEFAULT_TENANT
        self.timeout_seconds = timeout_seconds or settings.STORAGE_TIMEOUT_SECONDS

    # Key resolution

    def build_key(self, original_name: str, tenant_id: str | None = None) -> str:
        """Return a fresh ``{tenant}/{generatedName}`` key for an upload."""
        tenant = validate_tenant_id(tenant_id or self.default_tenant)
        return f"{tenant}/{generate_object_name(original_name)}"

    def resolve_key(self, key: str, tenant_id: str | None = None) -> str:
        """
        Resolve a caller-supplied key to a full storage key.

        A key that already contains ``/`` is used verbatim: keys returned by
        ``upload`` embed their tenant and can be deleted or fetched without
        restating it. Bare names are prefixed with the tenant (explicit or
        default).
        """
        if "/" in key:
            return validate_key(key)
        tenant = validate_tenant_id(tenant_id or self.default_tenant)
        return validate_key(f"{tenant}/{key}")

    # Public capability

    async def upload(self, file: UploadRequest, tenant_id: str | None = None) -> str:
        """
        Validate and persist a file.

        Args:
            file: File to store
            tenant_id: Tenant namespace (default tenant when omitted)

        Returns:
            The storage key of the new object

        Raises:
            ValidationError: If the file fails the MIME/size policy
            StorageError: If the backend fails (after a best-effort rollback)
        """
        validate_file(file.mime_type, file.size_bytes)
        self.validate_upload(file)
        key = self.build_key(file.original_name, tenant_id)
        start = time.perf_counter()

        if settings.is_development:
            logger.info(
                f"Upload started: provider={self.provider_name}, tenant={tenant_id}, "
                f"file={file.original_name}, size={format_file_size(file.size_bytes)}"
            )

        try:
            stored_key = await self._bounded(
                self._put_object(key, file.content, file.mime_type), "upload", key
            )
        except Exception as e:
            logger.error(
                f"Upload failed: provider={self.provider_name}, tenant={tenant_id}, "
                f"key={key}, error={e}"
            )
            await self._rollback(key)
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            f"Upload completed: provider={self.provider_name}, key={stored_key}, "
            f"size={format_file_size(file.size_bytes)}, duration={duration_ms}ms"
        )
        return stored_key

    async def delete(self, key: str, tenant_id: str | None = None) -> None:
        """
        Delete an object.

        Raises:
            ObjectNotFoundError: If the key does not exist
            StorageError: If the backend fails
        """
        full_key = self.resolve_key(key, tenant_id)
        start = time.perf_counter()
        try:
            await self._bounded(self._delete_object(full_key), "delete", full_key)
        except Exception as e:
            logger.error(
                f"Delete failed: provider={self.provider_name}, tenant={tenant_id}, "
                f"key={full_key}, error={e}"
            )
            raise

        if settings.is_development:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.debug(
                f"Delete completed: provider={self.provider_name}, key={full_key}, "
                f"duration={duration_ms}ms"
            )

    async def get(self, key: str, tenant_id: str | None = None) -> bytes:
        """
        Read an object's bytes.

        Raises:
            ObjectNotFoundError: If the key does not exist
            StorageError: If the backend fails
        """
        full_key = self.resolve_key(key, tenant_id)
        start = time.perf_counter()
        try:
            content = await self._bounded(self._get_object(full_key), "get", full_key)
        except Exception as e:
            logger.error(
                f"Get failed: provider={self.provider_name}, tenant={tenant_id}, "
                f"key={full_key}, error={e}"
            )
            raise

        if settings.is_development:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.debug(
                f"Get completed: provider={self.provider_name}, key={full_key}, "
                f"size={format_file_size(len(content))}, duration={duration_ms}ms"
            )
        return content

    async def aclose(self) -> None:
        """Release network clients held by the backend."""

    # Provider hooks

    def validate_upload(self, file: UploadRequest) -> None:
        """Provider-specific acceptance checks (e.g. image-only hosts)."""

    @abstractmethod
    async def _put_object(self, key: str, content: bytes, content_type: str) -> str:
        """
        Store ``content`` under ``key``.

        Returns:
            The key the object is retrievable under
        """

    @abstractmethod
    async def _delete_object(self, key: str) -> None:
        """
        Remove ``key``.

        Raises:
            ObjectNotFoundError: If the key does not exist
        """

    @abstractmethod
    async def _get_object(self, key: str) -> bytes:
        """
        Read ``key``.

        Raises:
            ObjectNotFoundError: If the key does not exist
        """

    async def _rollback(self, key: str) -> None:
        """
        Best-effort removal of a partially created object.

        Failures are logged and never replace the original upload error.
        """
        try:
            await self._bounded(self._delete_object(key), "rollback", key)
        except ObjectNotFoundError:
            pass
        except Exception as e:
            logger.warning(
                f"Rollback failed: provider={self.provider_name}, key={key}, error={e}"
            )

    async def _bounded(self, coro, operation: str, key: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise StorageError(
                f"{operation} timed out after {self.timeout_seconds}s",
                details={"key": key, "provider": self.provider_name},
            ) from e
