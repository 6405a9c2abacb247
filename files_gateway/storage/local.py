"""
Local filesystem storage implementation.

Objects live at ``<base_path>/<tenant>/<generatedName>``; the storage key
is the path relative to the base directory.
"""
import os
from pathlib import Path

import aiofiles

from files_gateway.config import settings
from files_gateway.storage.base import StorageBackend
from files_gateway.storage.exceptions import ObjectNotFoundError, StorageError


class LocalStorageBackend(StorageBackend):
    """Local filesystem storage with async file operations."""

    provider_name = "local"

    def __init__(self, base_path: str | None = None, **kwargs):
        """
        Initialize local storage backend.

        Args:
            base_path: Base directory for file storage (default from config)
        """
        super().__init__(**kwargs)
        self.base_path = Path(base_path or settings.LOCAL_STORAGE_PATH).resolve()

    async def _put_object(self, key: str, content: bytes, content_type: str) -> str:
        file_path = self._get_file_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with aiofiles.open(file_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            raise StorageError(f"Failed to save file: {e}", details={"key": key}) from e

        return key

    async def _delete_object(self, key: str) -> None:
        file_path = self._get_file_path(key)

        if not file_path.is_file():
            raise ObjectNotFoundError(key)

        try:
            os.remove(file_path)
        except OSError as e:
            raise StorageError(f"Failed to delete file: {e}", details={"key": key}) from e

        # Drop the tenant directory once it is empty
        try:
            file_path.parent.rmdir()
        except OSError:
            pass

    async def _get_object(self, key: str) -> bytes:
        file_path = self._get_file_path(key)

        if not file_path.is_file():
            raise ObjectNotFoundError(key)

        try:
            async with aiofiles.open(file_path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise StorageError(f"Failed to read file: {e}", details={"key": key}) from e

    def _get_file_path(self, key: str) -> Path:
        """
        Map a key to a path under the base directory.

        Raises:
            StorageError: If the key resolves outside the base directory
        """
        file_path = (self.base_path / key).resolve()
        if not file_path.is_relative_to(self.base_path):
            raise StorageError(f"Key escapes storage root: {key}", details={"key": key})
        return file_path
