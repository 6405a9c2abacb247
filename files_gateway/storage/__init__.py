"""
Storage abstraction layer for file operations.

This package exposes the uniform {upload, delete, get} capability over the
local filesystem, S3-compatible object stores, a CDN image host and a
generic HTTP blob API.
"""

from files_gateway.storage.base import StorageBackend
from files_gateway.storage.exceptions import ObjectNotFoundError, StorageError
from files_gateway.storage.local import LocalStorageBackend
from files_gateway.storage.router import StorageProvider, StorageRouter

__all__ = [
    "StorageBackend",
    "LocalStorageBackend",
    "StorageProvider",
    "StorageRouter",
    "ObjectNotFoundError",
    "StorageError",
]
