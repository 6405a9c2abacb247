"""
Storage wiring.

Builds the storage router from configuration. Provider modules that pull
in cloud SDKs are imported only when their backend is first requested.
"""
from files_gateway.config import settings
from files_gateway.storage.base import StorageBackend
from files_gateway.storage.local import LocalStorageBackend
from files_gateway.storage.router import StorageProvider, StorageRouter


def _build_local() -> StorageBackend:
    return LocalStorageBackend(base_path=settings.LOCAL_STORAGE_PATH)


def _build_s3() -> StorageBackend:
    from files_gateway.storage.s3 import S3StorageBackend

    return S3StorageBackend()


def _build_cloudinary() -> StorageBackend:
    from files_gateway.storage.cloudinary import CloudinaryStorageBackend

    return CloudinaryStorageBackend()


def _build_blob() -> StorageBackend:
    from files_gateway.storage.blob import BlobApiStorageBackend

    return BlobApiStorageBackend()


def get_storage_router() -> StorageRouter:
    """
    Return a storage router configured from settings.

    ``STORAGE_TYPE`` selects the default provider; callers may still name
    any other provider per message.
    """
    return StorageRouter(
        factories={
            StorageProvider.LOCAL: _build_local,
            StorageProvider.S3: _build_s3,
            StorageProvider.CLOUDINARY: _build_cloudinary,
            StorageProvider.BLOB: _build_blob,
        },
        default_provider=settings.STORAGE_TYPE,
    )
