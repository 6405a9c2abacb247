"""
Unit tests for LocalStorageBackend and the shared upload/delete/get contract.
"""
import asyncio

import pytest

from files_gateway.exceptions import FileSizeExceededError, UnsupportedFileTypeError, ValidationError
from files_gateway.models import UploadRequest
from files_gateway.storage.exceptions import ObjectNotFoundError, StorageError
from files_gateway.storage.local import LocalStorageBackend


def pdf(name: str = "report.pdf", content: bytes = b"%PDF-1.4 test content") -> UploadRequest:
    return UploadRequest(original_name=name, mime_type="application/pdf", content=content)


@pytest.mark.asyncio
async def test_upload_then_get_returns_same_bytes(storage):
    """The returned key reads back exactly the persisted bytes."""
    key = await storage.upload(pdf(), "acme")

    assert key.startswith("acme/")
    assert key.endswith("-report.pdf")
    assert await storage.get(key) == b"%PDF-1.4 test content"


@pytest.mark.asyncio
async def test_upload_without_tenant_uses_default_namespace(storage):
    key = await storage.upload(pdf())
    assert key.startswith("admin/")


@pytest.mark.asyncio
async def test_delete_then_get_reports_not_found(storage):
    key = await storage.upload(pdf(), "acme")

    await storage.delete(key)

    with pytest.raises(ObjectNotFoundError):
        await storage.get(key)


@pytest.mark.asyncio
async def test_delete_missing_key_is_an_error(storage):
    with pytest.raises(ObjectNotFoundError):
        await storage.delete("acme/does-not-exist.pdf")


@pytest.mark.asyncio
async def test_generated_names_do_not_collide(storage):
    first = await storage.upload(pdf(), "acme")
    second = await storage.upload(pdf(), "acme")

    assert first != second


@pytest.mark.asyncio
async def test_bare_name_resolves_under_given_tenant_only(storage):
    """A key generated for tenant A is not visible in tenant B's namespace."""
    key = await storage.upload(pdf(), "tenant-a")
    name = key.split("/", 1)[1]

    assert await storage.get(name, "tenant-a") == b"%PDF-1.4 test content"
    with pytest.raises(ObjectNotFoundError):
        await storage.get(name, "tenant-b")
    with pytest.raises(ObjectNotFoundError):
        await storage.get(name)


@pytest.mark.asyncio
async def test_full_key_is_used_verbatim_regardless_of_tenant(storage):
    key = await storage.upload(pdf(), "tenant-a")

    assert await storage.get(key, "tenant-b") == b"%PDF-1.4 test content"
    await storage.delete(key, "tenant-b")
    assert not (storage.base_path / key).exists()


@pytest.mark.asyncio
async def test_upload_rejects_disallowed_mime_type(storage, tmp_path):
    with pytest.raises(UnsupportedFileTypeError):
        await storage.upload(UploadRequest("notes.txt", "text/plain", b"hello"), "acme")

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_upload_rejects_oversized_document(storage):
    big = UploadRequest("big.pdf", "application/pdf", b"x", size_bytes=6 * 1024 * 1024)

    with pytest.raises(FileSizeExceededError):
        await storage.upload(big, "acme")


@pytest.mark.asyncio
async def test_upload_rejects_empty_file(storage):
    with pytest.raises(ValidationError):
        await storage.upload(pdf(content=b""), "acme")


@pytest.mark.asyncio
async def test_invalid_tenant_is_rejected(storage):
    with pytest.raises(ValidationError):
        await storage.upload(pdf(), "../etc")


@pytest.mark.asyncio
async def test_traversal_key_is_rejected(storage):
    with pytest.raises(ValidationError):
        await storage.get("acme/../../secret")


class FailingAfterWriteBackend(LocalStorageBackend):
    """Writes the object, then fails as a flaky backend would."""

    async def _put_object(self, key, content, content_type):
        await super()._put_object(key, content, content_type)
        self.written_key = key
        raise StorageError("connection reset")


class UndeletableBackend(FailingAfterWriteBackend):
    async def _delete_object(self, key):
        raise RuntimeError("permission denied")


@pytest.mark.asyncio
async def test_failed_upload_rolls_back_partial_object(tmp_path):
    backend = FailingAfterWriteBackend(base_path=str(tmp_path))

    with pytest.raises(StorageError, match="connection reset"):
        await backend.upload(pdf(), "acme")

    assert not (tmp_path / backend.written_key).exists()


@pytest.mark.asyncio
async def test_rollback_failure_does_not_mask_original_error(tmp_path):
    backend = UndeletableBackend(base_path=str(tmp_path))

    with pytest.raises(StorageError, match="connection reset"):
        await backend.upload(pdf(), "acme")


class SlowBackend(LocalStorageBackend):
    async def _get_object(self, key):
        await asyncio.sleep(1)
        return b""


@pytest.mark.asyncio
async def test_backend_calls_are_bounded_by_timeout(tmp_path):
    backend = SlowBackend(base_path=str(tmp_path), timeout_seconds=0.01)

    with pytest.raises(StorageError, match="timed out"):
        await backend.get("acme/slow.pdf")
