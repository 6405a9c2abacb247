"""
Tests for single and batch file operations.
"""
import httpx
import pytest

from files_gateway.exceptions import QuotaExceededError, ValidationError
from files_gateway.models import UploadRequest
from files_gateway.services.files import FilesService
from files_gateway.storage.exceptions import ObjectNotFoundError


def pdf(name: str, size: int) -> UploadRequest:
    return UploadRequest(name, "application/pdf", b"x" * size)


@pytest.mark.asyncio
async def test_upload_file_returns_stored_file(files_service, storage):
    stored = await files_service.upload_file(
        UploadRequest("report.pdf", "application/pdf", b"%PDF", tenant_id="acme")
    )

    assert stored.key.startswith("acme/")
    assert stored.to_dict() == {
        "key": stored.key,
        "originalName": "report.pdf",
        "size": 4,
        "tenantId": "acme",
    }
    assert await storage.get(stored.key) == b"%PDF"


@pytest.mark.asyncio
async def test_get_file_returns_uploaded_bytes(files_service):
    stored = await files_service.upload_file(UploadRequest("a.pdf", "application/pdf", b"%PDF-1.7"))

    assert await files_service.get_file(stored.key) == b"%PDF-1.7"


@pytest.mark.asyncio
async def test_batch_upload_summary(files_service):
    result = await files_service.upload_files(
        [pdf("a.pdf", 10), pdf("b.pdf", 20), pdf("c.pdf", 30)],
        tenant_id="acme",
        batch_id="batch-1",
    )

    summary = result["summary"]
    assert summary["count"] == 3
    assert summary["successful"] == 3
    assert summary["failed"] == 0
    assert summary["totalSize"] == 60
    assert summary["batchId"] == "batch-1"
    assert [r["originalName"] for r in result["perFileResults"]] == ["a.pdf", "b.pdf", "c.pdf"]
    assert all(r["key"].startswith("acme/") for r in result["perFileResults"])


@pytest.mark.asyncio
async def test_batch_upload_isolates_item_failures(files_service):
    result = await files_service.upload_files(
        [pdf("a.pdf", 10), UploadRequest("evil.exe", "application/x-msdownload", b"MZ"), pdf("c.pdf", 30)],
        tenant_id="acme",
    )

    assert result["summary"]["successful"] == 2
    assert result["summary"]["failed"] == 1
    assert result["summary"]["totalSize"] == 40
    failed = result["perFileResults"][1]
    assert failed["success"] is False
    assert failed["originalName"] == "evil.exe"
    assert failed["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_batch_upload_checks_quota_for_total_size(router, quota_gate_factory):
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.read())
        return httpx.Response(200, json={"allowed": False, "usage": 0, "limit": 50})

    service = FilesService(router, quota_gate_factory(handler))

    with pytest.raises(QuotaExceededError) as exc_info:
        await service.upload_files([pdf("a.pdf", 10), pdf("b.pdf", 20), pdf("c.pdf", 30)], tenant_id="acme")

    assert exc_info.value.requested_size == 60
    assert len(requested) == 1


@pytest.mark.asyncio
async def test_batch_upload_rejects_empty_and_oversized_batches(router, quota_gate):
    service = FilesService(router, quota_gate, max_batch_files=2)

    with pytest.raises(ValidationError):
        await service.upload_files([])
    with pytest.raises(ValidationError):
        await service.upload_files([pdf("a.pdf", 1), pdf("b.pdf", 1), pdf("c.pdf", 1)])


@pytest.mark.asyncio
async def test_batch_upload_unknown_provider_fails_whole_batch(files_service):
    with pytest.raises(ValidationError):
        await files_service.upload_files([pdf("a.pdf", 10)], provider="dropbox")


@pytest.mark.asyncio
async def test_delete_file(files_service):
    stored = await files_service.upload_file(UploadRequest("a.pdf", "application/pdf", b"%PDF", tenant_id="acme"))

    result = await files_service.delete_file(stored.key, "acme")

    assert result == {"success": True, "key": stored.key, "tenantId": "acme"}
    with pytest.raises(ObjectNotFoundError):
        await files_service.get_file(stored.key)


@pytest.mark.asyncio
async def test_batch_delete_reports_per_key_results(files_service):
    first = await files_service.upload_file(pdf("a.pdf", 5))
    second = await files_service.upload_file(pdf("b.pdf", 5))

    result = await files_service.delete_files([first.key, "admin/missing.pdf", second.key])

    assert result["summary"] == {"total": 3, "successful": 2, "failed": 1}
    assert result["perKeyResults"][1] == {
        "success": False,
        "key": "admin/missing.pdf",
        "error": {"code": "NOT_FOUND", "message": result["perKeyResults"][1]["error"]["message"]},
    }


@pytest.mark.asyncio
async def test_batch_delete_rejects_empty_list(files_service):
    with pytest.raises(ValidationError):
        await files_service.delete_files([])
