"""
Files service.

Runs single and batch uploads, deletes and reads against the backend the
storage router selects. Batch operations fan out concurrently (bounded by
a semaphore) and report per-item results; one item failing never fails the
whole batch.
"""
import asyncio
import time

from files_gateway.config import settings
from files_gateway.exceptions import GatewayError, ValidationError, classify
from files_gateway.logging_config import setup_logging
from files_gateway.models import StoredFile, UploadRequest
from files_gateway.services.quota import QuotaGate
from files_gateway.storage.router import StorageRouter

logger = setup_logging()


def _item_error(exc: Exception) -> dict:
    if isinstance(exc, GatewayError):
        return {"code": exc.code, "message": exc.message}
    return {"code": "TECHNICAL_FAILURE", "message": "An unexpected error occurred"}


class FilesService:
    def __init__(
        self,
        router: StorageRouter,
        quota_gate: QuotaGate,
        batch_concurrency: int | None = None,
        max_batch_files: int | None = None,
    ):
        self.router = router
        self.quota_gate = quota_gate
        self.batch_concurrency = batch_concurrency or settings.BATCH_CONCURRENCY
        self.max_batch_files = max_batch_files or settings.MAX_BATCH_FILES

    async def upload_file(
        self,
        file: UploadRequest,
        check_quota: bool = True,
    ) -> StoredFile:
        """
        Upload one file.

        Args:
            file: The file, carrying its tenant and provider
            check_quota: Skip the quota gate when the caller already
                admitted the bytes (batches, chunked uploads with a
                declared size)
        """
        if check_quota:
            await self.quota_gate.check(file.tenant_id, file.size_bytes)

        storage = self.router.get(file.provider_name)
        key = await storage.upload(file, file.tenant_id)
        return StoredFile(
            key=key,
            original_name=file.original_name,
            size=file.size_bytes,
            tenant_id=file.tenant_id,
        )

    async def upload_files(
        self,
        files: list[UploadRequest],
        tenant_id: str | None = None,
        provider: str | None = None,
        batch_id: str | None = None,
    ) -> dict:
        """
        Upload a batch of files.

        The quota gate is applied once to the aggregate size. Afterwards
        every file is uploaded independently.

        Returns:
            dict with ``perFileResults`` (one entry per file, in request order) and
            ``summary`` {count, successful, failed, totalSize, durationMs,
            batchId}
        """
        if not files:
            raise ValidationError("Batch upload requires at least one file")
        if len(files) > self.max_batch_files:
            raise ValidationError(
                f"Batch upload accepts at most {self.max_batch_files} files, got {len(files)}"
            )

        total_requested = sum(f.size_bytes for f in files)
        await self.quota_gate.check(tenant_id, total_requested)

        # Resolve the provider once so an unknown name fails the whole batch
        self.router.get(provider)

        start = time.perf_counter()
        semaphore = asyncio.Semaphore(self.batch_concurrency)

        async def upload_one(file: UploadRequest) -> dict:
            async with semaphore:
                try:
                    stored = await self.upload_file(file, check_quota=False)
                except Exception as e:
                    logger.warning(
                        f"Batch item failed: batch={batch_id}, file={file.original_name}, "
                        f"outcome={classify(e).value}, error={e}"
                    )
                    return {
                        "success": False,
                        "originalName": file.original_name,
                        "size": file.size_bytes,
                        "error": _item_error(e),
                    }
                return {"success": True, **stored.to_dict()}

        for file in files:
            file.tenant_id = tenant_id
            file.provider_name = provider
        results = await asyncio.gather(*(upload_one(f) for f in files))

        successful = [r for r in results if r["success"]]
        duration_ms = int((time.perf_counter() - start) * 1000)
        summary = {
            "count": len(files),
            "successful": len(successful),
            "failed": len(results) - len(successful),
            "totalSize": sum(r["size"] for r in successful),
            "durationMs": duration_ms,
            "batchId": batch_id,
        }
        logger.info(
            f"Batch upload completed: batch={batch_id}, tenant={tenant_id}, "
            f"files={summary['count']}, failed={summary['failed']}, "
            f"totalSize={summary['totalSize']}, duration={duration_ms}ms"
        )
        return {"perFileResults": results, "summary": summary}

    async def delete_file(
        self,
        key: str,
        tenant_id: str | None = None,
        provider: str | None = None,
    ) -> dict:
        storage = self.router.get(provider)
        await storage.delete(key, tenant_id)
        return {"success": True, "key": key, "tenantId": tenant_id}

    async def delete_files(
        self,
        keys: list[str],
        tenant_id: str | None = None,
        provider: str | None = None,
    ) -> dict:
        """
        Delete a batch of keys independently.

        Returns:
            dict with ``perKeyResults`` (one entry per key, in request order) and
            ``summary`` {total, successful, failed}
        """
        if not keys:
            raise ValidationError("Batch delete requires at least one key")
        if len(keys) > self.max_batch_files:
            raise ValidationError(
                f"Batch delete accepts at most {self.max_batch_files} keys, got {len(keys)}"
            )

        storage = self.router.get(provider)
        semaphore = asyncio.Semaphore(self.batch_concurrency)

        async def delete_one(key: str) -> dict:
            async with semaphore:
                try:
                    await storage.delete(key, tenant_id)
                except Exception as e:
                    return {"success": False, "key": key, "error": _item_error(e)}
                return {"success": True, "key": key}

        results = await asyncio.gather(*(delete_one(k) for k in keys))
        successful = sum(1 for r in results if r["success"])
        summary = {
            "total": len(keys),
            "successful": successful,
            "failed": len(keys) - successful,
        }
        logger.info(
            f"Batch delete completed: tenant={tenant_id}, total={summary['total']}, "
            f"failed={summary['failed']}"
        )
        return {"perKeyResults": results, "summary": summary}

    async def get_file(
        self,
        key: str,
        tenant_id: str | None = None,
        provider: str | None = None,
    ) -> bytes:
        storage = self.router.get(provider)
        return await storage.get(key, tenant_id)
