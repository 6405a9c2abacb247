"""
Chunked upload session manager.

Reassembles a file from chunk messages that may arrive in any order.
Sessions live in memory, keyed by upload id, and every mutation of one
session is serialized by a per-id ``asyncio.Lock``; different upload ids
never contend.

Lifecycle of a session:
1. ``start`` allocates an empty chunk map (Accumulating)
2. ``append`` stores chunks by index, last write wins on duplicates
3. the chunk flagged ``is_last`` seals the session; once every index in
   ``[0, total_chunks)`` is present the chunks are concatenated in index
   order, processed and uploaded (Finalizing), and the session is removed
4. any error removes the session before propagating; idle sessions are
   removed by ``evict_idle``
"""
import asyncio
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from files_gateway.config import settings
from files_gateway.exceptions import FileSizeExceededError, SessionError, ValidationError
from files_gateway.logging_config import setup_logging
from files_gateway.models import UploadRequest
from files_gateway.services.files import FilesService
from files_gateway.services.processing import FileProcessor
from files_gateway.utils.validators import validate_file

logger = setup_logging()


@dataclass
class SessionMetadata:
    original_name: str
    mime_type: str
    size_bytes: int | None = None
    tenant_id: str | None = None
    provider_name: str | None = None
    process_type: str | None = None


@dataclass
class UploadSession:
    upload_id: str
    total_chunks: int
    metadata: SessionMetadata
    created_at: float
    updated_at: float
    received_chunks: dict[int, bytes] = field(default_factory=dict)
    received_bytes: int = 0
    sealed: bool = False
    result: dict | None = None
    completed: asyncio.Event = field(default_factory=asyncio.Event)

    def store(self, index: int, chunk: bytes) -> None:
        previous = self.received_chunks.get(index)
        if previous is not None:
            self.received_bytes -= len(previous)
        self.received_chunks[index] = chunk
        self.received_bytes += len(chunk)

    @property
    def quota_admitted(self) -> bool:
        """The declared size was admitted by the quota gate at start."""
        return bool(self.metadata.size_bytes)

    def missing_indices(self) -> list[int]:
        return [i for i in range(self.total_chunks) if i not in self.received_chunks]

    @property
    def is_complete(self) -> bool:
        return len(self.received_chunks) == self.total_chunks


class ChunkSessionManager:
    def __init__(
        self,
        files_service: FilesService,
        processor: FileProcessor,
        ttl_seconds: float | None = None,
        finalize_grace_seconds: float | None = None,
        max_chunks: int | None = None,
        max_session_bytes: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.files_service = files_service
        self.processor = processor
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.CHUNK_SESSION_TTL_SECONDS
        self.finalize_grace_seconds = (
            finalize_grace_seconds
            if finalize_grace_seconds is not None
            else settings.CHUNK_FINALIZE_GRACE_SECONDS
        )
        self.max_chunks = max_chunks or settings.MAX_CHUNKS_PER_SESSION
        self.max_session_bytes = max_session_bytes or settings.MAX_FILE_SIZE
        self._clock = clock
        self._sessions: dict[str, UploadSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._global_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, upload_id: str) -> bool:
        return upload_id in self._sessions

    def _get_lock(self, upload_id: str) -> asyncio.Lock:
        """Get or create the lock for this upload id."""
        if upload_id not in self._locks:
            with self._global_lock:
                if upload_id not in self._locks:
                    self._locks[upload_id] = asyncio.Lock()
        return self._locks[upload_id]

    def _discard(self, upload_id: str) -> None:
        self._sessions.pop(upload_id, None)

    async def start(self, upload_id: str, total_chunks: int, metadata: SessionMetadata) -> dict:
        """
        Open a session.

        The declared total size (when present) is validated against the file
        policy and admitted by the quota gate before any chunk is buffered.
        Without a declared size the quota gate runs at finalize instead, on
        the reassembled bytes.
        Starting an id that is already open replaces the old session.

        Raises:
            SessionError: If ``total_chunks`` is out of range
            ValidationError: If the declared file fails the policy
            QuotaExceededError / QuotaCheckError: From the quota gate
        """
        if not 0 < total_chunks <= self.max_chunks:
            raise SessionError(
                f"totalChunks must be between 1 and {self.max_chunks}, got {total_chunks}",
                details={"uploadId": upload_id},
            )
        if metadata.size_bytes:
            validate_file(metadata.mime_type, metadata.size_bytes)
        await self.files_service.quota_gate.check(metadata.tenant_id, metadata.size_bytes)

        async with self._get_lock(upload_id):
            if upload_id in self._sessions:
                logger.warning(f"Replacing existing upload session: upload_id={upload_id}")
            now = self._clock()
            self._sessions[upload_id] = UploadSession(
                upload_id=upload_id,
                total_chunks=total_chunks,
                metadata=metadata,
                created_at=now,
                updated_at=now,
            )

        logger.info(
            f"Upload session started: upload_id={upload_id}, total_chunks={total_chunks}, "
            f"file={metadata.original_name}, tenant={metadata.tenant_id}"
        )
        return {"success": True, "uploadId": upload_id}

    async def append(self, upload_id: str, chunk_index: int, chunk: bytes, is_last: bool = False) -> dict:
        """
        Store one chunk.

        Returns:
            ``{"success": True, ...}`` for an intermediate chunk, or the
            stored file (same shape as a single upload) for the chunk that
            carries ``is_last``

        Raises:
            SessionError: Unknown session, index out of range, or chunks
                still missing when the finalize grace period runs out
            FileSizeExceededError: The session outgrew the size cap
            ValidationError: More bytes arrived than the declared size
            QuotaExceededError: At finalize, for uploads without a declared
                size (the gate only runs once per upload)
        """
        lock = self._get_lock(upload_id)
        async with lock:
            session = self._sessions.get(upload_id)
            if session is None:
                raise SessionError(f"Unknown upload session: {upload_id}", details={"uploadId": upload_id})

            if not 0 <= chunk_index < session.total_chunks:
                self._discard(upload_id)
                raise SessionError(
                    f"Chunk index {chunk_index} outside [0, {session.total_chunks})",
                    details={"uploadId": upload_id},
                )

            session.store(chunk_index, chunk)
            session.updated_at = self._clock()
            if session.received_bytes > self.max_session_bytes:
                self._discard(upload_id)
                raise FileSizeExceededError(session.received_bytes, self.max_session_bytes)

            # Quota was admitted for the declared size only
            declared = session.metadata.size_bytes
            if session.quota_admitted and session.received_bytes > declared:
                self._discard(upload_id)
                raise ValidationError(
                    f"Upload {upload_id} received {session.received_bytes} bytes, "
                    f"more than the declared {declared}",
                    details={"uploadId": upload_id, "size": declared, "received": session.received_bytes},
                )

            if is_last:
                session.sealed = True

            if session.sealed and session.is_complete:
                if is_last:
                    return await self._finalize(session)
                # The waiting is_last call finalizes
                session.completed.set()

            if not is_last:
                return {
                    "success": True,
                    "uploadId": upload_id,
                    "chunkIndex": chunk_index,
                    "receivedChunks": len(session.received_chunks),
                }

            if self.finalize_grace_seconds <= 0:
                missing = session.missing_indices()
                self._discard(upload_id)
                raise self._gap_error(upload_id, missing)

            logger.info(
                f"Last chunk arrived before the rest, waiting: upload_id={upload_id}, "
                f"missing={session.missing_indices()}"
            )

        # Wait for out-of-order chunks with the lock released. The delivery
        # keeps its prefetch slot meanwhile, see PREFETCH_COUNT
        try:
            await asyncio.wait_for(session.completed.wait(), timeout=self.finalize_grace_seconds)
        except asyncio.TimeoutError:
            async with lock:
                if session.result is not None:
                    return session.result
                missing = session.missing_indices()
                if self._sessions.get(upload_id) is session:
                    self._discard(upload_id)
                raise self._gap_error(upload_id, missing) from None

        async with lock:
            if session.result is not None:
                return session.result
            if self._sessions.get(upload_id) is not session:
                raise SessionError(
                    f"Upload session closed while finalizing: {upload_id}",
                    details={"uploadId": upload_id},
                )
            return await self._finalize(session)

    def _gap_error(self, upload_id: str, missing: list[int]) -> SessionError:
        logger.warning(f"Upload session incomplete: upload_id={upload_id}, missing={missing}")
        return SessionError(
            f"Upload {upload_id} is missing chunks {missing}",
            details={"uploadId": upload_id, "missingChunks": missing},
        )

    async def _finalize(self, session: UploadSession) -> dict:
        """Concatenate, process and upload. Caller holds the session lock."""
        upload_id = session.upload_id
        metadata = session.metadata
        start = time.perf_counter()
        try:
            missing = session.missing_indices()
            if missing:
                raise self._gap_error(upload_id, missing)

            buffer = b"".join(session.received_chunks[i] for i in range(session.total_chunks))
            buffer = await self.processor.process(buffer, metadata.mime_type, metadata.process_type)

            stored = await self.files_service.upload_file(
                UploadRequest(
                    original_name=metadata.original_name,
                    mime_type=metadata.mime_type,
                    content=buffer,
                    tenant_id=metadata.tenant_id,
                    provider_name=metadata.provider_name,
                ),
                check_quota=not session.quota_admitted,
            )
        except Exception as e:
            self._discard(upload_id)
            logger.error(f"Upload session failed: upload_id={upload_id}, error={e}")
            raise

        self._discard(upload_id)
        session.result = stored.to_dict()
        session.completed.set()
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            f"Upload session completed: upload_id={upload_id}, key={stored.key}, "
            f"chunks={session.total_chunks}, size={stored.size}, duration={duration_ms}ms"
        )
        return session.result

    def evict_idle(self) -> list[str]:
        """
        Remove sessions idle for longer than the TTL.

        Sessions currently locked by an in-flight chunk are left alone.
        Locks of ids without a session are dropped as well.

        Returns:
            The evicted upload ids
        """
        now = self._clock()
        evicted = []
        for upload_id, session in list(self._sessions.items()):
            lock = self._locks.get(upload_id)
            if lock is not None and lock.locked():
                continue
            if now - session.updated_at >= self.ttl_seconds:
                self._discard(upload_id)
                evicted.append(upload_id)
                logger.warning(
                    f"Evicted idle upload session: upload_id={upload_id}, "
                    f"received={len(session.received_chunks)}/{session.total_chunks}, "
                    f"idle={int(now - session.updated_at)}s"
                )

        with self._global_lock:
            for upload_id in list(self._locks):
                if upload_id not in self._sessions and not self._locks[upload_id].locked():
                    del self._locks[upload_id]

        return evicted
