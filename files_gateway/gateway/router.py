"""
Message gateway.

Maps every inbound message to exactly one handler, runs it through a single
interceptor that classifies the outcome, logs it, builds the reply and
decides whether the message is acknowledged.
"""
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import pydantic

from files_gateway.config import settings
from files_gateway.exceptions import GatewayError, ValidationError, classify
from files_gateway.logging_config import setup_logging
from files_gateway.outcomes import Outcome
from files_gateway.schemas.common import GatewayResponse
from files_gateway.schemas.messages import (
    BatchDeleteMessage,
    BatchUploadMessage,
    ChunkAppendMessage,
    ChunkStartMessage,
    KeyMessage,
    UploadMessage,
)
from files_gateway.services.chunked_upload import ChunkSessionManager
from files_gateway.services.files import FilesService

logger = setup_logging()


class Topic:
    UPLOAD = "file.upload"
    UPLOAD_BATCH = "files.upload.batch"
    DELETE = "file.delete"
    DELETE_BATCH = "files.delete.batch"
    GET = "file.get"
    CHUNK_START = "file.chunk.start"
    CHUNK_APPEND = "file.chunk.append"


TOPIC_ALIASES = {
    "file.upload.optimized": Topic.UPLOAD,
}


@dataclass
class HandlerResult:
    outcome: Outcome
    response: GatewayResponse
    duration_ms: int

    @property
    def ack(self) -> bool:
        return self.outcome.should_ack


Handler = Callable[[dict], Awaitable[Any]]


class MessageGateway:
    def __init__(self, files_service: FilesService, sessions: ChunkSessionManager):
        self.files_service = files_service
        self.sessions = sessions
        self._handlers: dict[str, Handler] = {
            Topic.UPLOAD: self.upload_file,
            Topic.UPLOAD_BATCH: self.upload_files,
            Topic.DELETE: self.delete_file,
            Topic.DELETE_BATCH: self.delete_files,
            Topic.GET: self.get_file,
            Topic.CHUNK_START: self.start_chunked_upload,
            Topic.CHUNK_APPEND: self.append_chunk,
        }

    @property
    def topics(self) -> list[str]:
        return list(self._handlers) + list(TOPIC_ALIASES)

    async def handle(self, pattern: str, payload: dict) -> HandlerResult:
        """
        Run the handler for ``pattern`` and classify its outcome.

        Never raises: every failure becomes a structured response. The
        returned ``HandlerResult.ack`` tells the transport whether to
        acknowledge the message.
        """
        start = time.perf_counter()
        topic = TOPIC_ALIASES.get(pattern, pattern)
        handler = self._handlers.get(topic)

        try:
            if handler is None:
                raise ValidationError(f"Unknown message pattern: {pattern}")
            data = await handler(payload)
        except Exception as e:
            duration_ms = int((time.perf_counter() - start) * 1000)
            outcome = classify(e)
            self._log_failure(pattern, payload, e, outcome, duration_ms)
            return HandlerResult(outcome, self._error_response(e, outcome), duration_ms)

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            f"Message handled: pattern={pattern}, tenant={self._tenant_of(payload)}, "
            f"duration={duration_ms}ms, success=True"
        )
        return HandlerResult(Outcome.SUCCESS, GatewayResponse(data=data), duration_ms)

    # Handlers

    async def upload_file(self, payload: dict) -> dict:
        message = self._parse(UploadMessage, payload)
        stored = await self.files_service.upload_file(
            message.file.to_upload_request(message.tenant_id, message.provider)
        )
        return stored.to_dict()

    async def upload_files(self, payload: dict) -> dict:
        message = self._parse(BatchUploadMessage, payload)
        if message.batch_id and settings.is_development:
            logger.info(f"Batch upload started: batch={message.batch_id}, files={len(message.files)}")
        return await self.files_service.upload_files(
            [f.to_upload_request() for f in message.files],
            tenant_id=message.tenant_id,
            provider=message.provider,
            batch_id=message.batch_id,
        )

    async def delete_file(self, payload: dict) -> dict:
        message = self._parse(KeyMessage, payload)
        return await self.files_service.delete_file(message.key, message.tenant_id, message.provider)

    async def delete_files(self, payload: dict) -> dict:
        message = self._parse(BatchDeleteMessage, payload)
        return await self.files_service.delete_files(message.keys, message.tenant_id, message.provider)

    async def get_file(self, payload: dict) -> dict:
        message = self._parse(KeyMessage, payload)
        content = await self.files_service.get_file(message.key, message.tenant_id, message.provider)
        return {"key": message.key, "size": len(content), "content": content}

    async def start_chunked_upload(self, payload: dict) -> dict:
        message = self._parse(ChunkStartMessage, payload)
        return await self.sessions.start(
            message.upload_id,
            message.total_chunks,
            message.to_session_metadata(),
        )

    async def append_chunk(self, payload: dict) -> dict:
        message = self._parse(ChunkAppendMessage, payload)
        return await self.sessions.append(
            message.upload_id,
            message.chunk_index,
            message.chunk,
            message.is_last,
        )

    # Helpers

    @staticmethod
    def _parse(model: type[pydantic.BaseModel], payload: dict):
        try:
            return model.model_validate(payload)
        except pydantic.ValidationError as e:
            problems = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            raise ValidationError("Invalid message payload", details={"errors": problems}) from e

    @staticmethod
    def _tenant_of(payload: dict) -> str | None:
        if not isinstance(payload, dict):
            return None
        metadata = payload.get("metadata")
        nested = metadata.get("tenantId") if isinstance(metadata, dict) else None
        return payload.get("tenantId") or payload.get("empresaId") or nested

    @staticmethod
    def _error_response(exc: Exception, outcome: Outcome) -> GatewayResponse:
        if isinstance(exc, GatewayError):
            return GatewayResponse(
                success=False,
                status=outcome,
                code=exc.code,
                message=exc.message,
                data=exc.details or None,
            )
        # Unexpected errors: details stay in the log
        return GatewayResponse(
            success=False,
            status=outcome,
            code="TECHNICAL_FAILURE",
            message="An unexpected error occurred",
        )

    def _log_failure(
        self,
        pattern: str,
        payload: dict,
        exc: Exception,
        outcome: Outcome,
        duration_ms: int,
    ) -> None:
        context = (
            f"pattern={pattern}, tenant={self._tenant_of(payload)}, outcome={outcome.value}, "
            f"duration={duration_ms}ms, error={exc.__class__.__name__}: {exc}"
        )
        if settings.is_development:
            context += f", payload_keys={sorted(payload) if isinstance(payload, dict) else None}"

        if outcome is Outcome.TECHNICAL_FAILURE:
            logger.error(f"Message failed: {context}", exc_info=not isinstance(exc, GatewayError))
        else:
            logger.warning(f"Message failed: {context}")
