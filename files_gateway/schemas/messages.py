"""
Inbound message payloads.

Wire names are camelCase; attributes are snake_case and either form is
accepted. Binary content arrives base64-encoded. Older producers' field
names (``originalname``, ``mimetype``, ``bufferBase64``, ``filename``,
``empresaId``) are accepted as well.
"""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic.types import Base64Bytes

from files_gateway.models import UploadRequest
from files_gateway.services.chunked_upload import SessionMetadata

_TENANT = AliasChoices("tenantId", "tenant_id", "empresaId")


class MessageModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class FilePayload(MessageModel):
    name: str = Field(
        min_length=1,
        validation_alias=AliasChoices("name", "originalName", "originalname"),
    )
    mime_type: str = Field(validation_alias=AliasChoices("mimeType", "mime_type", "mimetype"))
    size: int | None = Field(default=None, ge=0)
    content: Base64Bytes = Field(validation_alias=AliasChoices("bytes", "bufferBase64", "content"))

    def to_upload_request(self, tenant_id: str | None = None, provider: str | None = None) -> UploadRequest:
        return UploadRequest(
            original_name=self.name,
            mime_type=self.mime_type,
            content=self.content,
            size_bytes=self.size or len(self.content),
            tenant_id=tenant_id,
            provider_name=provider,
        )


class UploadMessage(MessageModel):
    file: FilePayload
    provider: str | None = None
    tenant_id: str | None = Field(default=None, validation_alias=_TENANT)


class BatchUploadMessage(MessageModel):
    files: list[FilePayload]
    provider: str | None = None
    tenant_id: str | None = Field(default=None, validation_alias=_TENANT)
    batch_id: str | None = None


class KeyMessage(MessageModel):
    key: str = Field(min_length=1, validation_alias=AliasChoices("key", "filename"))
    provider: str | None = None
    tenant_id: str | None = Field(default=None, validation_alias=_TENANT)


class BatchDeleteMessage(MessageModel):
    keys: list[str] = Field(validation_alias=AliasChoices("keys", "filenames"))
    provider: str | None = None
    tenant_id: str | None = Field(default=None, validation_alias=_TENANT)


class ChunkMetadataPayload(MessageModel):
    name: str = Field(
        min_length=1,
        validation_alias=AliasChoices("name", "originalName", "originalname"),
    )
    mime_type: str = Field(validation_alias=AliasChoices("mimeType", "mime_type", "mimetype"))
    size: int | None = Field(default=None, ge=0)
    tenant_id: str | None = Field(default=None, validation_alias=_TENANT)
    provider: str | None = None
    process_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("processType", "process_type", "type"),
    )


class ChunkStartMessage(MessageModel):
    upload_id: str = Field(min_length=1)
    total_chunks: int
    metadata: ChunkMetadataPayload
    provider: str | None = None
    tenant_id: str | None = Field(default=None, validation_alias=_TENANT)

    def to_session_metadata(self) -> SessionMetadata:
        return SessionMetadata(
            original_name=self.metadata.name,
            mime_type=self.metadata.mime_type,
            size_bytes=self.metadata.size,
            tenant_id=self.metadata.tenant_id or self.tenant_id,
            provider_name=self.metadata.provider or self.provider,
            process_type=self.metadata.process_type,
        )


class ChunkAppendMessage(MessageModel):
    upload_id: str = Field(min_length=1)
    chunk_index: int
    chunk: Base64Bytes
    is_last: bool = False
