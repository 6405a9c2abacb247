"""Domain records passed between the gateway, sessions and storage."""
from dataclasses import dataclass


@dataclass
class UploadRequest:
    """
    A single file to persist.

    Built by the gateway from a decoded message (or by chunk finalize from
    a reassembled buffer) and consumed once by the storage pipeline.
    """

    original_name: str
    mime_type: str
    content: bytes
    size_bytes: int | None = None
    tenant_id: str | None = None
    provider_name: str | None = None

    def __post_init__(self):
        if self.size_bytes is None:
            self.size_bytes = len(self.content)


@dataclass
class StoredFile:
    """Result of a successful upload."""

    key: str
    original_name: str
    size: int
    tenant_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "originalName": self.original_name,
            "size": self.size,
            "tenantId": self.tenant_id,
        }
