"""
Storage-specific exceptions.

Backend failures (network, permission, missing object) are ``StorageError``.
Policy rejections raised before a backend is called live with the other
validation errors in ``files_gateway.exceptions``.
"""
from files_gateway.exceptions import GatewayError


class StorageError(GatewayError):
    """Base exception for provider-level failures."""

    code = "BACKEND_ERROR"


class ObjectNotFoundError(StorageError):
    """Raised when the requested key does not exist in the backend."""

    code = "NOT_FOUND"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"File not found: {key}", details={"key": key})
