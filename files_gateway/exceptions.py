"""
Gateway error taxonomy.

Each error carries a machine-readable ``code`` and the ``outcome`` it is
classified as by the message gateway.
"""
from files_gateway.outcomes import Outcome
from files_gateway.utils.formatting import format_file_size


class GatewayError(Exception):
    """Base exception for every failure the gateway reports to callers."""

    code = "GATEWAY_ERROR"
    outcome = Outcome.BUSINESS_ERROR

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(GatewayError):
    """Raised when caller input (shape, MIME type, size, key) is rejected."""

    code = "VALIDATION_ERROR"


class SessionError(GatewayError):
    """Raised for unknown, incomplete or inconsistent chunk sessions."""

    code = "SESSION_ERROR"


class FileSizeExceededError(ValidationError):
    """Raised when a file exceeds the size allowed for its category."""

    def __init__(self, file_size: int, max_size: int):
        self.file_size = file_size
        self.max_size = max_size
        super().__init__(
            f"File size ({format_file_size(file_size)}) exceeds maximum "
            f"allowed size ({format_file_size(max_size)})",
            details={"size": file_size, "maxSize": max_size},
        )


class UnsupportedFileTypeError(ValidationError):
    """Raised when a MIME type is not accepted by the policy or backend."""

    def __init__(self, mime_type: str, allowed: list[str]):
        self.mime_type = mime_type
        self.allowed = allowed
        super().__init__(
            f"File type not allowed: {mime_type}. Allowed types: {', '.join(allowed)}",
            details={"mimeType": mime_type},
        )


class QuotaExceededError(GatewayError):
    """Raised when the quota authority refuses the requested bytes."""

    code = "QUOTA_EXCEEDED"
    outcome = Outcome.QUOTA_EXCEEDED

    def __init__(self, tenant_id: str, usage: int, limit: int, requested_size: int):
        self.tenant_id = tenant_id
        self.usage = usage
        self.limit = limit
        self.requested_size = requested_size
        super().__init__(
            f"Storage quota exceeded for tenant {tenant_id}",
            details={
                "usage": usage,
                "limit": limit,
                "requestedSize": requested_size,
            },
        )


class TechnicalFailureError(GatewayError):
    """Raised for infrastructure faults that are not the caller's doing."""

    code = "TECHNICAL_FAILURE"
    outcome = Outcome.TECHNICAL_FAILURE


class QuotaCheckError(TechnicalFailureError):
    """Raised when the quota authority cannot be reached or answers garbage."""

    code = "QUOTA_CHECK_ERROR"


def classify(exc: BaseException) -> Outcome:
    """Map any exception raised by a handler to its outcome."""
    if isinstance(exc, GatewayError):
        return exc.outcome
    return Outcome.TECHNICAL_FAILURE
