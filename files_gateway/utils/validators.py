"""
File policy validation.

Uploads are checked against a MIME whitelist and a per-category size limit
before any backend is called. Tenant ids and storage keys are checked so a
key can never escape its tenant directory.
"""
from files_gateway.config import settings
from files_gateway.exceptions import FileSizeExceededError, UnsupportedFileTypeError, ValidationError

# Allowed MIME types per category
ALLOWED_FILE_TYPES: dict[str, list[str]] = {
    "image": ["image/jpeg", "image/png", "image/gif", "image/webp"],
    "document": [
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ],
    "video": ["video/mp4", "video/mpeg", "video/quicktime"],
}

# Maximum sizes per category (bytes)
MAX_FILE_SIZES: dict[str, int] = {
    "image": 20 * 1024 * 1024,
    "document": 5 * 1024 * 1024,
    "video": 100 * 1024 * 1024,
}


def detect_file_category(mime_type: str) -> str:
    """Return the policy category for a MIME type."""
    if mime_type.startswith("image/"):
        return "image"
    if mime_type.startswith("video/"):
        return "video"
    return "document"


def validate_file(mime_type: str, size: int) -> str:
    """
    Validate a file's declared MIME type and size.

    Rules:
    - MIME type must be whitelisted for its category
    - File must not be empty
    - Size must not exceed the category limit nor ``MAX_FILE_SIZE``

    Returns:
        The detected category

    Raises:
        UnsupportedFileTypeError: When the MIME type is not allowed
        FileSizeExceededError: When the file is too large
        ValidationError: When the file is empty
    """
    category = detect_file_category(mime_type)
    allowed = ALLOWED_FILE_TYPES[category]
    if mime_type not in allowed:
        raise UnsupportedFileTypeError(mime_type, allowed)

    if size <= 0:
        raise ValidationError("File is empty")

    max_size = min(MAX_FILE_SIZES[category], settings.MAX_FILE_SIZE)
    if size > max_size:
        raise FileSizeExceededError(size, max_size)

    return category


def validate_tenant_id(tenant_id: str) -> str:
    """Tenant ids are single path segments."""
    if not tenant_id or "/" in tenant_id or "\\" in tenant_id or tenant_id in (".", ".."):
        raise ValidationError(f"Invalid tenant id: {tenant_id!r}")
    return tenant_id


def validate_key(key: str) -> str:
    """Keys are relative, slash-separated paths without dot segments."""
    if not key or key.startswith("/") or "\\" in key:
        raise ValidationError(f"Invalid key: {key!r}")
    if any(part in ("", ".", "..") for part in key.split("/")):
        raise ValidationError(f"Invalid key: {key!r}")
    return key
