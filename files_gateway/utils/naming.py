"""
Object naming helpers.

Generated object names combine a millisecond timestamp, a short base62
random token and the sanitized original filename, so two uploads of the
same file never collide.
"""
import re
import string
import time
import uuid

BASE62_CHARS = string.digits + string.ascii_letters

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def b62encode(num: int) -> str:
    """
    Encode a non-negative integer as a base62 string.

    Examples:
        >>> b62encode(12345)
        '3d7'
    """
    if num == 0:
        return BASE62_CHARS[0]

    base = len(BASE62_CHARS)
    encoded = []
    while num > 0:
        num, remainder = divmod(num, base)
        encoded.append(BASE62_CHARS[remainder])
    return "".join(reversed(encoded))


def random_token(length: int = 10) -> str:
    """Return a random base62 token drawn from a UUID4."""
    return b62encode(uuid.uuid4().int)[:length]


def sanitize_filename(filename: str) -> str:
    """
    Reduce a caller-supplied filename to a safe single path segment.

    Directory components are dropped and every character outside
    ``[A-Za-z0-9_.-]`` is replaced by ``_``.

    Examples:
        >>> sanitize_filename("../etc/my report (1).pdf")
        'my_report__1_.pdf'
    """
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    name = _UNSAFE_CHARS.sub("_", name).lstrip(".")
    return name or "file"


def generate_object_name(original_name: str) -> str:
    """
    Build a collision-resistant object name for an upload.

    Examples:
        >>> generate_object_name("photo.png")  # doctest: +SKIP
        '1760871234567-4fQ2kZp9Xa-photo.png'
    """
    timestamp = int(time.time() * 1000)
    return f"{timestamp}-{random_token()}-{sanitize_filename(original_name)}"
