"""
File processing step applied to reassembled uploads.

Images are downscaled to fit the bounding box of their processing profile
and re-encoded in their original format. Other content passes through
unchanged.
"""
import asyncio
import io
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from files_gateway.config import settings
from files_gateway.exceptions import TechnicalFailureError, ValidationError
from files_gateway.logging_config import setup_logging

logger = setup_logging()


@dataclass(frozen=True)
class ImageProfile:
    max_width: int
    max_height: int
    quality: int


IMAGE_PROFILES: dict[str, ImageProfile] = {
    "image": ImageProfile(1920, 1080, 80),
    "category": ImageProfile(800, 600, 80),
    "cover": ImageProfile(1920, 1080, 90),
    "icon": ImageProfile(200, 200, 85),
    "banner": ImageProfile(1920, 480, 85),
    "thumbnail": ImageProfile(320, 240, 75),
}

# Formats Pillow can write back without changing the MIME type
_IMAGE_FORMATS = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
    "image/gif": "GIF",
}


class FileProcessor:
    """``process(buffer, mime_type, process_type) -> buffer``."""

    def __init__(self, timeout_seconds: float | None = None):
        self.timeout_seconds = timeout_seconds or settings.PROCESSING_TIMEOUT_SECONDS

    async def process(self, buffer: bytes, mime_type: str, process_type: str | None = None) -> bytes:
        """
        Transform a buffer before it is persisted.

        Raises:
            ValidationError: If the processing profile is unknown or the
                image cannot be decoded
            TechnicalFailureError: If processing exceeds its time budget
        """
        image_format = _IMAGE_FORMATS.get(mime_type)
        if image_format is None:
            return buffer

        profile_name = process_type or "image"
        profile = IMAGE_PROFILES.get(profile_name)
        if profile is None:
            raise ValidationError(f"Unsupported processing type: {profile_name}")

        try:
            processed = await asyncio.wait_for(
                asyncio.to_thread(_resize_image, buffer, image_format, profile),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise TechnicalFailureError(
                f"Image processing timed out after {self.timeout_seconds}s"
            ) from e

        logger.debug(
            f"Image processed: profile={profile_name}, original={len(buffer)}, "
            f"processed={len(processed)}"
        )
        return processed


def _resize_image(buffer: bytes, image_format: str, profile: ImageProfile) -> bytes:
    Image.MAX_IMAGE_PIXELS = settings.IMAGE_MAX_PIXELS
    try:
        with Image.open(io.BytesIO(buffer)) as image:
            image.load()
            if image.width <= profile.max_width and image.height <= profile.max_height:
                return buffer

            image.thumbnail((profile.max_width, profile.max_height))
            if image_format == "JPEG" and image.mode not in ("RGB", "L"):
                image = image.convert("RGB")

            output = io.BytesIO()
            save_kwargs = {"quality": profile.quality} if image_format in ("JPEG", "WEBP") else {}
            image.save(output, format=image_format, **save_kwargs)
            return output.getvalue()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise ValidationError(f"Invalid image file: {e}") from e
