"""File validation utilities for content security.

Validates image signatures (magic numbers) so a renamed executable or
document cannot be forwarded to the generation service as a photo.
"""

from __future__ import annotations

import logging
from typing import Literal, Optional, cast

logger = logging.getLogger(__name__)

ImageType = Literal["jpeg", "png", "webp", "heic"]

ALLOWED_IMAGE_MIME_TYPES: dict[str, ImageType] = {
    "image/jpeg": "jpeg",
    "image/png": "png",
    "image/webp": "webp",
    "image/heic": "heic",
    "image/heif": "heic",
}

EXTENSIONS: dict[ImageType, str] = {
    "jpeg": ".jpg",
    "png": ".png",
    "webp": ".webp",
    "heic": ".heic",
}

# ISO-BMFF brands used by HEIC/HEIF stills and sequences
_HEIF_BRANDS = {b"heic", b"heix", b"hevc", b"hevx", b"heim", b"heis", b"mif1", b"msf1", b"avif"}


def get_image_type_from_mime(mime_type: str | None) -> Optional[ImageType]:
    """Map a MIME type to an internal image type, None if unsupported."""
    if not mime_type:
        return None
    return cast(Optional[ImageType], ALLOWED_IMAGE_MIME_TYPES.get(mime_type.lower()))


def validate_image_signature(data: bytes, expected_type: ImageType) -> bool:
    """Check the binary signature of ``data`` against ``expected_type``.

    Args:
        data: File content as bytes.
        expected_type: Image type derived from the declared MIME type.

    Returns:
        True if the signature matches, False otherwise.
    """
    if expected_type == "jpeg":
        valid = data.startswith(b"\xff\xd8\xff")
    elif expected_type == "png":
        valid = data.startswith(b"\x89PNG\r\n\x1a\n")
    elif expected_type == "webp":
        valid = len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP"
    else:
        valid = len(data) >= 12 and data[4:8] == b"ftyp" and data[8:12] in _HEIF_BRANDS

    if not valid:
        logger.warning(
            "file_signature.invalid",
            extra={
                "expected_type": expected_type,
                "actual_prefix": data[:12].hex() if data else "EMPTY",
            },
        )
    return valid
