"""Upload validation for room and rug photos."""
from __future__ import annotations

import logging

from fastapi import UploadFile

from app.core.errors import PayloadTooLargeAppError, ValidationAppError
from app.utils.file_validators import (
    ImageType,
    get_image_type_from_mime,
    validate_image_signature,
)

logger = logging.getLogger(__name__)

UNSUPPORTED_IMAGE_MESSAGE = "Only JPG/PNG/WEBP/HEIC images are accepted"


def _too_large(field: str, label: str, max_bytes: int, actual: int) -> PayloadTooLargeAppError:
    max_mb = max_bytes // (1024 * 1024)
    return PayloadTooLargeAppError(
        code="file_too_large",
        message=f"{label} exceeds {max_mb}MB",
        details={"field": field, "max_bytes": max_bytes, "actual_bytes": actual},
    )


async def read_upload_file_limited(
    file: UploadFile,
    *,
    field: str,
    label: str,
    max_bytes: int,
) -> bytes:
    """Read an uploaded file in chunks enforcing a size limit.

    Uses file.size if available (multipart headers), falls back to chunked
    reading with enforcement.

    Args:
        file: FastAPI upload file instance.
        field: Form field name, reported in error details.
        label: Human-readable name used in the error message.
        max_bytes: Maximum allowed size.

    Returns:
        File content as bytes if within the allowed size limit.

    Raises:
        PayloadTooLargeAppError: If the file exceeds the limit.
    """
    file_size = getattr(file, "size", None)

    if file_size is not None and file_size > max_bytes:
        logger.warning(
            "file_validation.rejected_by_header",
            extra={"field": field, "file_size": file_size, "max_bytes": max_bytes},
        )
        raise _too_large(field, label, max_bytes, file_size)

    # Chunked reading with secondary enforcement
    size = 0
    chunks: list[bytes] = []

    while True:
        chunk = await file.read(8192)
        if not chunk:
            break

        size += len(chunk)
        if size > max_bytes:
            logger.warning(
                "file_validation.rejected_by_chunked_read",
                extra={"field": field, "size": size, "max_bytes": max_bytes},
            )
            raise _too_large(field, label, max_bytes, size)
        chunks.append(chunk)

    return b"".join(chunks)


def validate_image_upload(file: UploadFile, data: bytes, *, field: str) -> ImageType:
    """Check declared MIME type and content signature of an image upload.

    Raises:
        ValidationAppError: If the type is unsupported, the file is empty or
            the content does not match the declared type.
    """
    image_type = get_image_type_from_mime(file.content_type)
    if image_type is None:
        raise ValidationAppError(
            code="unsupported_file_type",
            message=UNSUPPORTED_IMAGE_MESSAGE,
            details={"field": field, "content_type": file.content_type or ""},
        )

    if not data:
        raise ValidationAppError(
            code="empty_file",
            message=f"Uploaded {field} image is empty",
            details={"field": field},
        )

    if not validate_image_signature(data, image_type):
        raise ValidationAppError(
            code="file_signature_mismatch",
            message=UNSUPPORTED_IMAGE_MESSAGE,
            details={"field": field, "content_type": file.content_type or ""},
        )

    return image_type
