"""Reference image upload validation for the style extraction endpoint.

This module keeps the upload rules out of :mod:`styledna.api.main` so the
route handler only deals with HTTP concerns.  Every check runs before any
call to Bria:

- between 1 and ``max_files`` images
- JPEG, PNG or WebP, judged by MIME type *or* file extension (some browsers
  send unusual MIME types such as ``image/x-png``)
- non-empty and no larger than ``max_file_size``
- decodable by Pillow as one of the accepted formats
"""

from __future__ import annotations

import io
import logging
from collections.abc import Sequence

from fastapi import UploadFile
from PIL import Image

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
        "image/x-png",
        "image/pjpeg",
    }
)
ALLOWED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp"})
ALLOWED_FORMATS = frozenset({"JPEG", "PNG", "WEBP"})


class UploadValidationError(ValueError):
    """An uploaded file set was rejected.  The message is user-facing."""


def is_allowed_image_type(filename: str | None, content_type: str | None) -> bool:
    """Accept a file when its MIME type or its extension is allowed."""
    if content_type and content_type.lower() in ALLOWED_MIME_TYPES:
        return True
    name = (filename or "").lower()
    extension = name.rsplit(".", 1)[-1] if "." in name else ""
    return extension in ALLOWED_EXTENSIONS


def validate_file_count(count: int, max_files: int) -> None:
    if count == 0:
        raise UploadValidationError("No images provided")
    if count > max_files:
        raise UploadValidationError(f"Maximum {max_files} images allowed, received {count}")


def validate_image_bytes(index: int, filename: str, data: bytes, max_file_size: int) -> None:
    """Check size and decodability of one uploaded image.

    Args:
        index: Zero-based position of the file, used in messages.
        filename: Original filename, used in messages.
        data: Raw file content.
        max_file_size: Upper size limit in bytes.

    Raises:
        UploadValidationError: If the file is empty, too large, or not a
            JPEG/PNG/WebP image.
    """
    label = f"File {index + 1} ({filename})"
    if not data:
        raise UploadValidationError(f"{label} has no data or is corrupted")
    if len(data) > max_file_size:
        limit_mb = max_file_size / (1024 * 1024)
        raise UploadValidationError(f"{label} exceeds {limit_mb:g}MB limit")

    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format
            image.verify()
    except (OSError, SyntaxError, ValueError) as e:
        logger.warning(f"Rejected undecodable upload {filename}: {e}")
        raise UploadValidationError(f"{label} has no data or is corrupted") from e

    if image_format not in ALLOWED_FORMATS:
        raise UploadValidationError(
            f"{label} is a {image_format} image. Only JPEG, PNG, and WebP are allowed."
        )


async def read_reference_images(
    files: Sequence[UploadFile],
    *,
    max_files: int,
    max_file_size: int,
) -> list[bytes]:
    """Validate an uploaded file set and return the raw image bytes in order.

    Raises:
        UploadValidationError: On the first rule violation.
    """
    validate_file_count(len(files), max_files)

    images: list[bytes] = []
    for index, upload in enumerate(files):
        filename = upload.filename or f"image-{index + 1}"
        if not is_allowed_image_type(filename, upload.content_type):
            logger.warning(f"Rejected upload {filename} ({upload.content_type})")
            raise UploadValidationError(
                f"Invalid file type: {upload.content_type or 'unknown'}. "
                "Only JPEG, PNG, and WebP are allowed."
            )
        data = await upload.read()
        validate_image_bytes(index, filename, data, max_file_size)
        images.append(data)

    logger.info(
        f"Validated {len(images)} reference images ({sum(len(d) for d in images)} bytes total)"
    )
    return images
