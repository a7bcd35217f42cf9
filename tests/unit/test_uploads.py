"""Unit tests for reference image upload validation."""

import io

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from styledna.api.uploads import (
    UploadValidationError,
    is_allowed_image_type,
    read_reference_images,
    validate_file_count,
    validate_image_bytes,
)

MB = 1024 * 1024


def upload(data: bytes, filename: str, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class TestIsAllowedImageType:
    """Tests for is_allowed_image_type."""

    @pytest.mark.parametrize(
        "content_type", ["image/jpeg", "image/png", "image/webp", "image/x-png", "IMAGE/PNG"]
    )
    def test_allowed_mime_types(self, content_type):
        """Accepted MIME types pass regardless of the filename."""
        assert is_allowed_image_type("upload", content_type)

    def test_extension_rescues_unknown_mime_type(self):
        """A known extension is enough when the MIME type is unhelpful."""
        assert is_allowed_image_type("photo.PNG", "application/octet-stream")

    def test_rejects_other_types(self):
        """Neither MIME type nor extension allowed means rejection."""
        assert not is_allowed_image_type("notes.pdf", "application/pdf")
        assert not is_allowed_image_type(None, None)


class TestValidateFileCount:
    """Tests for validate_file_count."""

    def test_no_files(self):
        """Zero files is rejected."""
        with pytest.raises(UploadValidationError, match="No images provided"):
            validate_file_count(0, 20)

    def test_too_many_files(self):
        """More than the maximum is rejected with both numbers in the message."""
        with pytest.raises(UploadValidationError, match="Maximum 20 images allowed, received 21"):
            validate_file_count(21, 20)

    @pytest.mark.parametrize("count", [1, 20])
    def test_bounds_inclusive(self, count):
        """One and the maximum are both accepted."""
        validate_file_count(count, 20)  # Should not raise


class TestValidateImageBytes:
    """Tests for validate_image_bytes."""

    def test_valid_png(self, png_bytes):
        """A real PNG passes."""
        validate_image_bytes(0, "a.png", png_bytes, 10 * MB)  # Should not raise

    def test_valid_jpeg(self, jpeg_bytes):
        """A real JPEG passes."""
        validate_image_bytes(0, "a.jpg", jpeg_bytes, 10 * MB)  # Should not raise

    def test_empty_file(self):
        """An empty file is reported with its 1-based position and name."""
        with pytest.raises(UploadValidationError, match=r"File 2 \(b.png\) has no data"):
            validate_image_bytes(1, "b.png", b"", 10 * MB)

    def test_too_large(self, png_bytes):
        """A file above the limit is rejected with the limit in MB."""
        with pytest.raises(UploadValidationError, match="exceeds 10MB limit"):
            validate_image_bytes(0, "a.png", png_bytes + b"\0" * (10 * MB), 10 * MB)

    def test_corrupted(self):
        """Bytes Pillow cannot decode are rejected."""
        with pytest.raises(UploadValidationError, match="has no data or is corrupted"):
            validate_image_bytes(0, "a.png", b"definitely not a png", 10 * MB)

    def test_other_image_format(self, make_image):
        """A decodable image of another format is rejected."""
        with pytest.raises(UploadValidationError, match="GIF image"):
            validate_image_bytes(0, "a.png", make_image("GIF"), 10 * MB)


class TestReadReferenceImages:
    """Tests for read_reference_images."""

    @pytest.mark.asyncio
    async def test_returns_bytes_in_order(self, png_bytes, jpeg_bytes):
        """Valid uploads are returned in upload order."""
        files = [upload(png_bytes, "a.png", "image/png"), upload(jpeg_bytes, "b.jpg", "image/jpeg")]

        images = await read_reference_images(files, max_files=20, max_file_size=10 * MB)

        assert images == [png_bytes, jpeg_bytes]

    @pytest.mark.asyncio
    async def test_invalid_type(self, png_bytes):
        """A disallowed type is rejected with its MIME type in the message."""
        files = [upload(b"hello", "notes.txt", "text/plain")]

        with pytest.raises(UploadValidationError, match="Invalid file type: text/plain"):
            await read_reference_images(files, max_files=20, max_file_size=10 * MB)

    @pytest.mark.asyncio
    async def test_count_checked_first(self, png_bytes):
        """Too many files are rejected before any file is read."""
        files = [upload(png_bytes, f"{i}.png", "image/png") for i in range(3)]

        with pytest.raises(UploadValidationError, match="Maximum 2 images"):
            await read_reference_images(files, max_files=2, max_file_size=10 * MB)
