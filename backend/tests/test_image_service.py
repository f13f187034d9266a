"""
SnapMenu Backend — Image Validation Unit Tests
================================================

What:  Tests for ImageService (count, declared type, size, real content).
How:   Uses small images generated with Pillow; nothing touches disk.
"""

from io import BytesIO

import pytest
from PIL import Image

from snapmenu.exceptions import ValidationError
from snapmenu.services.image_service import ImageService, ImageUpload


@pytest.fixture
def service():
    return ImageService()


class TestValidateCount:

    def test_zero_images(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.validate_count(0)
        assert "No images provided" in exc_info.value.message

    def test_too_many_images(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.validate_count(11)
        assert "Too many images" in exc_info.value.message

    def test_within_limit(self, service):
        service.validate_count(1)
        service.validate_count(10)


class TestValidateDeclaredType:

    @pytest.mark.parametrize("content_type,expected", [
        ("image/png", "image/png"),
        ("image/jpeg", "image/jpeg"),
        ("image/jpg", "image/jpeg"),
        ("image/webp; charset=binary", "image/webp"),
    ])
    def test_allowed_types(self, service, content_type, expected):
        assert service.validate_declared_type("menu", content_type) == expected

    def test_extension_fallback(self, service):
        assert service.validate_declared_type("page1.JPG", None) == "image/jpeg"
        assert service.validate_declared_type("page1.png", "application/octet-stream") == "image/png"

    def test_pdf_rejected(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.validate_declared_type("menu.pdf", "application/pdf")
        assert "is not supported" in exc_info.value.message

    def test_declared_type_wins_over_extension(self, service):
        with pytest.raises(ValidationError):
            service.validate_declared_type("menu.png", "text/plain")


class TestValidateSize:

    def test_empty_file(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.validate_size("menu.png", 0)
        assert "is empty" in exc_info.value.message

    def test_too_large(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.validate_size("menu.png", 11 * 1024 * 1024)
        assert "is too large" in exc_info.value.message


class TestDetectMimeType:

    def test_png(self, service, png_bytes):
        assert service.detect_mime_type("menu.png", png_bytes) == "image/png"

    def test_content_beats_declared_type(self, service, jpeg_bytes):
        image = service.validate_image(
            ImageUpload(filename="menu.png", content=jpeg_bytes, content_type="image/png")
        )
        assert image.mime_type == "image/jpeg"

    def test_not_an_image(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.detect_mime_type("menu.png", b"%PDF-1.4 definitely not a png")
        assert "is not a readable image" in exc_info.value.message

    def test_unsupported_real_format(self, service):
        buffer = BytesIO()
        Image.new("RGB", (4, 4)).save(buffer, format="GIF")
        with pytest.raises(ValidationError) as exc_info:
            service.detect_mime_type("menu.gif", buffer.getvalue())
        assert "GIF" in exc_info.value.message


class TestValidateBatch:

    def test_preserves_page_order(self, service, png_bytes, jpeg_bytes):
        images = service.validate_batch([
            ImageUpload(filename="p1.png", content=png_bytes, content_type="image/png"),
            ImageUpload(filename="p2.jpg", content=jpeg_bytes, content_type="image/jpeg"),
        ])
        assert [image.mime_type for image in images] == ["image/png", "image/jpeg"]
        assert images[0].data == png_bytes

    def test_one_bad_file_rejects_batch(self, service, png_bytes):
        with pytest.raises(ValidationError):
            service.validate_batch([
                ImageUpload(filename="p1.png", content=png_bytes, content_type="image/png"),
                ImageUpload(filename="p2.png", content=b"", content_type="image/png"),
            ])
