"""
SnapMenu Backend — Menu Image Validation
==========================================

What:  Validates uploaded menu photos before they are sent to Gemini.
Why:   The extraction call is slow and spends API quota; rejecting a PDF or
       a 40MB panorama up front gives the user an instant, specific error.
How:   Checks run cheapest first, all in memory (nothing is written to disk):
       1. Page count:  at most settings.max_images per request
       2. Declared type: MIME type (or extension) must be an allowed image type
       3. Size:        non-empty and at most settings.max_file_size bytes
       4. Content:     Pillow must recognize the bytes as PNG, JPEG or WEBP;
                       the detected format, not the header, decides the MIME
                       type sent to Gemini
Who:   Called by MenuService at the start of the extraction workflow.
"""

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Sequence

from PIL import Image, UnidentifiedImageError

from snapmenu.config import settings
from snapmenu.exceptions import ValidationError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
# Pillow format name → MIME type sent to Gemini
PILLOW_FORMATS = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
}

ALLOWED_MIME_TYPES = {"image/png", "image/jpeg", "image/jpg", "image/webp"}

ALLOWED_EXTENSIONS = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}


@dataclass(frozen=True)
class ImageUpload:
    """One raw file from a multipart request."""
    filename: str
    content: bytes
    content_type: Optional[str] = None


@dataclass(frozen=True)
class MenuImage:
    """A validated menu page: raw bytes plus the MIME type Gemini should see."""
    data: bytes
    mime_type: str


class ImageService:
    """Turns raw uploads into validated MenuImages."""

    def validate_count(self, count: int) -> None:
        """Reject empty batches and batches over settings.max_images."""
        if count == 0:
            raise ValidationError(
                message="No images provided. Upload at least one photo of the menu.",
                field="files",
            )
        if count > settings.max_images:
            raise ValidationError(
                message=f"Too many images ({count}). Upload at most {settings.max_images} pages.",
                field="files",
                context={"count": count, "max_images": settings.max_images},
            )

    def validate_declared_type(self, filename: str, content_type: Optional[str]) -> str:
        """
        Check the client-declared MIME type, falling back to the extension
        when the browser sent none or a generic one.

        Returns the normalized declared MIME type.
        """
        declared = (content_type or "").split(";")[0].strip().lower()
        if declared in ALLOWED_MIME_TYPES:
            return "image/jpeg" if declared == "image/jpg" else declared

        ext = Path(filename).suffix.lower()
        if declared in ("", "application/octet-stream") and ext in ALLOWED_EXTENSIONS:
            return ALLOWED_EXTENSIONS[ext]

        raise ValidationError(
            message=(
                f"File type '{declared or ext or 'unknown'}' is not supported. "
                f"Allowed types: png, jpg, jpeg, webp"
            ),
            field="files",
            context={"filename": filename, "content_type": declared, "extension": ext},
        )

    def validate_size(self, filename: str, size: int) -> None:
        """Reject empty files and files over settings.max_file_size."""
        if size == 0:
            raise ValidationError(
                message=f"Image '{filename}' is empty.",
                field="files",
            )
        if size > settings.max_file_size:
            max_mb = settings.max_file_size / (1024 * 1024)
            raise ValidationError(
                message=(
                    f"Image '{filename}' is too large ({size / (1024 * 1024):.1f}MB). "
                    f"Maximum is {max_mb:.0f}MB."
                ),
                field="files",
                context={"max_size_mb": max_mb, "actual_size": size},
            )

    def detect_mime_type(self, filename: str, content: bytes) -> str:
        """
        Identify the real image format from the bytes.

        Raises:
            ValidationError if Pillow cannot read the file or the format
            is not one Gemini accepts.
        """
        try:
            with Image.open(BytesIO(content)) as img:
                image_format = img.format
                img.verify()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
            logger.info("Rejected unreadable image %s: %s", filename, str(e))
            raise ValidationError(
                message=f"'{filename}' is not a readable image.",
                field="files",
                context={"filename": filename},
            )

        mime_type = PILLOW_FORMATS.get(image_format or "")
        if mime_type is None:
            raise ValidationError(
                message=f"Image format '{image_format}' is not supported. Use PNG, JPEG or WEBP.",
                field="files",
                context={"filename": filename, "format": image_format},
            )
        return mime_type

    def validate_image(self, upload: ImageUpload) -> MenuImage:
        """Run the per-file checks and return the validated image."""
        self.validate_declared_type(upload.filename, upload.content_type)
        self.validate_size(upload.filename, len(upload.content))
        mime_type = self.detect_mime_type(upload.filename, upload.content)
        return MenuImage(data=upload.content, mime_type=mime_type)

    def validate_batch(self, uploads: Sequence[ImageUpload]) -> List[MenuImage]:
        """Validate a whole request; the first bad file rejects the batch."""
        self.validate_count(len(uploads))
        images = [self.validate_image(upload) for upload in uploads]
        logger.info(
            "Validated %d menu images (%d bytes total)",
            len(images),
            sum(len(image.data) for image in images),
        )
        return images


# ── Singleton Instance ────────────────────────────────────────────────────
image_service = ImageService()
