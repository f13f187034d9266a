"""
SnapMenu Backend — Extract Route Handler
==========================================

What:  POST /api/extract: upload menu photos, get back a structured menu.
How:   Receives multipart `files`, reads them into memory, delegates to
       MenuService (validate → Gemini), returns the MenuDocument.
Who:   Called by the client's photo uploader ("Generate Menu").

Request Flow:
    1. Client sends multipart/form-data with one or more `files` fields
    2. Page count and per-file size are checked, then every file is read
    3. MenuService validates the batch and calls Gemini
    4. Return 200 with the menu, ready for the editor
    5. On error: global handlers return 400 / 429 / 503 with a message the
       client shows verbatim before returning to the upload screen
"""

import logging
from typing import List

from fastapi import APIRouter, File, UploadFile

from snapmenu.schemas.api import ErrorResponse
from snapmenu.schemas.menu import MenuDocument
from snapmenu.services.image_service import ImageUpload, image_service
from snapmenu.services.menu_service import menu_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Extract"])


@router.post(
    "/extract",
    response_model=MenuDocument,
    response_model_exclude_none=True,
    responses={
        400: {"description": "Invalid images", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        503: {"description": "AI service unavailable", "model": ErrorResponse},
    },
    summary="Extract a menu from photos",
    description=(
        "Upload one or more photos of a paper menu (PNG, JPEG or WEBP). "
        "Google Gemini reads them and returns a structured menu for editing."
    ),
)
async def extract_menu(
    files: List[UploadFile] = File(
        ...,
        description="Menu page photos in page order",
    ),
) -> MenuDocument:
    """
    Extract a structured menu from uploaded photos.

    Error responses (handled by global exception handlers):
        HTTP 400: No images, unsupported type, empty or oversized file
        HTTP 429: Rate limit exceeded
        HTTP 503: Gemini failed, returned nothing, or returned invalid JSON
    """
    uploads: List[ImageUpload] = []
    try:
        # Count and declared size are known from the multipart parse;
        # reject on those before pulling any file into memory
        image_service.validate_count(len(files))
        for upload in files:
            if upload.size is not None:
                image_service.validate_size(upload.filename or "upload.jpg", upload.size)

        for upload in files:
            content = await upload.read()
            uploads.append(
                ImageUpload(
                    filename=upload.filename or "upload.jpg",
                    content=content,
                    content_type=upload.content_type,
                )
            )
    finally:
        for upload in files:
            await upload.close()

    logger.info(
        "Received extract request: %d file(s), %d bytes",
        len(uploads),
        sum(len(u.content) for u in uploads),
    )

    return await menu_service.extract_menu(uploads)
