"""
SnapMenu Backend — Menu Service (Business Logic Orchestrator)
===============================================================

What:  Coordinates the services behind every menu endpoint.
How:   Composes ImageService, GeminiService, the share-link builder,
       the edit operations and QRService. Holds no state of its own.
Who:   Called by route handlers.

Workflows:
    Owner (producer):
    ┌──────────┐    ┌─────────────┐    ┌──────────────┐    ┌───────────┐    ┌──────────┐
    │  Upload  │───▶│  Validate   │───▶│  Gemini API  │───▶│   Edit    │───▶│  Share   │
    │ (Route)  │    │ (ImageServ) │    │  (extract)   │    │ (editor)  │    │ (link+QR)│
    └──────────┘    └─────────────┘    └──────────────┘    └───────────┘    └──────────┘

    Customer (consumer):
        incoming address → extract token → decode → read-only preview

    Nothing is stored at any step. Extraction returns the document to the
    client, editing returns a new document, sharing returns a URL.
"""

import logging
from typing import Optional, Sequence, Tuple

from snapmenu.exceptions import InvalidMenuLinkError
from snapmenu.schemas.api import MenuEdit
from snapmenu.schemas.menu import MenuDocument
from snapmenu.services import menu_editor
from snapmenu.services.gemini_service import gemini_service
from snapmenu.services.image_service import ImageUpload, image_service
from snapmenu.services.qr_service import qr_service
from snapmenu.services.share_link import EntryState, ShareLink, share_link_builder

logger = logging.getLogger(__name__)


class MenuService:
    """
    Business logic layer for menu operations.

    Error Handling Strategy:
        Service errors propagate with their own types (ValidationError,
        ExtractionError, CircuitBreakerOpenError, InvalidMenuLinkError,
        EncodingError, QRCapacityError); global handlers map them to HTTP.
    """

    async def extract_menu(self, uploads: Sequence[ImageUpload]) -> MenuDocument:
        """
        Photos in, editable menu out.

        Raises:
            ValidationError: bad image count, type, size or content
            ExtractionError: Gemini failed or returned an unusable result
            CircuitBreakerOpenError: too many recent Gemini failures
        """
        images = image_service.validate_batch(uploads)
        document = await gemini_service.extract_menu(images)
        logger.info(
            "Menu extraction complete: '%s' (%d pages → %d categories, %d items)",
            document.restaurant_name,
            len(images),
            len(document.categories),
            document.item_count,
        )
        return document

    def apply_edits(self, document: MenuDocument, edits: Sequence[MenuEdit]) -> MenuDocument:
        """Apply editor operations in order and return the new document."""
        return menu_editor.apply_edits(document, edits)

    def share(self, document: MenuDocument, base_url: Optional[str] = None) -> ShareLink:
        """Build the share address for a finished menu."""
        return share_link_builder.build(document, base_url)

    def render_qr(
        self, document: MenuDocument, base_url: Optional[str] = None
    ) -> Tuple[bytes, str, ShareLink]:
        """
        Build the share address and render it as a QR code.

        Returns:
            (png_bytes, download_filename, share_link)
        """
        link = self.share(document, base_url)
        png = qr_service.render_png(link.url)
        return png, qr_service.download_filename(document.restaurant_name), link

    def open_menu(self, token: Optional[str], query: Optional[str] = None) -> MenuDocument:
        """
        Decode a shared menu for the read-only preview, optionally filtered
        by the preview search box.

        Raises:
            InvalidMenuLinkError: missing, oversized, or invalid token.
        """
        if not token:
            raise InvalidMenuLinkError(context={"reason": "missing token"})
        document = share_link_builder.open_token(token.replace(" ", "+"))
        return menu_editor.search_menu(document, query)

    def resolve_entry(self, address: str) -> EntryState:
        """Starting screen for a visitor who opened `address`."""
        state = share_link_builder.resolve_entry(address)
        logger.info(
            "Resolved entry state: step=%s readonly=%s error=%s",
            state.step.value,
            state.readonly,
            state.error is not None,
        )
        return state


# ── Singleton Instance ────────────────────────────────────────────────────
menu_service = MenuService()
