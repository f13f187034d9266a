"""
SnapMenu Backend — QR Code Rendering
======================================

What:  Renders a share address as a printable PNG QR code.
How:   qrcode picks the smallest symbol version that fits (fit=True) at
       error-correction level L, which leaves the most room for data.
       If even version 40 cannot hold the address, QRCapacityError.
Who:   Called by MenuService for POST /api/share/qr.

Capacity:
    Level L, byte mode, version 40 holds 2953 bytes. Addresses approaching
    that still render but produce a 177×177 module symbol that cheap phone
    cameras struggle with; ShareLink.exceeds_qr_capacity warns well before.
"""

import logging
import re
from io import BytesIO

import qrcode
from qrcode.exceptions import DataOverflowError

from snapmenu.exceptions import QRCapacityError

logger = logging.getLogger(__name__)


class QRService:
    """PNG QR code generation for share addresses."""

    def render_png(self, text: str, box_size: int = 10, border: int = 4) -> bytes:
        """
        Render `text` as a black-on-white PNG.

        Args:
            text: The full share address (opaque to this service).
            box_size: Pixels per module.
            border: Quiet zone width in modules (4 is the QR standard minimum).

        Raises:
            QRCapacityError: text does not fit in any QR version.
        """
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=box_size,
            border=border,
        )
        qr.add_data(text)
        try:
            qr.make(fit=True)
        except DataOverflowError:
            logger.warning("Share address too long for a QR code: %d chars", len(text))
            raise QRCapacityError(length=len(text))

        img = qr.make_image(fill_color="black", back_color="white")
        output = BytesIO()
        img.save(output)

        logger.info(
            "Rendered QR code: version %d for %d chars (%d bytes PNG)",
            qr.version,
            len(text),
            output.tell(),
        )
        return output.getvalue()

    @staticmethod
    def download_filename(restaurant_name: str) -> str:
        """'Cafe Sol' → 'Cafe_Sol_Menu_QR.png'"""
        stem = re.sub(r"\s+", "_", restaurant_name.strip()) or "Restaurant"
        return f"{stem}_Menu_QR.png"


# ── Singleton Instance ────────────────────────────────────────────────────
qr_service = QRService()
