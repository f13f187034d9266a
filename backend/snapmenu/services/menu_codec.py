"""
SnapMenu Backend — Menu Share-Token Codec
===========================================

What:  Lossless, deterministic mapping between a MenuDocument and a single
       URL-safe text token.
Why:   The token IS the database. A published menu exists only inside the
       `m` query parameter of its share URL, and that URL has to fit in a QR
       code, so the encoding must be compact, reversible and safe to drop
       into a query string without percent-escaping.
How:   encode:  canonical JSON → UTF-16 code units → LZ compression
                → 6-bit URI-safe alphabet
       decode:  the exact inverse, followed by full shape validation

Pipeline:
    MenuDocument ──to_canonical_json()──▶ '{"restaurantName":"Cafe Sol",...}'
                 ──_to_code_units()─────▶ same text, astral chars split into surrogates
                 ──LZString────────────▶ 'N4IgdghgtgpgziAXCAygFwg...'

Compression:
    lz-string's "encoded URI component" variant. Menus repeat the same keys
    ("name", "price", "description") and similar prices for every item,
    which is exactly what an LZ dictionary coder collapses well. It is also the
    algorithm the browser client uses, so tokens minted here open in the
    browser viewer and vice versa.

    The compressor works on UTF-16 code units (JavaScript strings). Python
    strings are code points, so characters outside the BMP (emoji tags) are
    split into surrogate pairs before compression and rejoined after.

Failure contract:
    - encode never raises; it returns EMPTY_TOKEN ("") and logs the cause
    - decode never raises for bad input; it returns None
    - decode is all-or-nothing: no defaults are patched into a document
      missing a required field, and a token with anything appended is
      rejected rather than read up to its end marker
    - decode(None) and other non-str tokens raise TypeError (caller bug)
"""

import logging
import re
import struct
from typing import Any, Mapping, Optional, Union

from lzstring import LZString

from snapmenu.schemas.menu import MenuDocument

logger = logging.getLogger(__name__)

# Sentinel for "could not encode". Callers must check before building a link.
EMPTY_TOKEN = ""

# Every character encode() can emit. None of them needs percent-escaping in a
# query value; "+" may be read back as a space by form decoders, which
# decode() undoes.
TOKEN_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+-$"

_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9+\-$]+$")


def _to_code_units(text: str) -> str:
    """Re-express `text` as one Python character per UTF-16 code unit."""
    raw = text.encode("utf-16-le", "surrogatepass")
    units = struct.unpack(f"<{len(raw) // 2}H", raw)
    return "".join(map(chr, units))


def _from_code_units(text: str) -> str:
    """Rejoin surrogate pairs; raises UnicodeDecodeError on unpaired surrogates."""
    return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le")


class MenuCodec:
    """
    Encodes MenuDocuments to share tokens and back.

    Stateless and side-effect free apart from logging; safe to share one
    instance across every request.
    """

    def __init__(self) -> None:
        self._lz = LZString()

    def encode(self, document: Union[MenuDocument, Mapping[str, Any]]) -> str:
        """
        Serialize and compress a menu into a URL-safe token.

        Args:
            document: A MenuDocument, or a mapping in its wire shape.

        Returns:
            The token. Same document in, same token out.
            EMPTY_TOKEN if the input could not be serialized.
        """
        try:
            if not isinstance(document, MenuDocument):
                document = MenuDocument.model_validate(document)
            canonical = document.to_canonical_json()
            token = self._lz.compressToEncodedURIComponent(_to_code_units(canonical))
        except Exception as e:
            logger.error(
                "Failed to encode menu data: %s: %s",
                type(e).__name__,
                str(e),
            )
            return EMPTY_TOKEN

        if not token:
            logger.error("Menu encoder produced an empty token")
            return EMPTY_TOKEN

        logger.debug(
            "Encoded menu: %d json chars -> %d token chars",
            len(canonical),
            len(token),
        )
        return token

    def decode(self, token: str) -> Optional[MenuDocument]:
        """
        Recover a MenuDocument from a token.

        Args:
            token: Raw query value. May be empty, hand-edited, truncated,
                   or produced by something else entirely.

        Returns:
            The document, or None when the token is not a valid menu.

        Raises:
            TypeError: token is not a string.
        """
        if not isinstance(token, str):
            raise TypeError(f"token must be str, not {type(token).__name__}")

        if not token:
            return None

        # Form-style query decoding turns "+" into " "
        token = token.replace(" ", "+")

        if not _TOKEN_PATTERN.match(token):
            logger.info("Rejected share token: characters outside the token alphabet")
            return None

        try:
            decompressed = self._lz.decompressFromEncodedURIComponent(token)
        except Exception as e:
            logger.info(
                "Rejected share token (%d chars): decompression failed: %s",
                len(token),
                type(e).__name__,
            )
            return None

        if not decompressed:
            logger.info("Rejected share token (%d chars): decompressed to nothing", len(token))
            return None

        # The decompressor stops at its end-of-stream code and ignores anything
        # after it, so a token with junk appended would otherwise still open.
        # Compression is deterministic: a genuine token is exactly the
        # re-compression of what it decompresses to.
        if self._lz.compressToEncodedURIComponent(decompressed) != token:
            logger.info(
                "Rejected share token (%d chars): trailing or non-canonical data",
                len(token),
            )
            return None

        try:
            return MenuDocument.model_validate_json(_from_code_units(decompressed))
        except ValueError as e:
            # pydantic's ValidationError and UnicodeDecodeError are both ValueErrors
            logger.info(
                "Rejected share token (%d chars): not a menu document: %s",
                len(token),
                type(e).__name__,
            )
            return None


# ── Singleton Instance ────────────────────────────────────────────────────
menu_codec = MenuCodec()


def encode_menu(document: Union[MenuDocument, Mapping[str, Any]]) -> str:
    """Module-level shortcut for `menu_codec.encode`."""
    return menu_codec.encode(document)


def decode_menu(token: str) -> Optional[MenuDocument]:
    """Module-level shortcut for `menu_codec.decode`."""
    return menu_codec.decode(token)
