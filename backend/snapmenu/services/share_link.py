"""
SnapMenu Backend — Share-Link Builder
=======================================

What:  Glue between the menu codec and the address bar.
How:   build()   → encode the menu, append it as the `m` query parameter
       extract() → pull the raw token back out of an incoming address
       resolve() → extract + decode, with a length cap for untrusted input
Who:   Called by the share and menu routes.

Query parameter contract:
    The share address carries exactly one recognized parameter (default `m`).
    Any other parameters and the fragment of the base address are kept as-is
    and ignored on the way back in.

Capacity signal:
    QR scanners degrade once a URL passes roughly 2500 characters. build()
    still returns the full address in that case; it only sets
    `exceeds_qr_capacity` so the UI can warn. The token is never truncated.

Entry state:
    The client is a small state machine:

        upload → processing → editor → preview → share

    A visitor arriving with a valid token skips straight to `preview` in
    read-only mode; editing and sharing are unreachable for them.
    resolve_entry() computes that starting state from the incoming address.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import unquote, unquote_plus, urlsplit, urlunsplit

from snapmenu.config import settings
from snapmenu.exceptions import EncodingError, InvalidMenuLinkError, INVALID_LINK_MESSAGE
from snapmenu.schemas.menu import MenuDocument
from snapmenu.services.menu_codec import EMPTY_TOKEN, MenuCodec, menu_codec

logger = logging.getLogger(__name__)


class AppStep(str, Enum):
    """Screens of the client application, in producer order."""
    UPLOAD = "upload"
    PROCESSING = "processing"
    EDITOR = "editor"
    PREVIEW = "preview"
    SHARE = "share"


@dataclass(frozen=True)
class ShareLink:
    """A built share address plus its advisory QR capacity signal."""
    url: str
    token: str
    threshold: int

    @property
    def length(self) -> int:
        return len(self.url)

    @property
    def exceeds_qr_capacity(self) -> bool:
        return self.length > self.threshold


@dataclass(frozen=True)
class EntryState:
    """Where a visitor lands given the address they opened."""
    step: AppStep
    readonly: bool = False
    menu: Optional[MenuDocument] = None
    error: Optional[str] = None


class ShareLinkBuilder:
    """
    Builds share addresses from menus and recovers menus from addresses.

    Args:
        codec: Token codec (defaults to the shared MenuCodec).
        param: Query key carrying the token (default: settings.share_param).
        advisory_length: Address length that raises the capacity signal.
        max_token_length: Longest token resolve() will try to decompress.
    """

    def __init__(
        self,
        codec: Optional[MenuCodec] = None,
        param: Optional[str] = None,
        advisory_length: Optional[int] = None,
        max_token_length: Optional[int] = None,
    ):
        self.codec = codec if codec is not None else menu_codec
        self.param = param if param is not None else settings.share_param
        self.advisory_length = (
            advisory_length if advisory_length is not None else settings.qr_advisory_length
        )
        self.max_token_length = (
            max_token_length if max_token_length is not None else settings.max_token_length
        )

    # ── Producer side ─────────────────────────────────────────────────────

    def build(self, document: MenuDocument, base_address: Optional[str] = None) -> ShareLink:
        """
        Encode `document` and attach the token to `base_address`.

        Returns:
            ShareLink. A long address is still returned, flagged via
            `exceeds_qr_capacity`.

        Raises:
            EncodingError: the codec returned the empty sentinel.
        """
        base = base_address or settings.share_base_url
        token = self.codec.encode(document)
        if token == EMPTY_TOKEN:
            raise EncodingError(context={"restaurant": document.restaurant_name})

        scheme, netloc, path, query, fragment = urlsplit(base)
        # Keep the other parameters byte-for-byte; only replace ours
        kept = [
            piece for piece in query.split("&")
            if piece and unquote_plus(piece.partition("=")[0]) != self.param
        ]
        kept.append(f"{self.param}={token}")
        url = urlunsplit((scheme, netloc, path, "&".join(kept), fragment))

        link = ShareLink(url=url, token=token, threshold=self.advisory_length)
        if link.exceeds_qr_capacity:
            logger.warning(
                "Share link for '%s' is %d chars (advisory limit %d); QR may not scan",
                document.restaurant_name,
                link.length,
                self.advisory_length,
            )
        else:
            logger.info(
                "Built share link for '%s': %d chars, %d categories, %d items",
                document.restaurant_name,
                link.length,
                len(document.categories),
                document.item_count,
            )
        return link

    # ── Consumer side ─────────────────────────────────────────────────────

    def extract(self, address: str) -> Optional[str]:
        """
        Read the token from an incoming address without decoding it.

        Returns:
            The token exactly as build() wrote it, "" if the parameter is
            present but empty, or None if the parameter is missing.
        """
        query = urlsplit(address).query
        for piece in query.split("&"):
            key, _, value = piece.partition("=")
            if unquote_plus(key) == self.param:
                # Tokens never contain spaces; a space is a "+" that went
                # through form decoding somewhere along the way
                return unquote(value).replace(" ", "+")
        return None

    def open_token(self, token: str) -> MenuDocument:
        """
        Decode a token taken from untrusted input.

        Raises:
            InvalidMenuLinkError: empty, oversized, or undecodable token.
        """
        if len(token) > self.max_token_length:
            logger.warning(
                "Refusing to decode oversized share token (%d chars, limit %d)",
                len(token),
                self.max_token_length,
            )
            raise InvalidMenuLinkError(context={"token_length": len(token)})

        document = self.codec.decode(token)
        if document is None:
            raise InvalidMenuLinkError(context={"token_length": len(token)})
        return document

    def resolve(self, address: str) -> Optional[MenuDocument]:
        """decode(extract(address)), returning None on any failure."""
        token = self.extract(address)
        if not token:
            return None
        try:
            return self.open_token(token)
        except InvalidMenuLinkError:
            return None

    def resolve_entry(self, address: str) -> EntryState:
        """
        Decide the client's starting screen for `address`.

            no token / empty token → upload
            valid token            → preview, read-only, with the menu
            invalid token          → upload, with the invalid-link message
        """
        token = self.extract(address)
        if not token:
            return EntryState(step=AppStep.UPLOAD)

        document = self.resolve(address)
        if document is None:
            return EntryState(step=AppStep.UPLOAD, error=INVALID_LINK_MESSAGE)

        return EntryState(step=AppStep.PREVIEW, readonly=True, menu=document)


# ── Singleton Instance ────────────────────────────────────────────────────
share_link_builder = ShareLinkBuilder()
