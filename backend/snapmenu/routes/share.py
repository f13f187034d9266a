"""
SnapMenu Backend — Share Route Handlers
=========================================

What:  Publishing a finished menu and opening a shared one.
Endpoints:
    POST /api/share           menu → {url, token, length, threshold, exceedsQrCapacity}
    POST /api/share/qr        menu → PNG QR code (attachment)
    POST /api/share/resolve   incoming address → starting screen for the client

Note:
    A long link is not an error. /api/share always returns the full
    address; exceedsQrCapacity tells the client to show its "this QR may
    be hard to scan" warning.
"""

import logging
from urllib.parse import quote

from fastapi import APIRouter
from fastapi.responses import Response

from snapmenu.schemas.api import (
    EntryStateResponse,
    ErrorResponse,
    ResolveRequest,
    ShareLinkResponse,
    ShareRequest,
)
from snapmenu.services.menu_service import menu_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/share", tags=["Share"])


@router.post(
    "",
    response_model=ShareLinkResponse,
    responses={500: {"description": "Menu could not be encoded", "model": ErrorResponse}},
    summary="Build a share link",
    description=(
        "Encode the menu into the `m` query parameter of the viewer address. "
        "The link is the only copy of the menu; nothing is stored server-side."
    ),
)
async def create_share_link(body: ShareRequest) -> ShareLinkResponse:
    link = menu_service.share(body.menu, body.base_url)
    return ShareLinkResponse(
        url=link.url,
        token=link.token,
        length=link.length,
        threshold=link.threshold,
        exceeds_qr_capacity=link.exceeds_qr_capacity,
    )


@router.post(
    "/qr",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}, "description": "QR code PNG"},
        422: {"description": "Link too long for any QR code", "model": ErrorResponse},
    },
    summary="Render the share link as a QR code",
)
async def create_share_qr(body: ShareRequest) -> Response:
    """
    Same link as POST /api/share, rendered as a PNG.

    Response headers:
        Content-Disposition: attachment; <Restaurant_Name>_Menu_QR.png
        X-Share-Url:          the encoded address
        X-Exceeds-Qr-Capacity: "true" | "false"
    """
    png, filename, link = menu_service.render_qr(body.menu, body.base_url)
    return Response(
        content=png,
        media_type="image/png",
        headers={
            # filename* keeps non-ASCII restaurant names intact
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}",
            "X-Share-Url": link.url,
            "X-Exceeds-Qr-Capacity": "true" if link.exceeds_qr_capacity else "false",
        },
    )


@router.post(
    "/resolve",
    response_model=EntryStateResponse,
    response_model_exclude_none=True,
    summary="Resolve an incoming share address",
    description=(
        "Returns the screen the client should open: a read-only preview with the "
        "menu for a valid link, or the upload screen (with an error message when "
        "the link was present but invalid)."
    ),
)
def resolve_share_link(body: ResolveRequest) -> EntryStateResponse:
    # Plain def for the same reason as GET /api/menu: decoding runs in the threadpool
    state = menu_service.resolve_entry(body.url)
    return EntryStateResponse(
        step=state.step.value,
        readonly=state.readonly,
        menu=state.menu,
        error=state.error,
    )
