"""
SnapMenu Backend — Menu Route Handlers
========================================

What:  Read a shared menu back out of its token, and apply editor changes.
Endpoints:
    GET  /api/menu?m=<token>[&q=<search>]   token → menu (404 if invalid)
    POST /api/menu/edits                     {menu, edits[]} → menu

Why edits go through the API:
    The edit operations are a closed, typed set. Sending them as a batch
    lets the client stay a thin form while the rules (index checks, tag
    trimming) live in one place.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

from snapmenu.config import settings
from snapmenu.schemas.api import ApplyEditsRequest, ErrorResponse
from snapmenu.schemas.menu import MenuDocument
from snapmenu.services.menu_service import menu_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/menu", tags=["Menu"])


@router.get(
    "",
    response_model=MenuDocument,
    response_model_exclude_none=True,
    responses={404: {"description": "Invalid or expired menu link", "model": ErrorResponse}},
    summary="Open a shared menu",
)
def get_menu(
    token: Optional[str] = Query(
        default=None,
        alias=settings.share_param,
        description="Share token from the QR code link",
    ),
    q: Optional[str] = Query(
        default=None,
        max_length=200,
        description="Optional search over item names and descriptions",
    ),
) -> MenuDocument:
    # Plain def: decoding is CPU-bound, so it runs in the threadpool
    # instead of blocking the event loop
    return menu_service.open_menu(token, q)


@router.post(
    "/edits",
    response_model=MenuDocument,
    response_model_exclude_none=True,
    responses={400: {"description": "Edit refers to a missing category or item", "model": ErrorResponse}},
    summary="Apply editor operations",
)
async def apply_edits(body: ApplyEditsRequest) -> MenuDocument:
    document = menu_service.apply_edits(body.menu, body.edits)
    logger.info("Applied %d edit(s) to '%s'", len(body.edits), document.restaurant_name)
    return document
