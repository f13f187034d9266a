"""
SnapMenu Backend — API Request/Response Schemas
=================================================

What:  Pydantic models defining the HTTP contract with the browser client.
How:   FastAPI validates request bodies against these models, serializes
       responses through them, and builds the OpenAPI docs from them.

Conventions:
    Menu-facing contracts inherit MenuModel, so their JSON keys are
    camelCase like the menu itself (`baseUrl`, `exceedsQrCapacity`,
    `categoryIndex`). Operational responses (health, errors) keep the
    snake_case keys used by the global error handlers.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictStr

from snapmenu.schemas.menu import MenuDocument, MenuItem, MenuModel


# ══════════════════════════════════════════════════════════════════════════
# Share Links
# ══════════════════════════════════════════════════════════════════════════


class ShareRequest(MenuModel):
    """
    What:  Body of POST /api/share and POST /api/share/qr.
    Who:   Sent by the client when the owner presses "Share".
    """
    menu: MenuDocument = Field(description="The final, edited menu")
    base_url: Optional[str] = Field(
        default=None,
        description="Viewer address to attach the token to (defaults to SHARE_BASE_URL)"
    )


class ShareLinkResponse(MenuModel):
    """
    What:  A ready-to-print share address.

    exceeds_qr_capacity is advisory: the link is valid, but a QR code this
    dense may not scan on every phone.
    """
    url: str = Field(description="Full share address including the token")
    token: str = Field(description="The encoded menu (value of the `m` parameter)")
    length: int = Field(description="Length of url in characters")
    threshold: int = Field(description="Advisory QR length limit")
    exceeds_qr_capacity: bool = Field(description="True when length > threshold")


class ResolveRequest(MenuModel):
    """Body of POST /api/share/resolve: the address a visitor opened."""
    url: str = Field(description="Incoming address, e.g. https://host/?m=N4Ig...")


class EntryStateResponse(MenuModel):
    """
    What:  Which screen the client should start on for a given address.

    step is "preview" with readonly=true and the menu for valid links;
    "upload" with an error message for invalid ones; plain "upload" otherwise.
    """
    step: str = Field(description="upload | processing | editor | preview | share")
    readonly: bool = Field(default=False, description="Customer (view-only) mode")
    menu: Optional[MenuDocument] = Field(default=None, description="Decoded menu")
    error: Optional[str] = Field(default=None, description="User-facing error message")


# ══════════════════════════════════════════════════════════════════════════
# Edits
# ══════════════════════════════════════════════════════════════════════════
# One model per operation; `op` is the discriminator.


class RenameRestaurantEdit(MenuModel):
    op: Literal["rename_restaurant"]
    name: StrictStr


class SetDescriptionEdit(MenuModel):
    op: Literal["set_description"]
    description: Optional[StrictStr] = None


class AddCategoryEdit(MenuModel):
    op: Literal["add_category"]
    name: StrictStr = "New Category"


class RenameCategoryEdit(MenuModel):
    op: Literal["rename_category"]
    category_index: int
    name: StrictStr


class DeleteCategoryEdit(MenuModel):
    op: Literal["delete_category"]
    category_index: int


class MoveCategoryEdit(MenuModel):
    op: Literal["move_category"]
    from_index: int
    to_index: int


class AddItemEdit(MenuModel):
    op: Literal["add_item"]
    category_index: int
    item: Optional[MenuItem] = None


class DeleteItemEdit(MenuModel):
    op: Literal["delete_item"]
    category_index: int
    item_index: int


class MoveItemEdit(MenuModel):
    op: Literal["move_item"]
    category_index: int
    from_index: int
    to_index: int


class UpdateItemEdit(MenuModel):
    """
    Set one item field. `field` is a closed set; tags accept either
    comma-separated text or a list and are normalized by parse_tags.
    """
    op: Literal["update_item"]
    category_index: int
    item_index: int
    field: Literal["name", "description", "price", "tags"]
    value: Union[StrictStr, List[StrictStr]]


MenuEdit = Annotated[
    Union[
        RenameRestaurantEdit,
        SetDescriptionEdit,
        AddCategoryEdit,
        RenameCategoryEdit,
        DeleteCategoryEdit,
        MoveCategoryEdit,
        AddItemEdit,
        DeleteItemEdit,
        MoveItemEdit,
        UpdateItemEdit,
    ],
    Field(discriminator="op"),
]


class ApplyEditsRequest(MenuModel):
    """Body of POST /api/menu/edits."""
    menu: MenuDocument = Field(description="Menu to edit")
    edits: List[MenuEdit] = Field(
        default_factory=list,
        max_length=500,
        description="Edits applied in order"
    )


# ══════════════════════════════════════════════════════════════════════════
# Operational
# ══════════════════════════════════════════════════════════════════════════


class HealthResponse(BaseModel):
    """
    What:  Service health for probes and monitoring.
    Values:
        status: healthy | degraded
        gemini: available | unavailable | circuit_open | not_configured
    """
    status: str = Field(description="Overall health status")
    version: str = Field(description="Application version")
    gemini: str = Field(description="Gemini extraction service status")
    uptime_seconds: float = Field(description="Seconds since process start")


class ErrorResponse(BaseModel):
    """
    What:  Standard error envelope returned by every global exception handler.
    Who:   Documented in route `responses=` for OpenAPI.
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable message, safe to display")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Extra context")
    request_id: Optional[str] = Field(default=None, description="Correlation ID")
