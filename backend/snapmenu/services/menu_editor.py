"""
SnapMenu Backend — Menu Edit Operations
=========================================

What:  The closed set of edits a human can make to an extracted menu.
Why:   The data model is fixed, so edits are explicit operations per entity
       (rename a category, set an item's price, move an item) rather than
       "set field X to Y" on arbitrary keys.
How:   Every operation is a pure function: it takes a MenuDocument and returns
       a new one, leaving the input untouched. Bad indices raise
       ValidationError.

Tag boundary:
    Tags arrive from the editor as comma-separated text ("Spicy, , GF").
    parse_tags() trims each entry and drops the blank ones. This is the only
    place blank tags are filtered; the codec stores whatever it is given.

Operation inventory:
    Document:  rename_restaurant, set_description
    Category:  add_category, rename_category, delete_category, move_category
    Item:      add_item, delete_item, move_item,
               set_item_name, set_item_description, set_item_price, set_item_tags
    Batch:     apply_edits (typed edit requests from the API)
    Preview:   search_menu (read-only filter, not an edit)
"""

import logging
from typing import Iterable, List, Optional, Sequence, Union

from snapmenu.exceptions import ValidationError
from snapmenu.schemas.api import (
    AddCategoryEdit,
    AddItemEdit,
    DeleteCategoryEdit,
    DeleteItemEdit,
    MenuEdit,
    MoveCategoryEdit,
    MoveItemEdit,
    RenameCategoryEdit,
    RenameRestaurantEdit,
    SetDescriptionEdit,
    UpdateItemEdit,
)
from snapmenu.schemas.menu import MenuCategory, MenuDocument, MenuItem

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_NAME = "New Category"


def new_item() -> MenuItem:
    """The placeholder item the editor inserts on "Add item"."""
    return MenuItem(name="New Item", description="", price="0.00", tags=[])


def parse_tags(raw: Union[str, Sequence[str], None]) -> List[str]:
    """
    Normalize editor tag input.

    >>> parse_tags("Spicy, , GF ,")
    ['Spicy', 'GF']
    """
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else raw
    return [tag.strip() for tag in parts if tag.strip()]


# ── Index helpers ─────────────────────────────────────────────────────────

def _check_index(index: int, size: int, what: str) -> None:
    if 0 <= index < size:
        return
    if size:
        message = f"{what} index {index} is out of range (0-{size - 1})"
    else:
        message = f"There is no {what.lower()} at index {index}"
    raise ValidationError(
        message=message,
        field=f"{what.lower()}_index",
        context={"index": index, "size": size},
    )


def _category(document: MenuDocument, index: int) -> MenuCategory:
    _check_index(index, len(document.categories), "Category")
    return document.categories[index]


def _item(document: MenuDocument, category_index: int, item_index: int) -> MenuItem:
    category = _category(document, category_index)
    _check_index(item_index, len(category.items), "Item")
    return category.items[item_index]


def _with_category(
    document: MenuDocument, index: int, category: MenuCategory
) -> MenuDocument:
    categories = list(document.categories)
    categories[index] = category
    return document.model_copy(update={"categories": categories})


def _with_items(
    document: MenuDocument, category_index: int, items: List[MenuItem]
) -> MenuDocument:
    category = _category(document, category_index)
    return _with_category(
        document, category_index, category.model_copy(update={"items": items})
    )


def _with_item(
    document: MenuDocument, category_index: int, item_index: int, **changes
) -> MenuDocument:
    item = _item(document, category_index, item_index)
    items = list(document.categories[category_index].items)
    items[item_index] = item.model_copy(update=changes)
    return _with_items(document, category_index, items)


def _moved(values: list, from_index: int, to_index: int, what: str) -> list:
    _check_index(from_index, len(values), what)
    _check_index(to_index, len(values), what)
    values = list(values)
    values.insert(to_index, values.pop(from_index))
    return values


# ── Document ──────────────────────────────────────────────────────────────

def rename_restaurant(document: MenuDocument, name: str) -> MenuDocument:
    return document.model_copy(update={"restaurant_name": name})


def set_description(document: MenuDocument, description: Optional[str]) -> MenuDocument:
    """Blank descriptions are stored as absent."""
    if description is not None and not description.strip():
        description = None
    return document.model_copy(update={"description": description})


# ── Categories ────────────────────────────────────────────────────────────

def add_category(document: MenuDocument, name: str = DEFAULT_CATEGORY_NAME) -> MenuDocument:
    """Append an empty category at the end."""
    categories = list(document.categories)
    categories.append(MenuCategory(name=name, items=[]))
    return document.model_copy(update={"categories": categories})


def rename_category(document: MenuDocument, index: int, name: str) -> MenuDocument:
    category = _category(document, index)
    return _with_category(document, index, category.model_copy(update={"name": name}))


def delete_category(document: MenuDocument, index: int) -> MenuDocument:
    _category(document, index)
    categories = list(document.categories)
    del categories[index]
    return document.model_copy(update={"categories": categories})


def move_category(document: MenuDocument, from_index: int, to_index: int) -> MenuDocument:
    categories = _moved(document.categories, from_index, to_index, "Category")
    return document.model_copy(update={"categories": categories})


# ── Items ─────────────────────────────────────────────────────────────────

def add_item(
    document: MenuDocument, category_index: int, item: Optional[MenuItem] = None
) -> MenuDocument:
    """Append `item` (or the placeholder item) to a category."""
    items = list(_category(document, category_index).items)
    items.append(item if item is not None else new_item())
    return _with_items(document, category_index, items)


def delete_item(document: MenuDocument, category_index: int, item_index: int) -> MenuDocument:
    _item(document, category_index, item_index)
    items = list(document.categories[category_index].items)
    del items[item_index]
    return _with_items(document, category_index, items)


def move_item(
    document: MenuDocument, category_index: int, from_index: int, to_index: int
) -> MenuDocument:
    items = _moved(_category(document, category_index).items, from_index, to_index, "Item")
    return _with_items(document, category_index, items)


def set_item_name(
    document: MenuDocument, category_index: int, item_index: int, name: str
) -> MenuDocument:
    return _with_item(document, category_index, item_index, name=name)


def set_item_description(
    document: MenuDocument, category_index: int, item_index: int, description: str
) -> MenuDocument:
    return _with_item(document, category_index, item_index, description=description)


def set_item_price(
    document: MenuDocument, category_index: int, item_index: int, price: str
) -> MenuDocument:
    return _with_item(document, category_index, item_index, price=price)


def set_item_tags(
    document: MenuDocument,
    category_index: int,
    item_index: int,
    tags: Union[str, Sequence[str], None],
) -> MenuDocument:
    return _with_item(document, category_index, item_index, tags=parse_tags(tags))


# ── Batch ─────────────────────────────────────────────────────────────────

_ITEM_SETTERS = {
    "name": set_item_name,
    "description": set_item_description,
    "price": set_item_price,
    "tags": set_item_tags,
}


def apply_edit(document: MenuDocument, edit: MenuEdit) -> MenuDocument:
    """Apply one typed edit request."""
    if isinstance(edit, RenameRestaurantEdit):
        return rename_restaurant(document, edit.name)
    if isinstance(edit, SetDescriptionEdit):
        return set_description(document, edit.description)
    if isinstance(edit, AddCategoryEdit):
        return add_category(document, edit.name)
    if isinstance(edit, RenameCategoryEdit):
        return rename_category(document, edit.category_index, edit.name)
    if isinstance(edit, DeleteCategoryEdit):
        return delete_category(document, edit.category_index)
    if isinstance(edit, MoveCategoryEdit):
        return move_category(document, edit.from_index, edit.to_index)
    if isinstance(edit, AddItemEdit):
        return add_item(document, edit.category_index, edit.item)
    if isinstance(edit, DeleteItemEdit):
        return delete_item(document, edit.category_index, edit.item_index)
    if isinstance(edit, MoveItemEdit):
        return move_item(document, edit.category_index, edit.from_index, edit.to_index)
    if isinstance(edit, UpdateItemEdit):
        value = edit.value
        if edit.field != "tags" and not isinstance(value, str):
            raise ValidationError(
                message=f"Item {edit.field} must be text",
                field="value",
            )
        setter = _ITEM_SETTERS[edit.field]
        return setter(document, edit.category_index, edit.item_index, value)
    raise TypeError(f"Unknown edit type: {type(edit).__name__}")


def apply_edits(document: MenuDocument, edits: Iterable[MenuEdit]) -> MenuDocument:
    """
    Apply edits in order. All-or-nothing: if any edit fails, the
    ValidationError propagates and the caller keeps its original document.
    """
    count = 0
    for count, edit in enumerate(edits, start=1):
        document = apply_edit(document, edit)
    logger.debug("Applied %d menu edits", count)
    return document


# ── Preview ───────────────────────────────────────────────────────────────

def search_menu(document: MenuDocument, query: Optional[str]) -> MenuDocument:
    """
    Filter a menu the way the preview search box does.

    Keeps items whose name or description contains `query`
    (case-insensitive). Categories with no items left are always dropped,
    including with a blank query, so the preview never shows an empty heading.
    """
    needle = (query or "").strip().casefold()
    categories = []
    for category in document.categories:
        items = [
            item for item in category.items
            if not needle
            or needle in item.name.casefold()
            or needle in item.description.casefold()
        ]
        if items:
            categories.append(category.model_copy(update={"items": items}))
    return document.model_copy(update={"categories": categories})
