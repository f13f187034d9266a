"""
SnapMenu Backend — Menu Document Model
========================================

What:  Pydantic models for the structured menu (document → categories → items).
Why:   One model serves three producers and consumers: the AI extraction
       response, the share-token codec, and the HTTP API.
How:   Python attributes are snake_case; the wire form is camelCase
       (`restaurantName`) so tokens and JSON bodies stay compatible with the
       browser client. Both spellings are accepted on input.

Shape rules enforced here (and therefore by every decode):
    - restaurantName, categories, category name/items, item name/price are required
    - text fields must be JSON strings; numbers are never coerced to text
    - item description defaults to "" (the AI schema does not require it)
    - tags=None (absent) and tags=[] (present but empty) are different values
    - unknown keys are ignored
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic.alias_generators import to_camel


class MenuModel(BaseModel):
    """Shared config: camelCase aliases, name-or-alias population, extras ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class MenuItem(MenuModel):
    """
    A single dish or drink.

    `price` is free text ("$4.00", "12 / 18", "MP") exactly as extracted.
    """
    name: StrictStr = Field(description="Item name as printed on the menu")
    description: StrictStr = Field(default="", description="Item description; may be empty")
    price: StrictStr = Field(description="Price text including currency symbols")
    tags: Optional[List[StrictStr]] = Field(
        default=None,
        description="Ordered labels such as 'Spicy', 'Vegan', 'GF'"
    )


class MenuCategory(MenuModel):
    """A named section of the menu. Item order is display order."""
    name: StrictStr = Field(description="Category heading")
    items: List[MenuItem] = Field(description="Items in display order")


class MenuDocument(MenuModel):
    """
    The whole menu.

    There is no id field: a document is identified only by its content,
    and its share token is the only durable copy.
    """
    restaurant_name: StrictStr = Field(description="Restaurant name")
    description: Optional[StrictStr] = Field(
        default=None,
        description="Optional tagline or description"
    )
    categories: List[MenuCategory] = Field(description="Categories in display order")

    def to_canonical_json(self) -> str:
        """
        Compact JSON with camelCase keys, declaration order, absent values omitted.

        This string is what the codec compresses, so any change to field
        order or naming changes every token.
        """
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @property
    def item_count(self) -> int:
        return sum(len(category.items) for category in self.categories)
