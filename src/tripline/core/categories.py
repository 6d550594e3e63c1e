"""Category registry.

Maps each activity category to its group, icon, multi-day eligibility and the
ordered list of editable fields the inline editor exposes for it. Lookups are
plain dict reads so adding a category never touches the editing code.

Example:
    >>> registry = get_registry()
    >>> registry.is_lodging("hotel")
    True
    >>> [f.name for f in registry.field_schema("restaurant")][:3]
    ['type', 'venueName', 'provider']
"""

from __future__ import annotations

import functools
from enum import Enum

from pydantic import BaseModel, Field


# =============================================================================
# Models
# =============================================================================


class CategoryGroup(str, Enum):
    """Groups used to organize categories in pickers."""

    CULTURE = "culture"
    NATURE = "nature"
    ENTERTAINMENT = "entertainment"
    FOOD = "food"
    SHOPPING = "shopping"
    TOURS = "tours"
    LODGING = "lodging"
    TRANSPORT = "transport"
    DINING = "dining"
    OTHER = "other"


class FieldInput(str, Enum):
    """Input widget kind for an editable field."""

    SELECT = "select"
    TEXT = "text"
    TEXTAREA = "textarea"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    NUMBER = "number"
    LOCATION = "location"


class FieldDescriptor(BaseModel):
    """One editable field in an item's inline editor."""

    model_config = {"frozen": True}

    name: str
    input_type: FieldInput = FieldInput.TEXT


class Category(BaseModel):
    """Registry entry for one category.

    Attributes:
        key: Category identifier stored on the activity (``type``).
        icon: Display icon.
        group: Picker group.
        schema_name: Key into the field-schema table. None means the category
            has no special fields and uses the basic schema.
    """

    key: str
    icon: str = "📍"
    group: CategoryGroup = CategoryGroup.OTHER
    schema_name: str | None = None

    @property
    def has_special_fields(self) -> bool:
        return self.schema_name is not None

    @property
    def is_lodging(self) -> bool:
        return self.group == CategoryGroup.LODGING


# =============================================================================
# Field Schemas
# =============================================================================


def _fields(*spec: tuple[str, FieldInput]) -> tuple[FieldDescriptor, ...]:
    return tuple(FieldDescriptor(name=name, input_type=kind) for name, kind in spec)


TYPE_FIELD = FieldDescriptor(name="type", input_type=FieldInput.SELECT)
DESCRIPTION_FIELD = FieldDescriptor(name="description", input_type=FieldInput.TEXTAREA)
LOCATION_FIELD = FieldDescriptor(name="location", input_type=FieldInput.LOCATION)

# Schema name used for categories with special fields but no dedicated schema.
GENERIC_SCHEMA = "generic"
# Schema name used for categories without special fields.
BASIC_SCHEMA = "basic"

_T = FieldInput

SCHEMA_BODIES: dict[str, tuple[FieldDescriptor, ...]] = {
    "lodging": _fields(
        ("propertyName", _T.TEXT),
        ("provider", _T.TEXT),
        ("checkInDate", _T.DATE),
        ("checkOutDate", _T.DATE),
        ("confirmationCode", _T.TEXT),
    ),
    "dining": _fields(
        ("venueName", _T.TEXT),
        ("provider", _T.TEXT),
        ("reservationDate", _T.DATE),
        ("reservationTime", _T.TIME),
        ("partySize", _T.NUMBER),
        ("confirmationCode", _T.TEXT),
    ),
    "flight": _fields(
        ("provider", _T.TEXT),
        ("flightNumber", _T.TEXT),
        ("origin", _T.TEXT),
        ("destination", _T.TEXT),
        ("departureDate", _T.DATE),
        ("departureTime", _T.TIME),
        ("seatClass", _T.TEXT),
        ("confirmationCode", _T.TEXT),
    ),
    "train": _fields(
        ("provider", _T.TEXT),
        ("trainNumber", _T.TEXT),
        ("origin", _T.TEXT),
        ("destination", _T.TEXT),
        ("departureDate", _T.DATE),
        ("departureTime", _T.TIME),
        ("seatClass", _T.TEXT),
        ("confirmationCode", _T.TEXT),
    ),
    "ground": _fields(
        ("provider", _T.TEXT),
        ("origin", _T.TEXT),
        ("destination", _T.TEXT),
        ("departureDate", _T.DATE),
        ("departureTime", _T.TIME),
        ("confirmationCode", _T.TEXT),
    ),
    GENERIC_SCHEMA: _fields(
        ("provider", _T.TEXT),
        ("startDate", _T.DATE),
        ("endDate", _T.DATE),
        ("confirmationCode", _T.TEXT),
    ),
    BASIC_SCHEMA: _fields(
        ("startTime", _T.DATETIME),
        ("endTime", _T.DATETIME),
    ),
}


# =============================================================================
# Default Categories
# =============================================================================

_G = CategoryGroup

DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(key="museum", icon="🏛️", group=_G.CULTURE),
    Category(key="monument", icon="🗽", group=_G.CULTURE),
    Category(key="historicSite", icon="🏰", group=_G.CULTURE),
    Category(key="temple", icon="⛩️", group=_G.CULTURE),
    Category(key="church", icon="⛪", group=_G.CULTURE),
    Category(key="park", icon="🌳", group=_G.NATURE),
    Category(key="beach", icon="🏖️", group=_G.NATURE),
    Category(key="garden", icon="🌷", group=_G.NATURE),
    Category(key="hiking", icon="🥾", group=_G.NATURE),
    Category(key="viewpoint", icon="🏔️", group=_G.NATURE),
    Category(key="themePark", icon="🎢", group=_G.ENTERTAINMENT),
    Category(key="zoo", icon="🦁", group=_G.ENTERTAINMENT),
    Category(key="aquarium", icon="🐠", group=_G.ENTERTAINMENT),
    Category(key="show", icon="🎭", group=_G.ENTERTAINMENT),
    Category(key="concert", icon="🎵", group=_G.ENTERTAINMENT),
    Category(key="nightlife", icon="🎉", group=_G.ENTERTAINMENT),
    Category(key="sports", icon="⚽", group=_G.ENTERTAINMENT),
    Category(key="market", icon="🛒", group=_G.FOOD),
    Category(key="winery", icon="🍷", group=_G.FOOD),
    Category(key="shopping", icon="🛍️", group=_G.SHOPPING),
    Category(key="spa", icon="💆", group=_G.SHOPPING),
    Category(key="tour", icon="🚶", group=_G.TOURS),
    Category(key="sightseeing", icon="📸", group=_G.TOURS),
    Category(key="watersports", icon="🏄", group=_G.TOURS),
    Category(key="class", icon="📚", group=_G.TOURS),
    Category(key="attraction", icon="🎡", group=_G.TOURS),
    Category(key="hotel", icon="🏨", group=_G.LODGING, schema_name="lodging"),
    Category(key="rental", icon="🏠", group=_G.LODGING, schema_name="lodging"),
    Category(key="hostel", icon="🛏️", group=_G.LODGING, schema_name="lodging"),
    Category(key="camping", icon="⛺", group=_G.LODGING, schema_name="lodging"),
    Category(key="resort", icon="🏝️", group=_G.LODGING, schema_name="lodging"),
    Category(key="flight", icon="✈️", group=_G.TRANSPORT, schema_name="flight"),
    Category(key="train", icon="🚆", group=_G.TRANSPORT, schema_name="train"),
    Category(key="bus", icon="🚌", group=_G.TRANSPORT, schema_name="ground"),
    Category(key="car", icon="🚗", group=_G.TRANSPORT, schema_name="ground"),
    Category(key="ferry", icon="⛴️", group=_G.TRANSPORT, schema_name="ground"),
    Category(key="cruise", icon="🚢", group=_G.TRANSPORT, schema_name="ground"),
    Category(key="taxi", icon="🚕", group=_G.TRANSPORT, schema_name="ground"),
    Category(key="transfer", icon="🚐", group=_G.TRANSPORT, schema_name="ground"),
    Category(key="restaurant", icon="🍽️", group=_G.DINING, schema_name="dining"),
    Category(key="bar", icon="🍸", group=_G.DINING, schema_name="dining"),
    Category(key="cafe", icon="☕", group=_G.DINING, schema_name="dining"),
    Category(key="other", icon="📍", group=_G.OTHER),
)


# =============================================================================
# Registry
# =============================================================================


class CategoryRegistry:
    """Lookup table from category key to :class:`Category` and field schema.

    Unknown keys resolve to the generic schema (``provider`` plus a date
    range), matching how the editor treats custom categories.
    """

    def __init__(self, categories: tuple[Category, ...] | list[Category] = DEFAULT_CATEGORIES) -> None:
        self._categories: dict[str, Category] = {}
        self._schemas: dict[str, tuple[FieldDescriptor, ...]] = dict(SCHEMA_BODIES)
        for category in categories:
            self.register(category)

    def register(self, category: Category) -> None:
        """Add or replace a category."""
        if category.schema_name is not None and category.schema_name not in self._schemas:
            raise KeyError(f"Unknown field schema: {category.schema_name}")
        self._categories[category.key] = category

    def register_schema(self, name: str, fields: list[FieldDescriptor]) -> None:
        """Add or replace a named schema body (without type/location/description)."""
        self._schemas[name] = tuple(fields)

    def get(self, key: str) -> Category | None:
        return self._categories.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._categories

    def __len__(self) -> int:
        return len(self._categories)

    def is_lodging(self, key: str) -> bool:
        category = self._categories.get(key)
        return category is not None and category.is_lodging

    def has_special_fields(self, key: str) -> bool:
        category = self._categories.get(key)
        return category is None or category.has_special_fields

    def icon(self, key: str) -> str:
        category = self._categories.get(key)
        return category.icon if category else "📍"

    def by_group(self, group: CategoryGroup) -> list[Category]:
        return [c for c in self._categories.values() if c.group == group]

    def schema_name(self, key: str) -> str:
        category = self._categories.get(key)
        if category is None:
            return GENERIC_SCHEMA
        return category.schema_name or BASIC_SCHEMA

    def field_schema(self, key: str) -> list[FieldDescriptor]:
        """Ordered editable fields for a category.

        Every schema starts with the category picker and ends with the
        description. Location is included for every schema.
        """
        body = self._schemas[self.schema_name(key)]
        return [TYPE_FIELD, *body, LOCATION_FIELD, DESCRIPTION_FIELD]

    def field_names(self, key: str) -> list[str]:
        return [f.name for f in self.field_schema(key)]


@functools.lru_cache(maxsize=1)
def get_registry() -> CategoryRegistry:
    """Shared registry with the default categories."""
    return CategoryRegistry()
