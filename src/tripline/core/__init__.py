"""Core data models and timeline construction.

- **models**: raw records, timeline items, occurrences, transport segments
- **categories**: category registry and editable-field schemas
- **timeline**: preparation, multi-day expansion, day grouping, ordering
- **store**: persistence collaborator contract
"""

from tripline.core.categories import Category, CategoryRegistry, FieldDescriptor, get_registry
from tripline.core.models import (
    DEFAULT_ORDER_INDEX,
    Activity,
    DayTotals,
    ItemKind,
    Occurrence,
    Suggestion,
    SuggestionStatus,
    TimelineItem,
    TransportMode,
    TransportSegment,
    TripRange,
)
from tripline.core.timeline import (
    DayBucket,
    Timeline,
    expand_item,
    group_by_day,
    prepare_timeline_items,
    sort_occurrences,
)

__all__ = [
    "DEFAULT_ORDER_INDEX",
    "Activity",
    "Category",
    "CategoryRegistry",
    "DayBucket",
    "DayTotals",
    "FieldDescriptor",
    "ItemKind",
    "Occurrence",
    "Suggestion",
    "SuggestionStatus",
    "Timeline",
    "TimelineItem",
    "TransportMode",
    "TransportSegment",
    "TripRange",
    "expand_item",
    "get_registry",
    "group_by_day",
    "prepare_timeline_items",
    "sort_occurrences",
]
