"""tripline - unified trip timeline aggregation and multi-day expansion.

Merges confirmed activities and pending suggestions into one day-by-day
itinerary, spreads multi-night stays across every day they cover, sums the
travel time and distance between stops, and manages inline edits.

Example:
    >>> from tripline import TimelineView, TripRange
    >>> view = TimelineView(TripRange(start_date="2024-05-01", end_date="2024-05-04"),
    ...                     router, store)
    >>> view.attach(activities, suggestions)
"""

__version__ = "1.0.0"

from tripline.core.models import (
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
from tripline.core.timeline import DayBucket, Timeline
from tripline.editing import EditTransactionManager
from tripline.transport.aggregator import TransportAggregator
from tripline.view import TimelineView

__all__ = [
    "__version__",
    "Activity",
    "DayBucket",
    "DayTotals",
    "EditTransactionManager",
    "ItemKind",
    "Occurrence",
    "Suggestion",
    "SuggestionStatus",
    "Timeline",
    "TimelineItem",
    "TimelineView",
    "TransportAggregator",
    "TransportMode",
    "TransportSegment",
    "TripRange",
]
