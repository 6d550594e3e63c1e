"""Timeline - preparation, multi-day expansion, day grouping and ordering.

This module turns raw backend records into the day-by-day view the trip page
renders:

1. :func:`prepare_timeline_items` merges activities with pending suggestions.
2. :func:`expand_item` splits multi-night lodging into one occurrence per day.
3. :func:`group_by_day` buckets occurrences by date, pre-seeding the trip range.
4. :func:`sort_occurrences` orders each bucket.

:class:`Timeline` runs the whole chain.

Example:
    >>> timeline = Timeline.from_records(activities, suggestions, trip)
    >>> for bucket in timeline.buckets:
    ...     print(bucket.day, [o.item.title for o in bucket.occurrences])
"""

from __future__ import annotations

import functools
import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, Sequence

from pydantic import BaseModel, Field

from tripline.core.categories import CategoryRegistry, get_registry
from tripline.core.models import (
    DEFAULT_ORDER_INDEX,
    Activity,
    ItemKind,
    Occurrence,
    Suggestion,
    SuggestionStatus,
    TimelineItem,
    TripRange,
    VoteTally,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Day Bucket
# =============================================================================


class DayBucket(BaseModel):
    """Ordered occurrences shown on one day.

    ``day`` is None for the undated bucket, which is always ordered last.
    """

    day: date | None
    occurrences: list[Occurrence] = Field(default_factory=list)

    @property
    def is_undated(self) -> bool:
        return self.day is None

    @property
    def activities(self) -> list[Occurrence]:
        """Activity-tagged occurrences in display order."""
        return [o for o in self.occurrences if o.kind == ItemKind.ACTIVITY]

    def __len__(self) -> int:
        return len(self.occurrences)


# =============================================================================
# Preparation
# =============================================================================


def _from_activity(activity: Activity) -> TimelineItem:
    return TimelineItem(
        kind=ItemKind.ACTIVITY,
        id=activity.id,
        category=activity.category,
        title=activity.title,
        description=activity.description,
        location=activity.location,
        latitude=activity.latitude,
        longitude=activity.longitude,
        start_time=activity.start_time,
        end_time=activity.end_time,
        order_index=activity.order_index,
        metadata=dict(activity.metadata),
    )


def _from_suggestion(suggestion: Suggestion) -> TimelineItem:
    return TimelineItem(
        kind=ItemKind.SUGGESTION,
        id=suggestion.id,
        category=suggestion.category,
        title=suggestion.title,
        description=suggestion.description,
        location=suggestion.location,
        latitude=suggestion.latitude,
        longitude=suggestion.longitude,
        start_time=suggestion.start_time,
        end_time=suggestion.end_time,
        order_index=suggestion.order_index,
        metadata=dict(suggestion.metadata),
        status=suggestion.status,
        votes=VoteTally(upvotes=suggestion.upvotes, downvotes=suggestion.downvotes),
    )


def prepare_timeline_items(
    activities: Iterable[Activity],
    suggestions: Iterable[Suggestion],
) -> list[TimelineItem]:
    """Merge activities and pending suggestions into timeline items.

    Every activity becomes an ``activity`` item. Only suggestions whose status
    is pending are kept; they become ``suggestion`` items whose category is
    the proposed activity type.

    Args:
        activities: Confirmed activity records.
        suggestions: Suggestion records in any status.

    Returns:
        Activities first, then pending suggestions, each in input order.
    """
    items = [_from_activity(a) for a in activities]
    items.extend(
        _from_suggestion(s) for s in suggestions if s.status == SuggestionStatus.PENDING
    )
    return items


# =============================================================================
# Multi-Day Expansion
# =============================================================================


def expand_item(
    item: TimelineItem,
    registry: CategoryRegistry | None = None,
    include_undated: bool = False,
) -> list[Occurrence]:
    """Expand an item into its per-day occurrences.

    Lodging with an end date later than its start date appears once per day
    from check-in to check-out inclusive. Everything else appears once, on
    its start date.

    Args:
        item: Item to expand.
        registry: Category registry deciding lodging eligibility.
        include_undated: Give items without a start time a single undated
            occurrence instead of dropping them.

    Returns:
        Occurrences in day order. Empty if the item has no start time and
        ``include_undated`` is False.
    """
    if item.start_time is None:
        if include_undated:
            return [Occurrence(item=item, display_date=None)]
        return []

    registry = registry or get_registry()
    start_date = item.start_time.date()
    end_date = item.end_time.date() if item.end_time is not None else None

    if (
        end_date is not None
        and end_date > start_date
        and registry.is_lodging(item.category)
    ):
        total_days = (end_date - start_date).days + 1
        return [
            Occurrence(
                item=item,
                display_date=start_date + timedelta(days=i),
                is_multi_day=True,
                day_index=i,
                total_days=total_days,
                is_first_day=i == 0,
                is_last_day=start_date + timedelta(days=i) == end_date,
            )
            for i in range(total_days)
        ]

    return [Occurrence(item=item, display_date=start_date)]


def expand_items(
    items: Iterable[TimelineItem],
    registry: CategoryRegistry | None = None,
    include_undated: bool = False,
) -> list[Occurrence]:
    registry = registry or get_registry()
    occurrences: list[Occurrence] = []
    skipped = 0
    for item in items:
        expanded = expand_item(item, registry, include_undated)
        if not expanded:
            skipped += 1
        occurrences.extend(expanded)
    if skipped:
        logger.debug(f"Left {skipped} item(s) without a start time off the timeline")
    return occurrences


# =============================================================================
# Ordering
# =============================================================================


def _compare(a: Occurrence, b: Occurrence, default_order_index: int) -> int:
    a_suggestion = a.item.is_suggestion
    b_suggestion = b.item.is_suggestion
    if a_suggestion != b_suggestion:
        return 1 if a_suggestion else -1

    a_order = a.item.effective_order_index(default_order_index)
    b_order = b.item.effective_order_index(default_order_index)
    if a_order != b_order:
        return -1 if a_order < b_order else 1

    a_start, b_start = a.item.start_time, b.item.start_time
    if a_start is not None and b_start is not None and a_start != b_start:
        return -1 if a_start < b_start else 1
    return 0


def sort_occurrences(
    occurrences: Sequence[Occurrence],
    default_order_index: int = DEFAULT_ORDER_INDEX,
) -> list[Occurrence]:
    """Order the occurrences of one day.

    Activities come before suggestions. Within each kind, lower order index
    first (missing counts as ``default_order_index``), then earlier start time
    when both have one. The sort is stable.
    """
    key = functools.cmp_to_key(
        lambda a, b: _compare(a, b, default_order_index)
    )
    return sorted(occurrences, key=key)


# =============================================================================
# Grouping
# =============================================================================


def group_by_day(
    occurrences: Iterable[Occurrence],
    trip: TripRange | None = None,
    default_order_index: int = DEFAULT_ORDER_INDEX,
) -> list[DayBucket]:
    """Bucket occurrences by display date.

    Every date of a bounded trip range gets a bucket, even when empty. Dates
    outside the range get buckets on demand. Undated occurrences share one
    bucket placed after all dated ones.

    Args:
        occurrences: Expanded occurrences.
        trip: Trip boundary dates.
        default_order_index: Sort position for items without an order index.

    Returns:
        Buckets in ascending date order, each sorted.
    """
    by_date: dict[date, list[Occurrence]] = defaultdict(list)
    undated: list[Occurrence] = []

    if trip is not None:
        for day in trip.days():
            by_date[day] = []

    for occurrence in occurrences:
        if occurrence.display_date is None:
            undated.append(occurrence)
        else:
            by_date[occurrence.display_date].append(occurrence)

    buckets = [
        DayBucket(day=day, occurrences=sort_occurrences(by_date[day], default_order_index))
        for day in sorted(by_date)
    ]
    if undated:
        buckets.append(
            DayBucket(day=None, occurrences=sort_occurrences(undated, default_order_index))
        )
    return buckets


# =============================================================================
# Timeline
# =============================================================================


class Timeline:
    """Day-by-day view of a trip's itinerary.

    Attributes:
        items: Prepared timeline items.
        trip: Trip boundary dates.
        buckets: Day buckets in display order.
    """

    def __init__(
        self,
        items: list[TimelineItem],
        trip: TripRange | None = None,
        registry: CategoryRegistry | None = None,
        default_order_index: int = DEFAULT_ORDER_INDEX,
        include_undated: bool = False,
    ) -> None:
        self.items = items
        self.trip = trip or TripRange()
        self.registry = registry or get_registry()
        self.default_order_index = default_order_index
        self.include_undated = include_undated

        occurrences = expand_items(items, self.registry, include_undated)
        self.buckets: list[DayBucket] = group_by_day(
            occurrences, self.trip, default_order_index
        )
        self._by_date = {b.day: b for b in self.buckets}

    @classmethod
    def from_records(
        cls,
        activities: Iterable[Activity],
        suggestions: Iterable[Suggestion],
        trip: TripRange | None = None,
        **kwargs,
    ) -> Timeline:
        return cls(prepare_timeline_items(activities, suggestions), trip, **kwargs)

    def bucket(self, day: date | None) -> DayBucket | None:
        """Bucket for a date (None for the undated bucket)."""
        return self._by_date.get(day)

    def find_item(self, item_id: str) -> TimelineItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def occurrences_of(self, item_id: str) -> list[Occurrence]:
        return [
            o for b in self.buckets for o in b.occurrences if o.item.id == item_id
        ]

    @property
    def dated_buckets(self) -> list[DayBucket]:
        return [b for b in self.buckets if not b.is_undated]

    def __len__(self) -> int:
        return len(self.buckets)

    def __repr__(self) -> str:
        return f"Timeline(items={len(self.items)}, days={len(self.dated_buckets)})"
