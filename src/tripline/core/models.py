"""Data models for the trip timeline.

Raw backend records (:class:`Activity`, :class:`Suggestion`) are normalized by
the timeline preparer into :class:`TimelineItem`. Everything downstream of
that (occurrences, buckets, transport totals) is derived and rebuilt on every
input change.

Raw records accept the camelCase keys produced by the backend API as well as
the snake_case field names:

    >>> Activity.model_validate({"id": "a1", "type": "hotel", "title": "Inn",
    ...                          "startTime": "2024-01-01T14:00:00Z"})
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterator

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)

# Sort position used when an item has no explicit order index.
DEFAULT_ORDER_INDEX = 999

# Metadata key holding an item's persisted transport segment.
TRANSPORT_METADATA_KEY = "transportToNext"


def _assume_utc(value: datetime | None) -> datetime | None:
    """Treat naive timestamps (e.g. from a datetime input) as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# Enums
# =============================================================================


class ItemKind(str, Enum):
    """Tag distinguishing confirmed activities from pending suggestions."""

    ACTIVITY = "activity"
    SUGGESTION = "suggestion"


class SuggestionStatus(str, Enum):
    """Lifecycle of a suggestion.

    Only PENDING suggestions appear on the timeline. Accepted and rejected
    ones belong to the suggestion history.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TransportMode(str, Enum):
    """Modes understood by the routing collaborator."""

    WALK = "walk"
    BIKE = "bike"
    DRIVE = "drive"
    TRAIN = "train"
    FLY = "fly"
    BOAT = "boat"


# =============================================================================
# Raw Records
# =============================================================================


class _Record(BaseModel):
    """Fields shared by activities and suggestions."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str = ""
    description: str | None = None
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    start_time: datetime | None = Field(
        default=None, validation_alias=AliasChoices("startTime", "start_time")
    )
    end_time: datetime | None = Field(
        default=None, validation_alias=AliasChoices("endTime", "end_time")
    )
    order_index: int | None = Field(
        default=None, validation_alias=AliasChoices("orderIndex", "order_index")
    )
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _blank_time_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def _aware_time(cls, v: datetime | None) -> datetime | None:
        return _assume_utc(v)

    @field_validator("metadata", mode="before")
    @classmethod
    def _null_metadata(cls, v: Any) -> Any:
        return {} if v is None else v


class Activity(_Record):
    """A confirmed itinerary entry.

    Attributes:
        category: Activity type key, e.g. ``hotel``, ``flight``, ``museum``.
    """

    category: str = Field(
        default="other", validation_alias=AliasChoices("type", "category")
    )


class Suggestion(_Record):
    """A proposed itinerary entry awaiting group approval.

    Attributes:
        category: The proposed activity type.
        status: Suggestion lifecycle state.
        upvotes: Number of approving votes.
        downvotes: Number of rejecting votes.
        suggested_by: User who made the suggestion.
    """

    category: str = Field(
        default="other",
        validation_alias=AliasChoices("activityType", "activity_type", "category"),
    )
    status: SuggestionStatus = SuggestionStatus.PENDING
    upvotes: int = 0
    downvotes: int = 0
    suggested_by: str | None = Field(
        default=None,
        validation_alias=AliasChoices("suggestedByUserId", "suggested_by"),
    )


# =============================================================================
# Timeline Item
# =============================================================================


class VoteTally(BaseModel):
    """Votes cast on a suggestion."""

    upvotes: int = 0
    downvotes: int = 0

    @computed_field
    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes


class TimelineItem(BaseModel):
    """One entry on the unified timeline.

    Activities and pending suggestions share this shape. ``kind`` tells them
    apart; suggestion-tagged items also carry ``status`` and ``votes``.

    Attributes:
        kind: Activity or suggestion tag.
        id: Backend identifier of the underlying record.
        category: Classification controlling editable fields and multi-day
            eligibility.
        title: Display title.
        description: Free-form notes.
        location: Location text.
        latitude: Latitude in degrees.
        longitude: Longitude in degrees.
        start_time: Scheduled start. Items without one are not placed on a day.
        end_time: Scheduled end.
        order_index: Manual ordering within a day.
        metadata: Open map of category-specific fields.
        status: Suggestion status (suggestions only).
        votes: Vote tally (suggestions only).
    """

    model_config = ConfigDict(validate_assignment=True)

    kind: ItemKind
    id: str
    category: str = "other"
    title: str = ""
    description: str | None = None
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    order_index: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    status: SuggestionStatus | None = None
    votes: VoteTally | None = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _blank_time_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def _aware_time(cls, v: datetime | None) -> datetime | None:
        # Every timestamp on the timeline is comparable with every other.
        return _assume_utc(v)

    @property
    def is_suggestion(self) -> bool:
        return self.kind == ItemKind.SUGGESTION

    @property
    def has_coordinates(self) -> bool:
        """True when both latitude and longitude are known."""
        return self.latitude is not None and self.longitude is not None

    @property
    def coordinates(self) -> tuple[float, float] | None:
        if not self.has_coordinates:
            return None
        return (self.latitude, self.longitude)  # type: ignore[return-value]

    def effective_order_index(self, default: int = DEFAULT_ORDER_INDEX) -> int:
        return default if self.order_index is None else self.order_index

    @property
    def transport_to_next(self) -> TransportSegment | None:
        """The item's persisted outgoing transport segment, if any."""
        raw = self.metadata.get(TRANSPORT_METADATA_KEY)
        if not raw:
            return None
        if isinstance(raw, TransportSegment):
            return raw
        return TransportSegment.model_validate(raw)


# =============================================================================
# Occurrence
# =============================================================================


class Occurrence(BaseModel):
    """One calendar-day appearance of a timeline item.

    Single-day items have exactly one occurrence. A lodging stay spanning
    several dates has one occurrence per date, all referencing the same item.

    Attributes:
        item: The underlying timeline item.
        display_date: Day this occurrence is shown on. None means undated.
        is_multi_day: Whether the item spans several days.
        day_index: 0-based position within the span.
        total_days: Inclusive number of days in the span.
        is_first_day: True on the check-in day.
        is_last_day: True on the check-out day.
    """

    item: TimelineItem
    display_date: date | None
    is_multi_day: bool = False
    day_index: int = 0
    total_days: int = 1
    is_first_day: bool = True
    is_last_day: bool = True

    @property
    def is_intermediate_day(self) -> bool:
        """True for every day of a multi-day span except the last one."""
        return self.is_multi_day and not self.is_last_day

    @property
    def kind(self) -> ItemKind:
        return self.item.kind


# =============================================================================
# Transport
# =============================================================================


class TransportSegment(BaseModel):
    """Travel estimate between two consecutive stops.

    Stored in the "from" item's metadata under the backend's keys
    (``cachedDistance``, ``cachedDuration``, ``routeGeometry``, ``cachedAt``).
    Reading also accepts ``distanceKm``/``durationMin``.

    Attributes:
        mode: Transport mode.
        distance_km: Route distance in kilometres.
        duration_min: Route duration in minutes.
        geometry: Route polyline as ``(lng, lat)`` pairs.
        resolved_at: When the route was calculated.
        provider: Routing backend that produced the estimate.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    mode: TransportMode = TransportMode.DRIVE
    distance_km: float | None = Field(
        default=None,
        validation_alias=AliasChoices("cachedDistance", "distanceKm", "distance_km"),
    )
    duration_min: float | None = Field(
        default=None,
        validation_alias=AliasChoices("cachedDuration", "durationMin", "duration_min"),
    )
    geometry: list[tuple[float, float]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("routeGeometry", "geometry"),
    )
    resolved_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("cachedAt", "resolvedAt", "resolved_at"),
    )
    provider: str | None = None

    @field_validator("geometry", mode="before")
    @classmethod
    def _null_geometry(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def has_estimate(self) -> bool:
        return self.duration_min is not None or self.distance_km is not None

    def to_metadata(self) -> dict[str, Any]:
        """Serialize to the backend's ``transportToNext`` shape."""
        return {
            "mode": self.mode.value,
            "cachedDistance": self.distance_km,
            "cachedDuration": self.duration_min,
            "routeGeometry": [list(p) for p in self.geometry] or None,
            "cachedAt": self.resolved_at.isoformat() if self.resolved_at else None,
        }


class DayTotals(BaseModel):
    """Summed transport for one day.

    Attributes:
        total_duration_min: Sum of resolved segment durations.
        total_distance_km: Sum of resolved segment distances.
        has_transport_data: Whether at least one segment contributed.
    """

    total_duration_min: float = 0.0
    total_distance_km: float = 0.0
    has_transport_data: bool = False


# =============================================================================
# Trip Range
# =============================================================================


class TripRange(BaseModel):
    """Trip boundary dates (inclusive).

    Either end may be missing, in which case no days are pre-seeded.
    """

    start_date: date | None = Field(
        default=None, validation_alias=AliasChoices("startDate", "start_date")
    )
    end_date: date | None = Field(
        default=None, validation_alias=AliasChoices("endDate", "end_date")
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _date_part(cls, v: Any) -> Any:
        # Backends often send full timestamps for trip dates.
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        if isinstance(v, datetime):
            return v.date()
        return v

    @property
    def is_bounded(self) -> bool:
        return self.start_date is not None and self.end_date is not None

    def days(self) -> Iterator[date]:
        """Iterate every date in the range, or nothing if unbounded."""
        if not self.is_bounded:
            return
        current = self.start_date
        while current <= self.end_date:  # type: ignore[operator]
            yield current  # type: ignore[misc]
            current += timedelta(days=1)  # type: ignore[operator]

    def contains(self, d: date) -> bool:
        if not self.is_bounded:
            return False
        return self.start_date <= d <= self.end_date  # type: ignore[operator]
