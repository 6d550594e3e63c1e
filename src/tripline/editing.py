"""Inline edit transactions for timeline items.

Each item card has its own edit session. Field edits are staged, not saved;
:meth:`EditTransactionManager.save` commits them one field at a time and
:meth:`EditTransactionManager.cancel` throws them away. Only one item may be
in the editing state at a time: opening another card auto-saves a dirty card
and collapses it.

State machine per item::

    viewing -> editing -> saving -> viewing
                       -> cancelled -> viewing

Example:
    >>> edits = EditTransactionManager(store, notifier=toast)
    >>> await edits.begin(item)
    >>> edits.stage(item.id, "title", "Hotel Lutetia")
    >>> edits.stage_category(item.id, "hotel")
    >>> result = await edits.save(item.id)
    >>> result.failed
    []
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel

from tripline.core.categories import CategoryRegistry, FieldDescriptor, get_registry
from tripline.core.models import TimelineItem
from tripline.core.store import ItemStore, Notification, NotificationLevel, Notifier, ignore_notification
from tripline.errors import EditStateError, PersistenceError

logger = logging.getLogger(__name__)

CategoryChangedCallback = Callable[[str, str], None]

LOCATION_FIELDS = ("location", "latitude", "longitude")

# Fields every session tracks regardless of category schema.
ALWAYS_TRACKED = ("title", "type", *LOCATION_FIELDS, "description")


# =============================================================================
# Field <-> record mapping
# =============================================================================


def _date_part(value: datetime | None) -> str | None:
    return value.date().isoformat() if value is not None else None


def _time_part(value: datetime | None) -> str | None:
    return value.strftime("%H:%M") if value is not None else None


def _at(day: str, clock: str | None = None) -> datetime:
    """Build a UTC timestamp from ``YYYY-MM-DD`` and optional ``HH:MM``."""
    hour, minute = (12, 0) if not clock else (int(p) for p in clock.split(":")[:2])
    return datetime.combine(
        datetime.fromisoformat(day).date(), time(hour, minute), tzinfo=timezone.utc
    )


def read_field_value(item: TimelineItem, name: str) -> Any:
    """Current value of an editable field as the editor displays it."""
    meta = item.metadata
    if name == "type":
        return item.category
    if name in ("title", "description", "location", "latitude", "longitude"):
        return getattr(item, name)
    if name == "startTime":
        return item.start_time.isoformat() if item.start_time else None
    if name == "endTime":
        return item.end_time.isoformat() if item.end_time else None
    if name in ("checkInDate", "reservationDate"):
        return meta.get(name) or _date_part(item.start_time)
    if name in ("departureDate", "startDate"):
        return _date_part(item.start_time)
    if name in ("checkOutDate",):
        return meta.get(name) or _date_part(item.end_time)
    if name == "endDate":
        return _date_part(item.end_time)
    if name in ("reservationTime", "departureTime"):
        return meta.get(name) or _time_part(item.start_time)
    if name == "flightNumber":
        numbers = meta.get("flightNumbers") or []
        return numbers[0] if numbers else None
    if name == "venueName":
        return meta.get("venueName") or meta.get("restaurantName")
    return meta.get(name)


def apply_field_value(item: TimelineItem, name: str, value: Any) -> None:
    """Write a committed field value onto the in-memory item.

    Date fields also move the item's start or end time: check-in at 14:00,
    check-out at 11:00, generic dates at 12:00 (all UTC).
    """
    if value == "":
        value = None
    meta = dict(item.metadata)

    if name == "type":
        item.category = value or "other"
        return
    if name == "title":
        item.title = value or ""
        return
    if name in ("description", "location"):
        setattr(item, name, value)
        return
    if name in ("latitude", "longitude"):
        setattr(item, name, float(value) if value is not None else None)
        return
    if name == "startTime":
        item.start_time = value
        return
    if name == "endTime":
        item.end_time = value
        return

    if name == "checkInDate":
        meta[name] = value
        item.start_time = _at(value, "14:00") if value else None
    elif name == "checkOutDate":
        meta[name] = value
        item.end_time = _at(value, "11:00") if value else None
    elif name == "startDate":
        item.start_time = _at(value) if value else None
    elif name == "endDate":
        item.end_time = _at(value) if value else None
    elif name == "reservationDate":
        meta[name] = value
        item.start_time = _at(value, meta.get("reservationTime")) if value else None
    elif name == "departureDate":
        item.start_time = _at(value, meta.get("departureTime")) if value else None
    elif name in ("reservationTime", "departureTime"):
        meta[name] = value
        day = meta.get("reservationDate") if name == "reservationTime" else None
        day = day or _date_part(item.start_time)
        if day:
            item.start_time = _at(day, value)
    elif name == "partySize":
        meta[name] = int(value) if value is not None else None
    elif name == "flightNumber":
        meta["flightNumbers"] = [value] if value else []
    else:
        meta[name] = value

    item.metadata = meta


# =============================================================================
# Session Models
# =============================================================================


class EditState(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"
    SAVING = "saving"
    CANCELLED = "cancelled"


_TRANSITIONS: dict[EditState, set[EditState]] = {
    EditState.VIEWING: {EditState.EDITING},
    EditState.EDITING: {EditState.SAVING, EditState.CANCELLED, EditState.VIEWING},
    EditState.SAVING: {EditState.VIEWING},
    EditState.CANCELLED: {EditState.VIEWING},
}


class PendingChange(BaseModel):
    """A staged, uncommitted field change."""

    name: str
    new_value: Any = None
    original_value: Any = None


@dataclass
class SaveResult:
    """Outcome of committing one item's staged changes.

    Attributes:
        item_id: Item that was saved.
        committed: Fields saved successfully, in save order.
        failed: Fields whose save failed.
        reverted: Original values shown again for the failed fields.
    """

    item_id: str
    committed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    reverted: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class EditSession:
    """Edit state of a single item card.

    Attributes:
        item: The item being edited.
        state: Current state.
        snapshot: Original values captured when editing began.
        pending: Staged changes keyed by field name.
        fields: Editable fields for the currently displayed category.
    """

    def __init__(self, item: TimelineItem, registry: CategoryRegistry) -> None:
        self.item = item
        self.state = EditState.VIEWING
        self._registry = registry
        self.snapshot: dict[str, Any] = {}
        self.pending: dict[str, PendingChange] = {}
        self.fields: list[FieldDescriptor] = []
        self.original_category = item.category
        self.take_snapshot()

    def take_snapshot(self) -> None:
        """Capture current item values as the originals."""
        self.original_category = self.item.category
        self.fields = self._registry.field_schema(self.original_category)
        names = dict.fromkeys([*ALWAYS_TRACKED, *(f.name for f in self.fields)])
        self.snapshot = {name: read_field_value(self.item, name) for name in names}
        self.pending.clear()

    def original(self, name: str) -> Any:
        if name not in self.snapshot:
            # Fields of a schema switched to mid-edit read from the untouched item.
            self.snapshot[name] = read_field_value(self.item, name)
        return self.snapshot[name]

    def displayed_value(self, name: str) -> Any:
        change = self.pending.get(name)
        return change.new_value if change is not None else self.original(name)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def category(self) -> str:
        return self.displayed_value("type")

    @property
    def is_dirty(self) -> bool:
        return bool(self.pending)

    def transition(self, new_state: EditState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise EditStateError(self.item.id, self.state.value)
        logger.debug(f"Item {self.item.id}: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _stage(self, name: str, value: Any) -> None:
        original = self.original(name)
        if value == original:
            self.pending.pop(name, None)
        else:
            self.pending[name] = PendingChange(name=name, new_value=value, original_value=original)


# =============================================================================
# Manager
# =============================================================================


class EditTransactionManager:
    """Owns every item's edit session within one timeline view.

    Args:
        store: Persistence collaborator used to save fields.
        registry: Category registry for field schemas.
        notifier: Receives one aggregated notification per save.
        on_category_changed: Called with ``(item_id, new_category)`` after a
            category change is committed.
    """

    def __init__(
        self,
        store: ItemStore,
        registry: CategoryRegistry | None = None,
        notifier: Notifier | None = None,
        on_category_changed: CategoryChangedCallback | None = None,
    ) -> None:
        self._store = store
        self._registry = registry or get_registry()
        self._notify = notifier or ignore_notification
        self._on_category_changed = on_category_changed
        self._sessions: dict[str, EditSession] = {}
        # Serializes begin/collapse so at most one card is ever editing.
        self._switch_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Session access
    # -------------------------------------------------------------------------

    def session(self, item_id: str) -> EditSession | None:
        return self._sessions.get(item_id)

    @property
    def editing_item_id(self) -> str | None:
        """Id of the single item currently being edited, if any."""
        return next(
            (s.item.id for s in self._sessions.values() if s.state == EditState.EDITING),
            None,
        )

    def _editing(self, item_id: str) -> EditSession:
        session = self._sessions.get(item_id)
        if session is None:
            raise EditStateError(item_id, EditState.VIEWING.value)
        if session.state != EditState.EDITING:
            raise EditStateError(item_id, session.state.value)
        return session

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def begin(self, item: TimelineItem) -> EditSession:
        """Enter edit mode for an item.

        Any other item being edited is saved if dirty, then collapsed.
        Concurrent calls run one after another.
        """
        async with self._switch_lock:
            for other in list(self._sessions.values()):
                if other.item.id != item.id and other.state == EditState.EDITING:
                    await self._collapse(other)

            session = self._sessions.get(item.id)
            if session is not None and session.state == EditState.EDITING:
                return session

            session = EditSession(item, self._registry)
            self._sessions[item.id] = session
            session.transition(EditState.EDITING)
            return session

    async def _collapse(self, session: EditSession) -> None:
        if session.is_dirty:
            await self.save(session.item.id)
        else:
            session.transition(EditState.VIEWING)

    async def collapse_all(self) -> None:
        """Auto-save dirty cards and collapse every card (click outside)."""
        async with self._switch_lock:
            for session in list(self._sessions.values()):
                if session.state == EditState.EDITING:
                    await self._collapse(session)

    def discard_all(self) -> None:
        """Cancel every open edit without saving."""
        for session in list(self._sessions.values()):
            if session.state == EditState.EDITING:
                self.cancel(session.item.id)

    # -------------------------------------------------------------------------
    # Staging
    # -------------------------------------------------------------------------

    def stage(self, item_id: str, name: str, value: Any) -> None:
        """Stage a single field change.

        Setting a field back to its original value unstages it. ``type`` and
        ``location`` are routed to their compound handlers.
        """
        session = self._editing(item_id)
        if name == "type":
            self.stage_category(item_id, value)
        elif name == "location":
            self.stage_location(
                item_id,
                value,
                session.displayed_value("latitude"),
                session.displayed_value("longitude"),
            )
        else:
            session._stage(name, value)

    def stage_location(
        self,
        item_id: str,
        text: str | None,
        latitude: float | None,
        longitude: float | None,
    ) -> None:
        """Stage location text and coordinates together.

        Coordinates are staged only when they differ from the originals.
        Restoring all three originals unstages the whole location.
        """
        session = self._editing(item_id)
        original = tuple(session.original(name) for name in LOCATION_FIELDS)
        if (text, latitude, longitude) == original:
            for name in LOCATION_FIELDS:
                session.pending.pop(name, None)
            return

        session.pending["location"] = PendingChange(
            name="location", new_value=text, original_value=original[0]
        )
        session._stage("latitude", latitude)
        session._stage("longitude", longitude)

    def stage_category(self, item_id: str, category: str) -> None:
        """Stage a category change and switch the editable fields to match.

        Staged fields that do not exist in the new schema are dropped.
        """
        session = self._editing(item_id)
        session._stage("type", category)
        session.fields = self._registry.field_schema(category)

        keep = set(ALWAYS_TRACKED) | set(session.field_names)
        for name in [n for n in session.pending if n not in keep]:
            logger.debug(f"Dropping staged {name} on {item_id}: not in {category} schema")
            del session.pending[name]

    # -------------------------------------------------------------------------
    # Commit / rollback
    # -------------------------------------------------------------------------

    async def save(self, item_id: str) -> SaveResult:
        """Commit every staged change of an item, one field at a time.

        A failing field does not stop the others: its displayed value reverts
        to the original while successful fields stay committed. One
        notification covers the whole batch.
        """
        session = self._editing(item_id)
        result = SaveResult(item_id=item_id)
        changes = list(session.pending.values())

        if not changes:
            session.transition(EditState.VIEWING)
            return result

        session.transition(EditState.SAVING)
        try:
            for change in changes:
                if await self._commit_field(session, change):
                    result.committed.append(change.name)
                else:
                    result.failed.append(change.name)
                    result.reverted[change.name] = change.original_value
        finally:
            session.take_snapshot()
            session.transition(EditState.VIEWING)

        if result.ok:
            self._notify(Notification(level=NotificationLevel.SUCCESS, message="Saved", item_id=item_id))
        else:
            self._notify(
                Notification(
                    level=NotificationLevel.ERROR,
                    message="Some changes failed to save",
                    item_id=item_id,
                )
            )

        if "type" in result.committed and self._on_category_changed is not None:
            self._on_category_changed(item_id, session.item.category)
        return result

    async def _commit_field(self, session: EditSession, change: PendingChange) -> bool:
        """Save one field and apply it to the item. Returns False on failure."""
        item_id = session.item.id
        try:
            # Values the item cannot hold never reach the store.
            apply_field_value(session.item.model_copy(deep=True), change.name, change.new_value)
            await self._store.save_field(item_id, change.name, change.new_value, silent=True)
            apply_field_value(session.item, change.name, change.new_value)
        except Exception as e:
            error = PersistenceError(item_id, change.name, original_error=e)
            logger.warning(f"{error}: {e}")
            return False
        return True

    def cancel(self, item_id: str) -> None:
        """Drop every staged change and restore the original field schema."""
        session = self._editing(item_id)
        session.transition(EditState.CANCELLED)
        session.pending.clear()
        session.fields = self._registry.field_schema(session.original_category)
        session.transition(EditState.VIEWING)

    async def delete(self, item_id: str) -> None:
        """Delete an item through the store and forget its session.

        Raises:
            PersistenceError: If the store fails.
        """
        try:
            await self._store.delete_item(item_id)
        except Exception as e:
            raise PersistenceError(item_id, "*", f"Failed to delete {item_id}", e) from e
        self._sessions.pop(item_id, None)
