"""Per-view controller tying the timeline, transport and edits together.

One :class:`TimelineView` exists per rendered trip page. It owns every piece
of mutable state the page needs (current buckets, the transport aggregator
with its throttle and re-entrancy flag, the edit sessions) so nothing leaks
between pages. ``attach()`` starts it, ``detach()`` tears it down.

Example:
    >>> view = TimelineView(trip, router, store)
    >>> view.attach(activities, suggestions)
    >>> await view.transport.wait_idle()
    >>> for bucket in view.buckets:
    ...     print(bucket.day, view.day_totals.get(bucket.day))
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Iterable

from tripline.config import AppConfig, get_config
from tripline.core.categories import CategoryRegistry, get_registry
from tripline.core.models import Activity, DayTotals, Suggestion, TimelineItem, TripRange
from tripline.core.store import ItemStore, Notifier
from tripline.core.timeline import DayBucket, Timeline, prepare_timeline_items
from tripline.editing import EditTransactionManager
from tripline.transport.aggregator import TotalsCallback, TransportAggregator
from tripline.transport.routing import RoutingClient

logger = logging.getLogger(__name__)


class TimelineView:
    """Controller for one trip timeline view.

    Attributes:
        trip: Trip boundary dates.
        timeline: Current timeline, rebuilt on every input change.
        transport: Transport aggregator for this view.
        edits: Edit transaction manager for this view.
    """

    def __init__(
        self,
        trip: TripRange,
        router: RoutingClient,
        store: ItemStore,
        *,
        config: AppConfig | None = None,
        registry: CategoryRegistry | None = None,
        notifier: Notifier | None = None,
        on_totals_changed: TotalsCallback | None = None,
    ) -> None:
        self.trip = trip
        self.config = config or get_config()
        self.registry = registry or get_registry()

        self._items: list[TimelineItem] = []
        self._attached = False
        self.timeline = Timeline([], trip, self.registry)

        transport_cfg = self.config.transport
        self.transport = TransportAggregator(
            router,
            store,
            default_mode=transport_cfg.default_mode,
            request_delay=transport_cfg.request_delay_seconds,
            followup_delay=transport_cfg.followup_delay_seconds,
            max_passes=transport_cfg.max_passes,
            on_totals_changed=on_totals_changed,
        )
        self.edits = EditTransactionManager(
            store,
            registry=self.registry,
            notifier=notifier,
            on_category_changed=self._category_changed,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def attached(self) -> bool:
        return self._attached

    def attach(
        self,
        activities: Iterable[Activity] = (),
        suggestions: Iterable[Suggestion] = (),
    ) -> None:
        """Start the view with its initial records."""
        self._attached = True
        self.transport.attach()
        self.update(activities, suggestions)

    def detach(self) -> None:
        """Tear down: stop resolution passes and drop unsaved edits."""
        self._attached = False
        self.transport.detach()
        self.edits.discard_all()
        logger.debug("Timeline view detached")

    def update(
        self,
        activities: Iterable[Activity],
        suggestions: Iterable[Suggestion],
    ) -> None:
        """Replace the records and rebuild the view."""
        self._items = prepare_timeline_items(activities, suggestions)
        self.refresh()

    def refresh(self) -> None:
        """Re-run grouping over the current items and resume resolution.

        Items mutated in place (e.g. by a committed edit) keep their identity;
        only the derived occurrences and buckets are rebuilt.
        """
        if not self._attached:
            return
        self.timeline = Timeline(
            self._items,
            self.trip,
            self.registry,
            default_order_index=self.config.timeline.default_order_index,
            include_undated=self.config.timeline.include_undated,
        )
        self.transport.rebuild(self.timeline.buckets)
        self._schedule()

    def _schedule(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, route resolution not scheduled")
            return
        self.transport.schedule_resolution()

    def _category_changed(self, item_id: str, category: str) -> None:
        logger.info(f"Category of {item_id} changed to {category}, regrouping")
        self.refresh()

    # -------------------------------------------------------------------------
    # Outputs
    # -------------------------------------------------------------------------

    @property
    def buckets(self) -> list[DayBucket]:
        return self.timeline.buckets

    @property
    def day_totals(self) -> dict[date, DayTotals]:
        return self.transport.day_totals()
