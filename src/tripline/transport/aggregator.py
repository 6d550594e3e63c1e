"""Per-day transport aggregation and asynchronous route resolution.

The aggregator looks at the day buckets produced by the timeline and derives
one :class:`TransportLink` per pair of consecutive activity stops:

- a cross-day link from the previous day's last stop to the day's first stop;
- intra-day links between consecutive stops.

A link whose "from" occurrence is an intermediate day of a multi-day stay is
*ephemeral*: its segment lives only in memory, keyed by ``(item_id,
day_index)``, and never touches the item's stored ``transportToNext``. All
other links are *persistent* and read/write that metadata entry.

Day totals are always recomputed from the full set of resolved segments, so
the order in which routes come back never matters.

Example:
    >>> aggregator = TransportAggregator(router, store)
    >>> aggregator.rebuild(timeline.buckets)
    >>> task = aggregator.schedule_resolution()
    >>> await aggregator.wait_idle()
    >>> aggregator.day_totals()[date(2024, 5, 1)].total_distance_km
    344.0
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from enum import Enum
from typing import Callable, NamedTuple, Sequence

from pydantic import BaseModel

from tripline.core.models import (
    TRANSPORT_METADATA_KEY,
    DayTotals,
    Occurrence,
    TimelineItem,
    TransportMode,
    TransportSegment,
)
from tripline.core.store import ItemStore
from tripline.core.timeline import DayBucket
from tripline.errors import MissingCoordinatesError, NetworkError, PersistenceError, RoutingError
from tripline.transport.routing import RouteRequest, RoutingClient
from tripline.utils.logging import LogContext

logger = logging.getLogger(__name__)

TotalsCallback = Callable[[dict[date, DayTotals]], None]


# =============================================================================
# Links
# =============================================================================


class LinkStatus(str, Enum):
    """Resolution state of a transport link.

    Attributes:
        RESOLVED: A segment is available.
        UNRESOLVED: Both ends have coordinates, no segment yet. Queued.
        NEEDS_INFO: An end lacks coordinates. Shown as an "add info"
            placeholder, never counted.
        FAILED: The routing service rejected the request. Not retried until
            the timeline is rebuilt.
    """

    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"
    NEEDS_INFO = "needs_info"
    FAILED = "failed"


class SegmentKey(NamedTuple):
    """Identity of a segment.

    ``day_index`` is None for persistent segments, which belong to the item
    itself. Ephemeral segments are per displayed day of a multi-day stay.
    """

    item_id: str
    day_index: int | None = None


class TransportLink(BaseModel):
    """Travel between two consecutive activity occurrences."""

    day: date
    origin: Occurrence
    target: Occurrence
    cross_day: bool = False

    @property
    def from_item(self) -> TimelineItem:
        return self.origin.item

    @property
    def to_item(self) -> TimelineItem:
        return self.target.item

    @property
    def is_ephemeral(self) -> bool:
        return self.origin.is_intermediate_day

    @property
    def key(self) -> SegmentKey:
        if self.is_ephemeral:
            return SegmentKey(self.from_item.id, self.origin.day_index)
        return SegmentKey(self.from_item.id)

    @property
    def has_coordinates(self) -> bool:
        return self.from_item.has_coordinates and self.to_item.has_coordinates

    def validation_error(self) -> MissingCoordinatesError | None:
        if self.has_coordinates:
            return None
        return MissingCoordinatesError(self.from_item.id, self.to_item.id)


class _EphemeralEntry(NamedTuple):
    destination: tuple[float, float]
    segment: TransportSegment


def plan_links(buckets: Sequence[DayBucket]) -> list[TransportLink]:
    """Derive transport links from ordered day buckets.

    Suggestions never take part. The previous day's last stop carries over
    days without activities. The undated bucket is ignored.
    """
    links: list[TransportLink] = []
    previous_last: Occurrence | None = None

    for bucket in buckets:
        if bucket.is_undated:
            continue
        stops = bucket.activities
        if not stops:
            continue
        if previous_last is not None:
            links.append(
                TransportLink(day=bucket.day, origin=previous_last, target=stops[0], cross_day=True)
            )
        for origin, target in zip(stops, stops[1:]):
            links.append(TransportLink(day=bucket.day, origin=origin, target=target))
        previous_last = stops[-1]

    return links


# =============================================================================
# Aggregator
# =============================================================================


class TransportAggregator:
    """Sums per-day transport and resolves missing segments.

    Holds all per-view resolution state: the re-entrancy flag, the
    last-request timestamp used for throttling, the scheduled follow-up task
    and the ephemeral segment cache.

    Attributes:
        default_mode: Mode used for automatic resolution.
        request_delay: Minimum seconds between two routing requests.
        followup_delay: Seconds to wait before a follow-up pass.
        max_passes: Maximum passes per scheduled resolution.
    """

    def __init__(
        self,
        router: RoutingClient,
        store: ItemStore | None = None,
        *,
        default_mode: TransportMode = TransportMode.DRIVE,
        request_delay: float = 0.1,
        followup_delay: float = 0.05,
        max_passes: int = 5,
        on_totals_changed: TotalsCallback | None = None,
    ) -> None:
        self._router = router
        self._store = store
        self.default_mode = TransportMode(default_mode)
        self.request_delay = request_delay
        self.followup_delay = followup_delay
        self.max_passes = max_passes
        self._on_totals_changed = on_totals_changed

        self._days: list[date] = []
        self._links: list[TransportLink] = []
        self._ephemeral: dict[SegmentKey, _EphemeralEntry] = {}
        self._resolved: dict[str, TransportSegment] = {}
        self._failed: set[SegmentKey] = set()

        self._in_progress = False
        self._detached = False
        self._last_request_at: float | None = None
        self._task: asyncio.Task | None = None

    # -------------------------------------------------------------------------
    # Planning
    # -------------------------------------------------------------------------

    def rebuild(self, buckets: Sequence[DayBucket]) -> None:
        """Re-derive links after any structural change to the timeline."""
        self._days = [b.day for b in buckets if not b.is_undated]
        self._links = plan_links(buckets)
        self._failed.clear()

        live = {link.key for link in self._links if link.is_ephemeral}
        self._ephemeral = {k: v for k, v in self._ephemeral.items() if k in live}

        logger.debug(
            f"Planned {len(self._links)} transport link(s) over {len(self._days)} day(s)"
        )
        self._emit_totals()

    @property
    def links(self) -> list[TransportLink]:
        return list(self._links)

    def links_for(self, day: date) -> list[TransportLink]:
        return [link for link in self._links if link.day == day]

    def segment_for(self, link: TransportLink) -> TransportSegment | None:
        """Currently known segment of a link, if any."""
        if link.is_ephemeral:
            entry = self._ephemeral.get(link.key)
            if entry is not None and entry.destination == link.to_item.coordinates:
                return entry.segment
            return None
        stored = link.from_item.transport_to_next
        if stored is not None:
            return stored
        return self._resolved.get(link.from_item.id)

    def status(self, link: TransportLink) -> LinkStatus:
        if not link.has_coordinates:
            return LinkStatus.NEEDS_INFO
        if self.segment_for(link) is not None:
            return LinkStatus.RESOLVED
        if link.key in self._failed:
            return LinkStatus.FAILED
        return LinkStatus.UNRESOLVED

    def unresolved_links(self) -> list[TransportLink]:
        return [link for link in self._links if self.status(link) == LinkStatus.UNRESOLVED]

    # -------------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------------

    def day_totals(self) -> dict[date, DayTotals]:
        """Sum every resolved segment per day.

        Days without resolved transport report zero with
        ``has_transport_data`` False.
        """
        totals = {day: DayTotals() for day in self._days}
        for link in self._links:
            if not link.has_coordinates:
                continue
            segment = self.segment_for(link)
            if segment is None or not segment.has_estimate:
                continue
            day_total = totals.setdefault(link.day, DayTotals())
            day_total.total_duration_min += segment.duration_min or 0.0
            day_total.total_distance_km += segment.distance_km or 0.0
            day_total.has_transport_data = True
        return totals

    def _emit_totals(self) -> None:
        if self._on_totals_changed is not None and not self._detached:
            self._on_totals_changed(self.day_totals())

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def resolve_pending(self) -> int:
        """Run one resolution pass over every unresolved link.

        Requests are sent one at a time, throttled by ``request_delay``. A
        pass already in progress makes this a no-op.

        Returns:
            Number of segments resolved during this pass.
        """
        if self._in_progress:
            logger.debug("Resolution pass already running, skipping")
            return 0

        pending = self.unresolved_links()
        if not pending:
            return 0

        self._in_progress = True
        resolved = 0
        try:
            with LogContext(
                f"Resolving {len(pending)} transport segment(s)",
                level=logging.DEBUG,
                logger=logger,
            ):
                for link in pending:
                    if self._detached:
                        break
                    # The timeline may have been rebuilt while awaiting.
                    if self.status(link) != LinkStatus.UNRESOLVED:
                        continue
                    if await self._resolve_link(link):
                        resolved += 1
        finally:
            self._in_progress = False
        return resolved

    async def _throttle(self) -> None:
        loop = asyncio.get_running_loop()
        if self._last_request_at is not None:
            wait = self._last_request_at + self.request_delay - loop.time()
            if wait > 0:
                await asyncio.sleep(wait)
        self._last_request_at = loop.time()

    async def _request(self, link: TransportLink, mode: TransportMode) -> TransportSegment:
        request = RouteRequest.create(
            link.from_item.coordinates, link.to_item.coordinates, mode  # type: ignore[arg-type]
        )
        await self._throttle()
        result = await self._router.get_route(request)
        return result.to_segment(mode)

    async def _resolve_link(self, link: TransportLink) -> bool:
        try:
            segment = await self._request(link, self.default_mode)
        except NetworkError as e:
            if isinstance(e, RoutingError) and not e.retriable:
                logger.warning(f"Route from {link.from_item.id} rejected: {e}")
                self._failed.add(link.key)
            else:
                logger.warning(f"Route from {link.from_item.id} unavailable ({e}), will retry")
            return False
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning(f"Routing service unreachable: {e}")
            return False
        except Exception:
            # One bad response must not stop the rest of the pass.
            logger.exception(f"Unexpected error resolving route from {link.from_item.id}")
            return False

        if self._detached:
            logger.debug(f"Discarding route for {link.from_item.id} after detach")
            return False

        await self._store_segment(link, segment)
        self._emit_totals()
        return True

    async def _store_segment(self, link: TransportLink, segment: TransportSegment) -> None:
        if link.is_ephemeral:
            self._ephemeral[link.key] = _EphemeralEntry(
                destination=link.to_item.coordinates,  # type: ignore[arg-type]
                segment=segment,
            )
            return
        try:
            await self._persist(link.from_item, segment)
        except PersistenceError as e:
            # Keep the in-memory result; the next rebuild will still show it.
            logger.warning(str(e))

    async def _persist(self, item: TimelineItem, segment: TransportSegment | None) -> None:
        metadata = dict(item.metadata)
        if segment is None:
            metadata.pop(TRANSPORT_METADATA_KEY, None)
            self._resolved.pop(item.id, None)
            value = None
        else:
            value = segment.to_metadata()
            metadata[TRANSPORT_METADATA_KEY] = value
            self._resolved[item.id] = segment
        item.metadata = metadata

        if self._store is None:
            return
        try:
            await self._store.save_field(item.id, TRANSPORT_METADATA_KEY, value, silent=True)
        except Exception as e:
            raise PersistenceError(item.id, TRANSPORT_METADATA_KEY, original_error=e) from e

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def schedule_resolution(self) -> asyncio.Task | None:
        """Start resolving in the background if anything is unresolved.

        Must be called from a running event loop. Returns the running task,
        or None when there is nothing to do.
        """
        if self._detached:
            return None
        if self._task is not None and not self._task.done():
            return self._task
        if not self.unresolved_links():
            return None
        self._task = asyncio.get_running_loop().create_task(self._run_passes())
        return self._task

    async def _run_passes(self) -> None:
        passes = 0
        while not self._detached and passes < self.max_passes:
            await self.resolve_pending()
            passes += 1
            if not self.unresolved_links():
                return
            await asyncio.sleep(self.followup_delay)

        remaining = len(self.unresolved_links())
        if remaining and not self._detached:
            logger.info(
                f"{remaining} transport segment(s) still unresolved after {passes} pass(es)"
            )

    async def wait_idle(self) -> None:
        """Wait for the scheduled resolution task, if any, to finish."""
        if self._task is not None:
            await self._task

    def detach(self) -> None:
        """Stop scheduling passes. In-flight requests finish but are ignored."""
        self._detached = True

    def attach(self) -> None:
        self._detached = False

    # -------------------------------------------------------------------------
    # Manual changes
    # -------------------------------------------------------------------------

    async def change_mode(self, item_id: str, mode: TransportMode | None) -> TransportSegment | None:
        """Set the transport mode of an item's outgoing persistent segment.

        With coordinates on both ends the route is recalculated in the new
        mode; otherwise only the mode is stored. ``None`` clears the segment.

        Raises:
            KeyError: If the item has no outgoing persistent link.
            RoutingError: If the route cannot be calculated.
            PersistenceError: If saving fails.
        """
        link = next(
            (l for l in self._links if not l.is_ephemeral and l.from_item.id == item_id),
            None,
        )
        if link is None:
            raise KeyError(f"No outgoing transport link for item {item_id}")

        if mode is None:
            segment = None
        elif link.has_coordinates:
            segment = await self._request(link, TransportMode(mode))
        else:
            segment = TransportSegment(mode=TransportMode(mode))

        await self._persist(link.from_item, segment)
        self._emit_totals()
        return segment
