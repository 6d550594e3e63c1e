"""Tests for the per-view controller."""

from __future__ import annotations

import asyncio
from datetime import date

from tripline.core.models import TripRange
from tripline.view import TimelineView

MAY_1 = date(2024, 5, 1)


class TestTimelineView:
    """End-to-end behaviour of one trip page."""

    def test_attach_resolves_transport(
        self, paris_london_activities, trip_range, router, store, fast_config
    ) -> None:
        totals_seen = []
        view = TimelineView(
            trip_range, router, store, config=fast_config, on_totals_changed=totals_seen.append
        )

        async def _run():
            view.attach(paris_london_activities)
            await view.transport.wait_idle()

        asyncio.run(_run())

        assert len(view.buckets) == 4
        assert view.day_totals[MAY_1].total_distance_km == 344
        assert totals_seen[-1][MAY_1].total_duration_min == 245

    def test_attach_without_event_loop(self, paris_london_activities, trip_range, router, store, fast_config) -> None:
        view = TimelineView(trip_range, router, store, config=fast_config)

        view.attach(paris_london_activities)

        assert view.attached
        assert router.calls == []
        assert not view.day_totals[MAY_1].has_transport_data

    def test_pending_suggestions_only(self, make_suggestion, trip_range, router, store, fast_config) -> None:
        view = TimelineView(trip_range, router, store, config=fast_config)

        view.attach(
            suggestions=[make_suggestion("s1"), make_suggestion("s2", status="accepted")]
        )

        day = view.timeline.bucket(MAY_1)
        assert [o.item.id for o in day.occurrences] == ["s1"]

    def test_category_change_regroups(self, make_activity, trip_range, router, store, fast_config) -> None:
        """Turning a dated museum into a hotel with a check-out spreads it out."""
        museum = make_activity("stay", category="museum", start="2024-05-01T14:00:00Z", end="2024-05-03T11:00:00Z")
        view = TimelineView(trip_range, router, store, config=fast_config)
        view.attach([museum])
        assert len(view.timeline.occurrences_of("stay")) == 1

        async def _run():
            item = view.timeline.find_item("stay")
            await view.edits.begin(item)
            view.edits.stage("stay", "type", "hotel")
            await view.edits.save("stay")

        asyncio.run(_run())

        assert [o.display_date for o in view.timeline.occurrences_of("stay")] == [
            date(2024, 5, 1), date(2024, 5, 2), date(2024, 5, 3)
        ]

    def test_refresh_after_in_place_edit(self, make_activity, trip_range, router, store, fast_config) -> None:
        view = TimelineView(trip_range, router, store, config=fast_config)
        view.attach([make_activity("a", start="2024-05-01T10:00:00Z")])

        view.timeline.find_item("a").start_time = "2024-05-02T10:00:00Z"
        view.refresh()

        assert [o.item.id for o in view.timeline.bucket(date(2024, 5, 2)).occurrences] == ["a"]

    def test_detach_stops_everything(self, paris_london_activities, trip_range, router, store, fast_config) -> None:
        view = TimelineView(trip_range, router, store, config=fast_config)

        async def _run():
            view.attach(paris_london_activities)
            await view.edits.begin(view.timeline.find_item("louvre"))
            view.edits.stage("louvre", "title", "Musée du Louvre")
            view.detach()
            await view.transport.wait_idle()

        asyncio.run(_run())

        assert not view.attached
        assert view.edits.editing_item_id is None
        assert router.calls == []
        assert store.saved == []

    def test_detached_view_ignores_refresh(self, make_activity, trip_range, router, store, fast_config) -> None:
        view = TimelineView(trip_range, router, store, config=fast_config)
        view.attach([make_activity("a")])
        view.detach()

        view.update([], [])

        assert view.timeline.find_item("a") is not None

    def test_unbounded_trip(self, make_activity, router, store, fast_config) -> None:
        view = TimelineView(TripRange(), router, store, config=fast_config)

        view.attach([make_activity("a", start="2024-07-14T10:00:00Z")])

        assert [b.day for b in view.buckets] == [date(2024, 7, 14)]
