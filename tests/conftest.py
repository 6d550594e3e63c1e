"""Central Pytest Fixtures for tripline.

Fixtures included:
- Record factories: make_activity, make_suggestion, make_item
- Trip data: trip_range, paris_london_activities
- Collaborator fakes: FakeRouter, FakeStore (router, store fixtures)
- Config: fast_config (no throttling delays)
- Isolation: resets the config cache, TRIPLINE_* environment and package logger
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import date, datetime
from typing import Any, Callable, Iterator

import pytest

from tripline.config import AppConfig, TransportConfig, reset_config
from tripline.core.models import (
    Activity,
    ItemKind,
    Suggestion,
    TimelineItem,
    TripRange,
)
from tripline.core.store import Notification
from tripline.errors import RoutingError, RoutingErrorCode
from tripline.transport.routing import RouteRequest, RouteResult

PARIS = (48.85, 2.35)
LONDON = (51.50, -0.12)


# =============================================================================
# Collaborator Fakes
# =============================================================================


Coordinates = tuple[float, float]


class FakeRouter:
    """In-memory routing collaborator.

    Routes are looked up by ``(origin, destination)``. Queued errors for a
    pair are raised first, one per call. Every call yields to the event loop
    once, like a real network request.
    """

    def __init__(self, default: RouteResult | None = None) -> None:
        self.default = default or RouteResult(distance_km=10.0, duration_min=15.0, provider="fake")
        self.routes: dict[tuple[Coordinates, Coordinates], RouteResult] = {}
        self.errors: dict[tuple[Coordinates, Coordinates], list[Exception]] = {}
        self.always_fail: Exception | None = None
        self.calls: list[RouteRequest] = []

    def add_route(self, origin: Coordinates, destination: Coordinates, distance_km: float, duration_min: float) -> None:
        self.routes[(origin, destination)] = RouteResult(
            distance_km=distance_km, duration_min=duration_min, provider="fake"
        )

    def fail_once(self, origin: Coordinates, destination: Coordinates, error: Exception) -> None:
        self.errors.setdefault((origin, destination), []).append(error)

    async def get_route(self, request: RouteRequest) -> RouteResult:
        self.calls.append(request)
        await asyncio.sleep(0)
        if self.always_fail is not None:
            raise self.always_fail
        key = ((request.from_lat, request.from_lng), (request.to_lat, request.to_lng))
        queued = self.errors.get(key)
        if queued:
            raise queued.pop(0)
        return self.routes.get(key, self.default)


class FakeStore:
    """In-memory persistence collaborator recording every call."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.failing = set(failing or ())
        self.saved: list[tuple[str, str, Any, bool]] = []
        self.deleted: list[str] = []
        self.fail_delete = False

    async def save_field(self, item_id: str, field: str, value: Any, *, silent: bool = False) -> None:
        await asyncio.sleep(0)
        if field in self.failing:
            raise ConnectionError(f"cannot save {field}")
        self.saved.append((item_id, field, value, silent))

    async def delete_item(self, item_id: str) -> None:
        if self.fail_delete:
            raise ConnectionError("cannot delete")
        self.deleted.append(item_id)

    def saved_fields(self, item_id: str) -> list[str]:
        return [field for saved_id, field, _, _ in self.saved if saved_id == item_id]


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Clear TRIPLINE_* variables, the config cache and package log handlers."""
    for key in list(os.environ):
        if key.upper().startswith("TRIPLINE_"):
            monkeypatch.delenv(key, raising=False)
    reset_config()

    package_logger = logging.getLogger("tripline")
    package_logger.handlers = []
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)
    yield
    reset_config()


# =============================================================================
# Record Factories
# =============================================================================


@pytest.fixture
def make_activity() -> Callable[..., Activity]:
    """Factory for activity records using backend (camelCase) keys."""

    def _make(
        id: str,
        category: str = "museum",
        start: str | None = "2024-05-01T10:00:00Z",
        end: str | None = None,
        coords: Coordinates | None = None,
        order: int | None = None,
        metadata: dict[str, Any] | None = None,
        **extra: Any,
    ) -> Activity:
        data: dict[str, Any] = {
            "id": id,
            "type": category,
            "title": extra.pop("title", id.title()),
            "startTime": start,
            "endTime": end,
            "orderIndex": order,
            "metadata": metadata or {},
            **extra,
        }
        if coords is not None:
            data["latitude"], data["longitude"] = coords
        return Activity.model_validate(data)

    return _make


@pytest.fixture
def make_suggestion() -> Callable[..., Suggestion]:
    """Factory for suggestion records."""

    def _make(
        id: str,
        status: str = "pending",
        category: str = "restaurant",
        start: str | None = "2024-05-01T19:00:00Z",
        **extra: Any,
    ) -> Suggestion:
        return Suggestion.model_validate(
            {
                "id": id,
                "activityType": category,
                "title": extra.pop("title", id.title()),
                "status": status,
                "startTime": start,
                **extra,
            }
        )

    return _make


@pytest.fixture
def make_item() -> Callable[..., TimelineItem]:
    """Factory for prepared timeline items."""

    def _make(
        id: str,
        kind: ItemKind = ItemKind.ACTIVITY,
        category: str = "museum",
        start: datetime | None = datetime(2024, 5, 1, 10, 0),
        end: datetime | None = None,
        order: int | None = None,
        coords: Coordinates | None = None,
        **extra: Any,
    ) -> TimelineItem:
        latitude, longitude = coords if coords is not None else (None, None)
        return TimelineItem(
            kind=kind,
            id=id,
            category=category,
            title=extra.pop("title", id.title()),
            start_time=start,
            end_time=end,
            order_index=order,
            latitude=latitude,
            longitude=longitude,
            **extra,
        )

    return _make


# =============================================================================
# Trip Data
# =============================================================================


@pytest.fixture
def trip_range() -> TripRange:
    """A four-day trip, 1-4 May 2024."""
    return TripRange(start_date=date(2024, 5, 1), end_date=date(2024, 5, 4))


@pytest.fixture
def paris_london_activities(make_activity: Callable[..., Activity]) -> list[Activity]:
    """Two stops on 1 May: Paris at 09:00 then London at 18:00."""
    return [
        make_activity("louvre", start="2024-05-01T09:00:00Z", coords=PARIS, order=0),
        make_activity("british-museum", start="2024-05-01T18:00:00Z", coords=LONDON, order=1),
    ]


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def router() -> FakeRouter:
    """Router that knows the Paris to London drive."""
    fake = FakeRouter()
    fake.add_route(PARIS, LONDON, distance_km=344.0, duration_min=245.0)
    return fake


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def notifications() -> list[Notification]:
    return []


@pytest.fixture
def fast_config() -> AppConfig:
    """Config without throttling delays so tests run instantly."""
    return AppConfig(
        transport=TransportConfig(request_delay_seconds=0, followup_delay_seconds=0, max_passes=3)
    )


@pytest.fixture
def retriable_error() -> RoutingError:
    return RoutingError(RoutingErrorCode.SERVICE_UNAVAILABLE)
