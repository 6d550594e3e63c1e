"""Tests for the routing collaborator contract."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from tripline.core.models import TransportMode
from tripline.errors import RoutingError, RoutingErrorCode
from tripline.transport.routing import (
    OfflineRouter,
    RouteRequest,
    RouteResult,
    RoutingClient,
    routing_error_for_status,
)


class TestRouteRequest:
    def test_create(self) -> None:
        request = RouteRequest.create((48.85, 2.35), (51.5, -0.12), "walk")

        assert request.mode == TransportMode.WALK
        assert request.to_params() == {
            "fromLat": 48.85,
            "fromLng": 2.35,
            "toLat": 51.5,
            "toLng": -0.12,
            "mode": "walk",
        }

    def test_zero_coordinates_are_valid(self) -> None:
        request = RouteRequest.create((0.0, 0.0), (0.0, 1.0))

        assert request.from_lat == 0.0

    @pytest.mark.parametrize(
        "origin, destination",
        [((95.0, 0.0), (0.0, 0.0)), ((0.0, 0.0), (0.0, -181.0))],
    )
    def test_out_of_range_coordinates(self, origin, destination) -> None:
        with pytest.raises(RoutingError) as exc_info:
            RouteRequest.create(origin, destination)

        assert exc_info.value.code == RoutingErrorCode.INVALID_REQUEST
        assert not exc_info.value.retriable

    def test_unknown_mode(self) -> None:
        with pytest.raises(RoutingError):
            RouteRequest.create((0.0, 0.0), (1.0, 1.0), "teleport")


class TestRouteResult:
    def test_from_api(self) -> None:
        result = RouteResult.from_api(
            {"distance": 12.5, "duration": 30, "geometry": [[2.35, 48.85]], "provider": "osrm", "cached": True}
        )

        assert result.distance_km == 12.5
        assert result.duration_min == 30
        assert result.geometry == [(2.35, 48.85)]
        assert result.cached

    def test_malformed_body(self) -> None:
        with pytest.raises(RoutingError) as exc_info:
            RouteResult.from_api({"distance": "far"})

        assert exc_info.value.code == RoutingErrorCode.SERVICE_UNAVAILABLE
        assert exc_info.value.retriable

    def test_to_segment(self) -> None:
        when = datetime(2024, 5, 1, tzinfo=timezone.utc)
        result = RouteResult(distance_km=3, duration_min=40, provider="osrm")

        segment = result.to_segment(TransportMode.WALK, resolved_at=when)

        assert segment.mode == TransportMode.WALK
        assert segment.duration_min == 40
        assert segment.resolved_at == when


class TestRoutingErrors:
    @pytest.mark.parametrize(
        "status, code, retriable",
        [
            (503, RoutingErrorCode.SERVICE_UNAVAILABLE, True),
            (429, RoutingErrorCode.RATE_LIMIT_EXCEEDED, True),
            (400, RoutingErrorCode.INVALID_REQUEST, False),
            (500, RoutingErrorCode.SERVICE_UNAVAILABLE, True),
        ],
    )
    def test_status_mapping(self, status, code, retriable) -> None:
        error = routing_error_for_status(status)

        assert error.code == code
        assert error.retriable is retriable
        assert error.details["status"] == status


class TestOfflineRouter:
    def test_is_a_routing_client(self) -> None:
        assert isinstance(OfflineRouter(), RoutingClient)

    def test_always_unavailable(self) -> None:
        request = RouteRequest.create((0.0, 0.0), (1.0, 1.0))

        with pytest.raises(RoutingError) as exc_info:
            asyncio.run(OfflineRouter().get_route(request))

        assert exc_info.value.code == RoutingErrorCode.SERVICE_UNAVAILABLE
