"""Routing collaborator contract.

The engine never calculates routes itself. It hands a :class:`RouteRequest`
to any object implementing :class:`RoutingClient` and receives a
:class:`RouteResult`. Transport adapters (HTTP or otherwise) use
:meth:`RouteResult.from_api` and :func:`routing_error_for_status` to translate
the backend's ``/routing`` responses.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from tripline.core.models import TransportMode, TransportSegment
from tripline.errors import RoutingError, RoutingErrorCode


# =============================================================================
# Request / Result
# =============================================================================


class RouteRequest(BaseModel):
    """A route between two points."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_lat: float = Field(ge=-90, le=90, validation_alias=AliasChoices("fromLat", "from_lat"))
    from_lng: float = Field(ge=-180, le=180, validation_alias=AliasChoices("fromLng", "from_lng"))
    to_lat: float = Field(ge=-90, le=90, validation_alias=AliasChoices("toLat", "to_lat"))
    to_lng: float = Field(ge=-180, le=180, validation_alias=AliasChoices("toLng", "to_lng"))
    mode: TransportMode = TransportMode.DRIVE

    @classmethod
    def create(
        cls,
        origin: tuple[float, float],
        destination: tuple[float, float],
        mode: TransportMode | str = TransportMode.DRIVE,
    ) -> RouteRequest:
        """Build a validated request from ``(lat, lng)`` pairs.

        Raises:
            RoutingError: INVALID_REQUEST for out-of-range coordinates or an
                unknown mode.
        """
        try:
            return cls(
                from_lat=origin[0],
                from_lng=origin[1],
                to_lat=destination[0],
                to_lng=destination[1],
                mode=mode,
            )
        except ValidationError as e:
            raise RoutingError(
                RoutingErrorCode.INVALID_REQUEST,
                f"Invalid route request: {e.error_count()} validation error(s)",
                original_error=e,
            ) from e

    def to_params(self) -> dict[str, Any]:
        """Query parameters for the backend ``/routing`` endpoint."""
        return {
            "fromLat": self.from_lat,
            "fromLng": self.from_lng,
            "toLat": self.to_lat,
            "toLng": self.to_lng,
            "mode": self.mode.value,
        }


class RouteResult(BaseModel):
    """A calculated route.

    Attributes:
        distance_km: Route distance in kilometres.
        duration_min: Route duration in minutes.
        geometry: Polyline as ``(lng, lat)`` pairs.
        provider: Which backend produced it (e.g. ``osrm``, ``estimate``).
        cached: Whether the backend served it from cache.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    distance_km: float = Field(validation_alias=AliasChoices("distance", "distanceKm", "distance_km"))
    duration_min: float = Field(validation_alias=AliasChoices("duration", "durationMin", "duration_min"))
    geometry: list[tuple[float, float]] = Field(default_factory=list)
    provider: str | None = None
    cached: bool = False

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> RouteResult:
        """Parse a backend ``/routing`` response body.

        Raises:
            RoutingError: SERVICE_UNAVAILABLE if the body is malformed.
        """
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise RoutingError(
                RoutingErrorCode.SERVICE_UNAVAILABLE,
                "Malformed routing response",
                original_error=e,
            ) from e

    def to_segment(self, mode: TransportMode, resolved_at: datetime | None = None) -> TransportSegment:
        return TransportSegment(
            mode=mode,
            distance_km=self.distance_km,
            duration_min=self.duration_min,
            geometry=self.geometry,
            provider=self.provider,
            resolved_at=resolved_at or datetime.now(timezone.utc),
        )


# =============================================================================
# Errors
# =============================================================================


_STATUS_CODES = {
    503: RoutingErrorCode.SERVICE_UNAVAILABLE,
    429: RoutingErrorCode.RATE_LIMIT_EXCEEDED,
    400: RoutingErrorCode.INVALID_REQUEST,
}


def routing_error_for_status(status: int, message: str | None = None) -> RoutingError:
    """Map an HTTP status from the routing endpoint to a :class:`RoutingError`.

    Unknown statuses are treated as the service being unavailable.
    """
    code = _STATUS_CODES.get(status, RoutingErrorCode.SERVICE_UNAVAILABLE)
    return RoutingError(code, message, details={"status": status})


# =============================================================================
# Client Protocol
# =============================================================================


@runtime_checkable
class RoutingClient(Protocol):
    """Anything that can calculate a route."""

    async def get_route(self, request: RouteRequest) -> RouteResult:
        ...


class OfflineRouter:
    """Routing client for offline use: every request reports the service down.

    Links stay unresolved, so only segments already stored on items count
    towards day totals.
    """

    async def get_route(self, request: RouteRequest) -> RouteResult:
        raise RoutingError(RoutingErrorCode.SERVICE_UNAVAILABLE, "Routing is offline")
