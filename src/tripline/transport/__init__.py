"""Transport aggregation and the routing collaborator contract."""

from tripline.transport.aggregator import LinkStatus, SegmentKey, TransportAggregator, TransportLink
from tripline.transport.routing import (
    OfflineRouter,
    RouteRequest,
    RouteResult,
    RoutingClient,
    routing_error_for_status,
)

__all__ = [
    "LinkStatus",
    "OfflineRouter",
    "RouteRequest",
    "RouteResult",
    "RoutingClient",
    "SegmentKey",
    "TransportAggregator",
    "TransportLink",
    "routing_error_for_status",
]
