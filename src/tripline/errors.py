"""Exception hierarchy for the tripline engine.

All engine exceptions inherit from :class:`TriplineError` so callers can catch
one base class. Each carries a ``retriable`` flag that the transport
aggregator uses to decide whether a segment is queued again on the next
resolution pass.

Example:
    >>> try:
    ...     await client.get_route(request)
    ... except RoutingError as e:
    ...     if e.retriable:
    ...         # Leave the segment unresolved for the next pass
    ...     else:
    ...         # Permanent rejection
"""

from __future__ import annotations

from enum import Enum
from typing import Any


# =============================================================================
# Base
# =============================================================================


class TriplineError(Exception):
    """Base exception for all tripline errors.

    Attributes:
        message: Human-readable error description (safe to log).
        retriable: Whether the operation can be retried.
        details: Additional error context.
        original_error: The underlying exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        retriable: bool = False,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.retriable = retriable
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Validation
# =============================================================================


class MissingCoordinatesError(TriplineError):
    """One or both endpoints of a transport pair lack coordinates.

    Never fatal. The aggregator attaches it to the link so the rendering
    layer can show an "add info" placeholder for the pair.
    """

    def __init__(self, from_item_id: str, to_item_id: str) -> None:
        self.from_item_id = from_item_id
        self.to_item_id = to_item_id
        super().__init__(
            f"Missing coordinates between {from_item_id} and {to_item_id}",
            retriable=False,
        )


# =============================================================================
# Network
# =============================================================================


class NetworkError(TriplineError):
    """A remote collaborator (routing or persistence) could not be reached."""


class RoutingErrorCode(str, Enum):
    """Failure modes surfaced by the routing collaborator.

    Attributes:
        SERVICE_UNAVAILABLE: Routing backend down or unreachable.
        RATE_LIMIT_EXCEEDED: Too many requests, try again later.
        INVALID_REQUEST: Bad coordinates or transport mode.
    """

    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INVALID_REQUEST = "INVALID_REQUEST"


_RETRIABLE_CODES = frozenset(
    {RoutingErrorCode.SERVICE_UNAVAILABLE, RoutingErrorCode.RATE_LIMIT_EXCEEDED}
)


class RoutingError(NetworkError):
    """Route calculation failed.

    Attributes:
        code: Which failure mode occurred. SERVICE_UNAVAILABLE and
            RATE_LIMIT_EXCEEDED are retriable, INVALID_REQUEST is not.
    """

    def __init__(
        self,
        code: RoutingErrorCode,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.code = RoutingErrorCode(code)
        super().__init__(
            message or f"Route calculation failed: {self.code.value}",
            retriable=self.code in _RETRIABLE_CODES,
            details=details,
            original_error=original_error,
        )


# =============================================================================
# Editing / Persistence
# =============================================================================


class EditStateError(TriplineError):
    """An edit operation was attempted on an item that is not being edited."""

    def __init__(self, item_id: str, state: str) -> None:
        self.item_id = item_id
        self.state = state
        super().__init__(f"Item {item_id} is not being edited (state: {state})")


class PersistenceError(TriplineError):
    """Saving a single field of an item failed.

    Attributes:
        item_id: Item whose field could not be saved.
        field: Name of the field.
    """

    def __init__(
        self,
        item_id: str,
        field: str,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.item_id = item_id
        self.field = field
        super().__init__(
            message or f"Failed to save {field} on {item_id}",
            retriable=True,
            original_error=original_error,
        )
