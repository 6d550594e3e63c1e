"""Display formatting for transport durations, distances and day totals."""

from __future__ import annotations

from tripline.core.models import DayTotals

# Shown in place of a day total when no transport is known.
NO_DATA_PLACEHOLDER = "—"


def format_duration(minutes: float | None) -> str:
    """Format minutes as ``2h 15m``, ``45m``, ``3h`` or ``< 1m``.

    Example:
        >>> format_duration(245)
        '4h 5m'
    """
    if minutes is None or minutes < 1:
        return "< 1m"
    total = round(minutes)
    hours, mins = divmod(total, 60)
    if hours and mins:
        return f"{hours}h {mins}m"
    if hours:
        return f"{hours}h"
    return f"{mins}m"


def format_distance(km: float | None) -> str:
    """Format kilometres: ``< 0.1 km``, one decimal below 10 km, else whole km.

    Example:
        >>> format_distance(2.345)
        '2.3 km'
        >>> format_distance(344.4)
        '344 km'
    """
    if km is None or km < 0.1:
        return "< 0.1 km"
    if km < 10:
        return f"{km:.1f} km"
    return f"{round(km)} km"


def format_day_totals(totals: DayTotals | None) -> str:
    """One-line summary of a day's transport, or a dash if there is none."""
    if totals is None or not totals.has_transport_data:
        return NO_DATA_PLACEHOLDER
    return (
        f"{format_duration(totals.total_duration_min)} · "
        f"{format_distance(totals.total_distance_km)}"
    )
