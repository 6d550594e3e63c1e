"""Display helpers."""

from tripline.output.formatting import format_day_totals, format_distance, format_duration

__all__ = ["format_day_totals", "format_distance", "format_duration"]
