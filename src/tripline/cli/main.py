"""
Command Line Interface for tripline.

Renders a trip export (JSON with ``trip``, ``activities`` and ``suggestions``)
as a day-by-day timeline with transport totals.
"""

import json
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tripline import __version__
from tripline.config import ConfigError, get_config, load_config
from tripline.core.categories import get_registry
from tripline.core.models import Activity, Suggestion, TripRange
from tripline.core.timeline import DayBucket, Timeline
from tripline.output.formatting import format_day_totals, format_distance, format_duration
from tripline.transport.aggregator import LinkStatus, TransportAggregator
from tripline.transport.routing import OfflineRouter
from tripline.utils.logging import setup_logging

logger = logging.getLogger(__name__)

console = Console()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def print_header(text: str) -> None:
    """Print a styled header."""
    console.print()
    console.print(Panel(text, style="bold blue", expand=False))
    console.print()


def load_trip_file(path: Path) -> tuple[TripRange, list[Activity], list[Suggestion]]:
    """Read a trip export.

    Raises:
        click.ClickException: If the file is not valid JSON or a record is
            malformed.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise click.ClickException(f"{path} must contain a JSON object")

    try:
        trip = TripRange.model_validate(data.get("trip") or {})
        activities = [Activity.model_validate(a) for a in data.get("activities") or []]
        suggestions = [Suggestion.model_validate(s) for s in data.get("suggestions") or []]
    except ValidationError as e:
        raise click.ClickException(f"Invalid trip data in {path}: {e}") from e
    return trip, activities, suggestions


def _day_label(bucket: DayBucket) -> str:
    if bucket.is_undated:
        return "Undated"
    return bucket.day.strftime("%a %d %b %Y")


def print_day_table(bucket: DayBucket, aggregator: TransportAggregator) -> None:
    """Print one day's occurrences followed by its transport summary."""
    registry = get_registry()
    totals = aggregator.day_totals().get(bucket.day) if not bucket.is_undated else None

    table = Table(
        title=_day_label(bucket),
        title_justify="left",
        caption=f"Transport: {format_day_totals(totals)}",
        caption_justify="left",
    )
    table.add_column("Time", style="cyan", no_wrap=True)
    table.add_column("", no_wrap=True)
    table.add_column("Title")
    table.add_column("Notes", style="dim")

    for occurrence in bucket.occurrences:
        item = occurrence.item
        clock = item.start_time.strftime("%H:%M") if item.start_time else ""
        notes = []
        if occurrence.is_multi_day:
            notes.append(f"Day {occurrence.day_index + 1}/{occurrence.total_days}")
        if item.is_suggestion:
            score = item.votes.score if item.votes else 0
            notes.append(f"suggestion ({score:+d})")
        title = f"[italic]{item.title}[/italic]" if item.is_suggestion else item.title
        table.add_row(clock, registry.icon(item.category), title, ", ".join(notes))

    if not bucket.occurrences:
        table.add_row("", "", "[dim]Nothing planned[/dim]", "")

    console.print(table)

    if bucket.is_undated:
        return
    for link in aggregator.links_for(bucket.day):
        status = aggregator.status(link)
        segment = aggregator.segment_for(link)
        if status == LinkStatus.RESOLVED and segment is not None and segment.has_estimate:
            detail = (
                f"{segment.mode.value}, {format_duration(segment.duration_min)}, "
                f"{format_distance(segment.distance_km)}"
            )
        elif status == LinkStatus.NEEDS_INFO:
            detail = "add location info"
        else:
            detail = status.value
        console.print(f"  [dim]{link.from_item.title} → {link.to_item.title}: {detail}[/dim]")
    console.print()


# =============================================================================
# CLI
# =============================================================================


@click.group()
@click.version_option(__version__, prog_name="tripline")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.option("--config", "config_path", type=click.Path(), help="Custom config file")
@click.pass_context
def cli(ctx, verbose, debug, config_path):
    """
    tripline - unified trip timeline with multi-day stays and transport totals.
    """
    try:
        config = load_config(Path(config_path)) if config_path else get_config()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    else:
        level = config.log_level
    setup_logging(level=level, log_file=config.log_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.argument("trip_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def show(ctx, trip_file, output_json):
    """
    Show a trip export as a day-by-day timeline.

    Example:
        tripline show trip.json
    """
    config = ctx.obj["config"]
    trip, activities, suggestions = load_trip_file(trip_file)

    timeline = Timeline.from_records(
        activities,
        suggestions,
        trip,
        default_order_index=config.timeline.default_order_index,
        include_undated=config.timeline.include_undated,
    )
    aggregator = TransportAggregator(OfflineRouter(), default_mode=config.transport.default_mode)
    aggregator.rebuild(timeline.buckets)
    totals = aggregator.day_totals()

    if output_json:
        payload = [
            {
                "date": bucket.day.isoformat() if bucket.day else None,
                "items": [
                    {
                        "id": o.item.id,
                        "kind": o.item.kind.value,
                        "title": o.item.title,
                        "dayIndex": o.day_index,
                        "totalDays": o.total_days,
                    }
                    for o in bucket.occurrences
                ],
                "totals": totals[bucket.day].model_dump(mode="json")
                if bucket.day in totals
                else None,
            }
            for bucket in timeline.buckets
        ]
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    span = ""
    if trip.is_bounded:
        span = f" ({trip.start_date.isoformat()} → {trip.end_date.isoformat()})"
    print_header(f"{trip_file.stem}{span}")
    for bucket in timeline.buckets:
        print_day_table(bucket, aggregator)


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Print the effective configuration."""
    config = ctx.obj["config"]
    click.echo(config.model_dump_json(indent=2))


def main():
    """Entry point for the console script."""
    cli()


if __name__ == "__main__":
    sys.exit(main())
