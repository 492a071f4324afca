"""
Main CLI application using Typer.
"""

import asyncio
import logging
from datetime import date, time
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_store import InMemorySchedulingStore
from ..adapters.notifications import LoggingNotifier
from ..adapters.rest_store import RestSchedulingStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SchedulingError
from ..services.availability_resolver import AvailabilityOutcome, AvailabilityResolver
from ..services.series_editor import RecurringSeriesEditor

app = typer.Typer(
    name="therapyslots",
    help="Inspect therapist availability and manage recurring appointment series",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use the local JSON data file instead of the backend.")]
DataOption = Annotated[Optional[Path], typer.Option("--data", help="JSON data file for --mock (overrides mock_data_file).")]

OUTCOME_MESSAGES = {
    AvailabilityOutcome.FULLY_BOOKED: "Fully booked for this duration.",
    AvailabilityOutcome.CLOSED_DAY: "No working hours on this weekday.",
    AvailabilityOutcome.NOT_CONFIGURED: "The therapist has not configured working hours yet.",
    AvailabilityOutcome.LOAD_FAILED: "Availability could not be loaded; showing no slots.",
}


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)
    _configure_logging(config.log_level)
    return config


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _build_store(config: AppConfig, mock: bool, data_file: Optional[Path]):
    """Return the store to use and, in mock mode, the file to write changes back to."""
    if mock:
        path = data_file or config.mock_data_file
        if path is None:
            console.print("[red]Error: --mock needs --data or mock_data_file in the config.[/red]")
            raise typer.Exit(1)
        return InMemorySchedulingStore.from_json(path, default_timezone=config.timezone), path

    if config.backend is None:
        console.print("[red]Error: no backend configured. Add a 'backend' section or use --mock.[/red]")
        raise typer.Exit(1)

    store = RestSchedulingStore(
        base_url=config.backend.url,
        api_key=config.backend.api_key,
        access_token=config.backend.access_token,
        timeout=config.backend.timeout_seconds,
        default_timezone=config.timezone,
    )
    return store, None


def _parse_date(value: Optional[str], tz: str) -> date:
    if not value:
        return pendulum.today(tz).date()
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Error parsing date '{value}': {e}[/red]")
        raise typer.Exit(1)


def _parse_time(value: str) -> time:
    try:
        return pendulum.from_format(value, "HH:mm").time()
    except ValueError as e:
        console.print(f"[red]Error parsing time '{value}': {e}[/red]")
        raise typer.Exit(1)


@app.command()
def slots(
    therapist_id: Annotated[str, typer.Argument(help="Therapist id")],
    on: Annotated[Optional[str], typer.Option("--date", help="Date (YYYY-MM-DD), defaults to today")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Session duration in minutes")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data_file: DataOption = None,
):
    """
    List the open slots of a therapist on one date.

    Examples:

        therapyslots slots t-1 --date 2024-11-25 --duration 60

        therapyslots slots t-1 --mock --data fixtures.json
    """
    try:
        config = _load_config(config_file)
        day = _parse_date(on, config.timezone)
        minutes = duration if duration is not None else config.default_duration_minutes

        store, _ = _build_store(config, mock, data_file)
        resolver = AvailabilityResolver.from_config(store, config.availability)
        result = asyncio.run(resolver.resolve(therapist_id, day, minutes))

        console.print()
        if not result.slots:
            console.print(f"[yellow]⚠ No open slots on {day.isoformat()}. {OUTCOME_MESSAGES[result.outcome]}[/yellow]")
        else:
            console.print(f"[bold green]✓ {len(result.slots)} open slot(s) found:[/bold green]\n")
            for slot in result.slots:
                console.print(f"  {slot.format_display()}")
        console.print()

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def calendar(
    therapist_id: Annotated[str, typer.Argument(help="Therapist id")],
    start: Annotated[Optional[str], typer.Option("--start", help="First date (YYYY-MM-DD), defaults to today")] = None,
    days: Annotated[int, typer.Option("--days", help="Number of days to show")] = 14,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Session duration in minutes")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data_file: DataOption = None,
):
    """
    Show which dates have at least one opening.
    """
    try:
        config = _load_config(config_file)
        if days <= 0:
            raise ValueError("--days must be positive")
        first_day = _parse_date(start, config.timezone)
        last_day = pendulum.date(first_day.year, first_day.month, first_day.day).add(days=days - 1)
        minutes = duration if duration is not None else config.default_duration_minutes

        store, _ = _build_store(config, mock, data_file)
        resolver = AvailabilityResolver.from_config(store, config.availability)
        open_by_date = asyncio.run(resolver.open_dates(therapist_id, first_day, last_day, minutes))

        table = Table(
            title=f"Availability for {minutes}-minute sessions",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Date", style="bold")
        table.add_column("Weekday", style="dim")
        table.add_column("Status")

        for day, is_open in open_by_date.items():
            status = "[green]available[/green]" if is_open else "[red]unavailable[/red]"
            table.add_row(day.isoformat(), day.strftime("%A"), status)

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def check(
    therapist_id: Annotated[str, typer.Argument(help="Therapist id")],
    start: Annotated[str, typer.Option("--start", help="Start (YYYY-MM-DD HH:mm) in the configured timezone")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Session duration in minutes")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data_file: DataOption = None,
):
    """
    Re-check one interval against current bookings (exit code 2 when taken).
    """
    try:
        config = _load_config(config_file)
        minutes = duration if duration is not None else config.default_duration_minutes
        try:
            begin = pendulum.from_format(start, "YYYY-MM-DD HH:mm", tz=config.timezone)
        except ValueError as e:
            console.print(f"[red]Error parsing start '{start}': {e}[/red]")
            raise typer.Exit(1)

        store, _ = _build_store(config, mock, data_file)
        resolver = AvailabilityResolver.from_config(store, config.availability)
        conflicts = asyncio.run(resolver.find_conflicts(therapist_id, begin, minutes))

        if not conflicts:
            console.print(f"[green]✓ {begin.format('YYYY-MM-DD HH:mm')} ({minutes} min) is free.[/green]")
            return

        console.print(f"[yellow]⚠ {begin.format('YYYY-MM-DD HH:mm')} ({minutes} min) is no longer available:[/yellow]")
        for appointment in conflicts:
            console.print(f"  {appointment.id}: {appointment.time_range}")
        raise typer.Exit(2)

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def series(
    member_id: Annotated[str, typer.Argument(help="Id of the series root or any occurrence")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data_file: DataOption = None,
):
    """
    List every occurrence of a recurring series.
    """
    try:
        config = _load_config(config_file)
        store, _ = _build_store(config, mock, data_file)
        editor = RecurringSeriesEditor(store, timezone=config.timezone)
        occurrences = asyncio.run(editor.load_series(member_id))

        table = Table(
            title=f"Series {occurrences[0].series_root_id}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Id", style="bold yellow")
        table.add_column("Start")
        table.add_column("Duration", justify="right")
        table.add_column("Status", style="dim")

        for occurrence in occurrences:
            table.add_row(
                occurrence.id,
                occurrence.start.in_timezone(config.timezone).format("YYYY-MM-DD HH:mm"),
                f"{occurrence.duration_minutes} min",
                occurrence.status.value,
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def series_reschedule(
    parent_id: Annotated[str, typer.Argument(help="Id of the series root or any occurrence")],
    at: Annotated[str, typer.Option("--time", help="New start time (HH:mm) for every occurrence")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="New duration in minutes")],
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes applied to every occurrence")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data_file: DataOption = None,
):
    """
    Move every occurrence of a series to a new time, keeping each date.
    """
    try:
        config = _load_config(config_file)
        new_time = _parse_time(at)
        store, mock_path = _build_store(config, mock, data_file)
        editor = RecurringSeriesEditor(store, notifier=LoggingNotifier(), timezone=config.timezone)

        result = asyncio.run(
            editor.bulk_reschedule(parent_id, new_time, duration, notes)
        )
        if mock_path is not None:
            store.save_json(mock_path)

        console.print(f"\n[green]✓ {result.succeeded_count} occurrence(s) updated.[/green]")
        if result.has_failures:
            console.print(f"[bold red]✗ {len(result.failed)} occurrence(s) failed:[/bold red]")
            for failure in result.failed:
                console.print(f"  {failure.appointment_id}: {failure.reason}")
            raise typer.Exit(1)
        console.print()

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def series_delete(
    parent_id: Annotated[str, typer.Argument(help="Id of the series root or any occurrence")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data_file: DataOption = None,
):
    """
    Delete a recurring series (root and all occurrences).
    """
    try:
        config = _load_config(config_file)
        store, mock_path = _build_store(config, mock, data_file)

        if not yes and not typer.confirm(f"Delete every appointment in series {parent_id}?"):
            console.print("[yellow]Aborted.[/yellow]")
            raise typer.Exit(1)

        editor = RecurringSeriesEditor(store, notifier=LoggingNotifier(), timezone=config.timezone)
        deleted = asyncio.run(editor.bulk_delete(parent_id))
        if mock_path is not None:
            store.save_json(mock_path)

        console.print(Panel.fit(
            f"[bold green]✓ {deleted} appointment(s) deleted[/bold green]",
            title="Series deleted"
        ))

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]therapyslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
