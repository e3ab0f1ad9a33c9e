"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, Optional, Tuple

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.json_store import JsonFileStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import CoachSlotsError, SlotAlreadyBooked
from ..domain.materializer import SlotMaterializer
from ..domain.models import BookableWindow, format_clock, parse_clock, parse_date
from ..domain.mutations import (
    AddBlackout,
    AddSlot,
    CopySlot,
    DeleteAllOccurrences,
    DeleteOccurrence,
    RemoveBlackout,
    RemoveSegment,
    SlotDraft,
)
from ..services.availability_service import AvailabilityService

app = typer.Typer(
    name="coachslots",
    help="Manage coach availability and book coaching sessions",
    add_completion=False
)
blackout_app = typer.Typer(help="Add or remove blackout dates")
app.add_typer(blackout_app, name="blackout")

console = Console()
err_console = Console(stderr=True)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
CoachOption = Annotated[
    Optional[str],
    typer.Option("--coach", help="Coach id or name. Optional when only one coach is configured."),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Coach availability and booking.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load(config_file: Optional[Path], coach: Optional[str]) -> Tuple[AppConfig, AvailabilityService, str]:
    """Load configuration, open the store and resolve the coach."""
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)

    store = JsonFileStore(config.data_file)
    service = AvailabilityService(
        store=store,
        materializer=SlotMaterializer(strict=config.defaults.strict_services),
    )
    return config, service, config.resolve_coach(coach)


def _fail(exc: Exception) -> None:
    if isinstance(exc, SlotAlreadyBooked):
        err_console.print("[bold red]This time is no longer available.[/bold red] Please choose another window.")
    else:
        err_console.print(f"[bold red]Error:[/bold red] {exc}")
    raise typer.Exit(1)


def _render_windows(windows: List[BookableWindow], title: str) -> None:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Time", style="bold yellow")
    table.add_column("Service")
    table.add_column("Duration", justify="right")
    table.add_column("Status")
    table.add_column("Slot", style="dim")

    for window in windows:
        status = "[red]booked[/red]" if window.is_booked else "[green]free[/green]"
        table.add_row(
            f"{format_clock(window.start_time)} - {format_clock(window.end_time)}",
            window.service,
            f"{window.duration_minutes()} min",
            status,
            window.source_slot_id,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def windows(
    on_date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    coach: CoachOption = None,
    service: Annotated[Optional[str], typer.Option("--service", "-s", help="Only show this service")] = None,
    free_only: Annotated[bool, typer.Option("--free-only", help="Hide booked windows")] = False,
):
    """
    Show the bookable windows of a coach on one date.

    Examples:

        coachslots windows 2025-03-10

        coachslots windows 2025-03-10 --coach "Sam Lee" --service "Private Lesson"
    """
    try:
        config, availability, resource_id = _load(config_file, coach)
        not_before = config.now() if config.defaults.hide_past_windows else None

        found = asyncio.run(
            availability.find_windows(
                resource_id=resource_id,
                on_date=on_date,
                service_name=service,
                not_before=not_before,
            )
        )
    except (CoachSlotsError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    if free_only:
        found = [window for window in found if not window.is_booked]

    if not found:
        console.print(f"[yellow]⚠ No windows available on {on_date}.[/yellow]")
        return

    _render_windows(found, title=f"Windows on {parse_date(on_date).format('dddd, MMM D, YYYY')}")


@app.command()
def calendar(
    config_file: ConfigOption = None,
    coach: CoachOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="First date (YYYY-MM-DD). Defaults to today.")] = None,
    days: Annotated[Optional[int], typer.Option("--days", "-d", help="Number of days to scan")] = None,
):
    """
    List the days that still have free windows.
    """
    try:
        config, availability, resource_id = _load(config_file, coach)
        first = parse_date(start) if start else config.now().date()
        last = first.add(days=(days or config.defaults.horizon_days) - 1)
        not_before = config.now() if config.defaults.hide_past_windows else None

        open_days = asyncio.run(
            availability.find_open_days(
                resource_id=resource_id,
                start_date=first,
                end_date=last,
                not_before=not_before,
            )
        )
    except (CoachSlotsError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    if not open_days:
        console.print(
            f"[yellow]⚠ No free windows between {first.to_date_string()} and {last.to_date_string()}.[/yellow]"
        )
        return

    console.print(f"[bold green]✓ {len(open_days)} day(s) with free windows:[/bold green]\n")
    for day, day_windows in open_days.items():
        free = sum(1 for window in day_windows if not window.is_booked)
        console.print(f"  {day.format('ddd, MMM D, YYYY')}  ({free} free)")
    console.print()


@app.command()
def book(
    on_date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Argument(help="Window start (HH:MM)")],
    service: Annotated[str, typer.Argument(help="Service name")],
    player: Annotated[str, typer.Option("--player", help="Player name")],
    email: Annotated[str, typer.Option("--email", help="Parent/contact email")],
    notes: Annotated[str, typer.Option("--notes", help="Notes for the coach")] = "",
    config_file: ConfigOption = None,
    coach: CoachOption = None,
):
    """
    Book a free window.
    """
    try:
        config, availability, resource_id = _load(config_file, coach)
        start = parse_clock(start_time)
        not_before = config.now() if config.defaults.hide_past_windows else None

        offered = asyncio.run(
            availability.find_windows(
                resource_id=resource_id,
                on_date=on_date,
                service_name=service,
                not_before=not_before,
            )
        )
        chosen = next((window for window in offered if window.start_time == start), None)
        if chosen is None:
            err_console.print(f"[bold red]Error:[/bold red] No '{service}' window starts at {start_time} on {on_date}.")
            raise typer.Exit(1)

        booking = asyncio.run(
            availability.book_window(
                resource_id=resource_id,
                window=chosen,
                player_name=player,
                contact_email=email,
                notes=notes,
                not_before=not_before,
            )
        )
    except (CoachSlotsError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    console.print(Panel.fit(
        f"[bold green]✓ Booking confirmed![/bold green]\n\n"
        f"[bold]Service:[/bold] {booking.service_name}\n"
        f"[bold]When:[/bold] {chosen.format_display()}\n"
        f"[bold]Player:[/bold] {booking.player_name}\n"
        f"[bold]Booking id:[/bold] {booking.id}",
        title="Booking"
    ))


@app.command()
def cancel(
    booking_id: Annotated[str, typer.Argument(help="Booking id")],
    config_file: ConfigOption = None,
    coach: CoachOption = None,
):
    """
    Cancel a booking, freeing its window.
    """
    try:
        _, availability, resource_id = _load(config_file, coach)
        asyncio.run(availability.cancel_booking(resource_id=resource_id, booking_id=booking_id))
    except (CoachSlotsError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    console.print(f"[green]✓ Booking {booking_id} cancelled.[/green]")


@app.command()
def slots(
    config_file: ConfigOption = None,
    coach: CoachOption = None,
):
    """
    List the declared availability slots of a coach.
    """
    try:
        _, availability, resource_id = _load(config_file, coach)
        declared, blackout_dates = asyncio.run(
            availability.declared_availability(resource_id=resource_id)
        )
    except (CoachSlotsError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    if not declared:
        console.print("[yellow]No availability slots declared.[/yellow]")
    else:
        table = Table(title="Declared availability", show_header=True, header_style="bold cyan")
        table.add_column("Id", style="dim")
        table.add_column("When", style="bold yellow")
        table.add_column("Time")
        table.add_column("Services")
        table.add_column("Buffers", justify="right")

        for slot in declared:
            window = slot.window
            table.add_row(
                slot.id,
                slot.describe(),
                f"{format_clock(window.start_time)} - {format_clock(window.end_time)}",
                ", ".join(window.services),
                f"{window.buffer_before}/{window.buffer_after} min",
            )

        console.print()
        console.print(table)

    if blackout_dates:
        console.print(f"\n[bold]Blackout dates:[/bold] {', '.join(d.to_date_string() for d in blackout_dates)}")
    console.print()


@app.command()
def add_slot(
    start_time: Annotated[str, typer.Option("--start", help="Start time (HH:MM)")],
    end_time: Annotated[str, typer.Option("--end", help="End time (HH:MM)")],
    services: Annotated[List[str], typer.Option("--service", "-s", help="Offered service (repeatable)")],
    on_date: Annotated[Optional[str], typer.Option("--date", help="Calendar date the slot is added on (YYYY-MM-DD)")] = None,
    weekday: Annotated[Optional[int], typer.Option("--weekday", min=0, max=6, help="Day of week for weekly slots (0=Sunday)")] = None,
    once: Annotated[bool, typer.Option("--once", help="Only on --date instead of every week")] = False,
    buffer_before: Annotated[int, typer.Option("--buffer-before", min=0, help="Minutes before each session")] = 0,
    buffer_after: Annotated[int, typer.Option("--buffer-after", min=0, help="Minutes after each session")] = 0,
    repeat_from: Annotated[Optional[str], typer.Option("--from", help="First date of a weekly slot")] = None,
    repeat_until: Annotated[Optional[str], typer.Option("--until", help="Last date of a weekly slot")] = None,
    location: Annotated[Optional[str], typer.Option("--location", help="Location id")] = None,
    config_file: ConfigOption = None,
    coach: CoachOption = None,
):
    """
    Declare a new availability slot.

    Examples:

        coachslots add-slot --weekday 1 --start 09:00 --end 17:00 -s "Private Lesson"

        coachslots add-slot --once --date 2025-03-12 --start 16:00 --end 18:00 -s "Group Clinic"
    """
    draft = SlotDraft(
        start_time=start_time,
        end_time=end_time,
        services=tuple(services),
        is_recurring=not once,
        day_of_week=weekday,
        buffer_before=buffer_before,
        buffer_after=buffer_after,
        recurring_start_date=None if once else repeat_from,
        recurring_end_date=None if once else repeat_until,
        location_id=location,
    )
    _apply(AddSlot(draft=draft, on_date=on_date), config_file, coach, "Slot added")


@app.command()
def copy_slot(
    slot_id: Annotated[str, typer.Argument(help="Slot to copy")],
    target_date: Annotated[str, typer.Argument(help="Date to copy it to (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    coach: CoachOption = None,
):
    """
    Copy a slot onto a single date (the original slot is unchanged).
    """
    _apply(CopySlot(slot_id=slot_id, target_date=target_date), config_file, coach, "Slot copied")


@app.command()
def delete_slot(
    slot_id: Annotated[str, typer.Argument(help="Slot to delete")],
    on_date: Annotated[Optional[str], typer.Option("--date", help="Delete only the occurrence on this date")] = None,
    delete_all: Annotated[bool, typer.Option("--all", help="Delete all occurrences")] = False,
    config_file: ConfigOption = None,
    coach: CoachOption = None,
):
    """
    Delete one occurrence (--date) or all occurrences (--all) of a slot.
    """
    if delete_all == (on_date is not None):
        err_console.print("[red]Error: pass exactly one of --date or --all.[/red]")
        raise typer.Exit(1)

    if delete_all:
        command = DeleteAllOccurrences(slot_id=slot_id)
    else:
        command = DeleteOccurrence(slot_id=slot_id, on_date=on_date)
    _apply(command, config_file, coach, "Slot deleted")


@app.command()
def remove_segment(
    slot_id: Annotated[str, typer.Argument(help="Single-date slot to cut")],
    start_time: Annotated[str, typer.Argument(help="Segment start (HH:MM)")],
    end_time: Annotated[str, typer.Argument(help="Segment end (HH:MM)")],
    config_file: ConfigOption = None,
    coach: CoachOption = None,
):
    """
    Remove a time segment from a single-date slot.
    """
    command = RemoveSegment(slot_id=slot_id, start_time=start_time, end_time=end_time)
    _apply(command, config_file, coach, "Segment removed")


@blackout_app.command("add")
def blackout_add(
    on_date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    coach: CoachOption = None,
):
    """
    Block a date completely.
    """
    _apply(AddBlackout(on_date=on_date), config_file, coach, f"{on_date} blacked out")


@blackout_app.command("remove")
def blackout_remove(
    on_date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    coach: CoachOption = None,
):
    """
    Lift a blackout date.
    """
    _apply(RemoveBlackout(on_date=on_date), config_file, coach, f"Blackout on {on_date} removed")


def _apply(command, config_file: Optional[Path], coach: Optional[str], message: str) -> None:
    try:
        _, availability, resource_id = _load(config_file, coach)
        plan = asyncio.run(availability.apply(resource_id=resource_id, command=command))
    except (CoachSlotsError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    if plan.is_empty:
        console.print("[yellow]Nothing to change.[/yellow]")
        return

    console.print(f"[green]✓ {message}.[/green]")
    for slot in plan.upserts:
        console.print(
            f"  {slot.id}: {slot.describe()}, "
            f"{format_clock(slot.window.start_time)} - {format_clock(slot.window.end_time)}"
        )


@app.command()
def list_coaches(
    config_file: ConfigOption = None,
):
    """
    List all configured coaches.
    """
    try:
        config_path = config_file or get_default_config_path()
        config = AppConfig.load_from_yaml(config_path)
    except (FileNotFoundError, ValueError) as exc:
        _fail(exc)

    if not config.coaches:
        console.print("[yellow]No coaches defined in the config file.[/yellow]")
        return

    table = Table(
        title="Configured coaches",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Id", style="dim")
    table.add_column("Name (alias)", style="bold yellow")
    table.add_column("E-mail", style="dim")

    for entry in config.coaches:
        table.add_row(entry.id, entry.display_name(), entry.email)

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]coachslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
