"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, Optional, Sequence

import pendulum
import typer
from pendulum import Date
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.authenticator import Authenticator
from ..adapters.booking_client import BookingClient
from ..adapters.mock_booking_client import MockBookingClient
from ..config import AppConfig
from ..domain.exceptions import (
    AuthenticationError,
    BookingAPIError,
    BookingNotFoundError,
    BookingValidationError,
)
from ..domain.models import Booking, Room, Session
from ..domain.occupancy import OccupancyResolver
from ..domain.range_selector import SlotState
from ..services.booking_form import BookingForm
from ..services.booking_service import BookingService, split_user_bookings, week_bounds

app = typer.Typer(
    name="roomcalendar",
    help="Book meeting rooms in half-hour slots",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use the in-memory backend instead of the server.")
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")]
DateOption = Annotated[
    Optional[str],
    typer.Option("--date", "-d", help="Date (YYYY-MM-DD). Defaults to today.")
]

STATE_STYLES = {
    SlotState.OCCUPIED: "dim strike",
    SlotState.START: "bold white on blue",
    SlotState.END: "bold white on blue",
    SlotState.SELECTED: "white on blue",
    SlotState.FREE: "green",
}

WEEK_HOURS = range(8, 20)


def _configure_logging(config: AppConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else config.log_level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path], verbose: bool) -> AppConfig:
    try:
        config = AppConfig.load(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    _configure_logging(config, verbose)
    return config


def _build_service(config: AppConfig, mock: bool, session: Session) -> BookingService:
    if mock:
        rooms = [
            Room(id=room.id, name=room.name, capacity=room.capacity, description=room.description)
            for room in config.rooms
        ]
        client = MockBookingClient(rooms=rooms, data_file=config.mock_data_file)
    else:
        client = BookingClient(
            base_url=config.api_url,
            access_token=session.token,
            timeout=config.request_timeout
        )
    return BookingService(booking_client=client)


def _build_authenticator(config: AppConfig) -> Authenticator:
    return Authenticator(
        base_url=config.api_url,
        session_file=config.session_file,
        timeout=config.request_timeout
    )


def _load_session(config: AppConfig, mock: bool) -> Session:
    if mock:
        return Session.anonymous()
    return _build_authenticator(config).restore_session()


def _parse_date(value: Optional[str]) -> Date:
    if not value:
        return pendulum.today().date()
    try:
        return pendulum.from_format(value, "YYYY-MM-DD").date()
    except ValueError as e:
        console.print(f"[red]Could not parse date {value!r}: {e}[/red]")
        raise typer.Exit(1)


def _resolve_room(rooms: Sequence[Room], identifier: str) -> Room:
    for room in rooms:
        if str(room.id) == identifier or room.name.lower() == identifier.lower():
            return room

    known = ", ".join(f"{room.id} ({room.name})" for room in rooms)
    console.print(f"[bold red]Error:[/bold red] Unknown room '{identifier}'. Known rooms: {known}")
    raise typer.Exit(1)


def _room_names(rooms: Sequence[Room]) -> dict:
    return {room.id: room.name for room in rooms}


def _render_day(form: BookingForm, room: Room) -> None:
    table = Table(
        title=f"{room.name} · {form.date.format('dddd, DD.MM.YYYY')}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Slot", style="bold")
    table.add_column("State")
    table.add_column("Booked by", style="dim")

    for slot in form.get_selectable_slots():
        state = form.get_slot_state(slot)
        booking = form.get_slot_booking(slot) if state is SlotState.OCCUPIED else None
        booked_by = ""
        if booking:
            booked_by = f"{booking.booker_name} — {booking.topic or 'No topic'}"
        table.add_row(slot, f"[{STATE_STYLES[state]}]{state.value}[/]", booked_by)

    console.print()
    console.print(table)


def _print_bookings(bookings: Sequence[Booking], room_names: dict) -> None:
    for booking in bookings:
        console.print(f"  [dim]#{booking.key}[/dim] {booking.format_display(room_names.get(booking.room_id))}")


@app.command()
def rooms(config_file: ConfigOption = None, mock: MockOption = False, verbose: VerboseOption = False):
    """
    List the bookable rooms.
    """
    config = _load_config(config_file, verbose)
    service = _build_service(config, mock, Session.anonymous())

    try:
        room_list = asyncio.run(service.list_rooms())
    except BookingAPIError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title="Rooms", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold yellow")
    table.add_column("Name")
    table.add_column("Capacity", style="dim")

    for room in room_list:
        capacity = f"up to {room.capacity}" if room.capacity else ""
        table.add_row(str(room.id), room.name, capacity)

    console.print()
    console.print(table)
    console.print()


@app.command()
def week(
    date: DateOption = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Show the weekly grid of both rooms, one row per hour.
    """
    config = _load_config(config_file, verbose)
    anchor = _parse_date(date)
    service = _build_service(config, mock, Session.anonymous())

    async def _load():
        return await asyncio.gather(service.list_rooms(), service.fetch_week_bookings(anchor))

    try:
        room_list, bookings = asyncio.run(_load())
    except BookingAPIError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    monday, sunday = week_bounds(anchor)
    days = [monday.add(days=offset) for offset in range(7)]
    markers = ["[blue]■[/blue]", "[magenta]■[/magenta]"]

    table = Table(
        title=f"{monday.format('DD MMM')} — {sunday.format('DD MMM YYYY')}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Time", style="dim")
    for day in days:
        table.add_column(day.format("ddd DD"), justify="center")

    resolvers = {
        (room.id, day): OccupancyResolver(
            b for b in bookings if b.room_id == room.id and b.date == day
        )
        for room in room_list
        for day in days
    }

    for hour in WEEK_HOURS:
        row = [f"{hour:02d}:00"]
        for day in days:
            cell = []
            for idx, room in enumerate(room_list[:2]):
                resolver = resolvers[(room.id, day)]
                busy = resolver.is_occupied(f"{hour:02d}:00") or resolver.is_occupied(f"{hour:02d}:30")
                cell.append(markers[idx] if busy else "·")
            row.append(" ".join(cell))
        table.add_row(*row)

    console.print()
    console.print(table)
    legend = "   ".join(f"{markers[idx]} {room.name}" for idx, room in enumerate(room_list[:2]))
    console.print(f"  {legend}\n")


@app.command()
def day(
    room: Annotated[str, typer.Argument(help="Room id or name")],
    date: DateOption = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Show the half-hour slots of one room on one day.
    """
    config = _load_config(config_file, verbose)
    target_date = _parse_date(date)
    service = _build_service(config, mock, Session.anonymous())

    try:
        selected_room = _resolve_room(asyncio.run(service.list_rooms()), room)
    except BookingAPIError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    form = BookingForm(service, selected_room.id, target_date)
    asyncio.run(form.refresh())
    if form.fetch_error:
        console.print(f"[yellow]⚠ Could not load bookings: {form.fetch_error}[/yellow]")

    _render_day(form, selected_room)
    console.print()


@app.command()
def book(
    room: Annotated[str, typer.Argument(help="Room id or name")],
    name: Annotated[str, typer.Option("--name", "-n", help="Your name")],
    department: Annotated[str, typer.Option("--department", help="Your department")],
    date: DateOption = None,
    clicks: Annotated[Optional[List[str]], typer.Option("--click", help="Slot click (HH:MM), repeatable. Two clicks select a range.")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start time (HH:MM)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End time (HH:MM)")] = None,
    topic: Annotated[Optional[str], typer.Option("--topic", "-t", help="Meeting topic")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Book a room for a range of half-hour slots.

    Examples:

        # Two clicks: 09:00 to 11:30
        roomcalendar book 1 --date 2024-11-25 --click 09:00 --click 11:00 -n Anna --department Sales

        # Typed times
        roomcalendar book "Room 2" --start 13:00 --end 14:00 -n Anna --department Sales
    """
    config = _load_config(config_file, verbose)
    target_date = _parse_date(date)
    session = _load_session(config, mock)
    service = _build_service(config, mock, session)

    try:
        selected_room = _resolve_room(asyncio.run(service.list_rooms()), room)
    except BookingAPIError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    form = BookingForm(service, selected_room.id, target_date, config.cancel_code_length)
    asyncio.run(form.refresh())
    if form.fetch_error:
        console.print(f"[yellow]⚠ Could not load bookings: {form.fetch_error}[/yellow]")

    last_error = form.error
    for slot in clicks or []:
        form.handle_slot_click(slot)
        if form.error and form.error != last_error:
            console.print(f"[yellow]⚠ {slot}: {form.error}[/yellow]")
        last_error = form.error

    if start:
        form.set_start_time(start)
    if end:
        form.set_end_time(end)

    _render_day(form, selected_room)

    result = asyncio.run(form.submit(session, name, department, topic))
    if result is None:
        console.print(f"\n[bold red]Error:[/bold red] {form.error}\n")
        raise typer.Exit(1)

    booking = result.booking
    lines = [
        "[bold green]✓ Booking created![/bold green]\n",
        f"[bold]Room:[/bold] {selected_room.name}",
        f"[bold]Time:[/bold] {target_date.format('DD.MM.YYYY')} {booking.start_time} — {booking.end_time}",
    ]
    if result.cancel_code:
        lines.append(f"\n[bold]Cancellation code:[/bold] [bold yellow]{result.cancel_code}[/bold yellow]")
        lines.append("[dim]Keep this code, you need it to cancel the booking.[/dim]")

    console.print()
    console.print(Panel.fit("\n".join(lines), title="Booking"))
    console.print()


@app.command()
def cancel(
    code: Annotated[str, typer.Argument(help="Cancellation code received when booking")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Cancel a booking with its cancellation code.
    """
    config = _load_config(config_file, verbose)
    service = _build_service(config, mock, Session.anonymous())

    try:
        booking = asyncio.run(service.cancel_booking_by_code(code))
    except (BookingValidationError, BookingNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    except BookingAPIError as e:
        console.print(f"[bold red]Backend error:[/bold red] {e}")
        raise typer.Exit(2)

    console.print(f"\n[green]✓ Booking cancelled:[/green] {booking.format_display()}\n")


@app.command()
def upcoming(config_file: ConfigOption = None, mock: MockOption = False, verbose: VerboseOption = False):
    """
    List the next bookings of this week.
    """
    config = _load_config(config_file, verbose)
    service = _build_service(config, mock, Session.anonymous())

    async def _load():
        return await asyncio.gather(
            service.list_rooms(),
            service.upcoming(limit=config.upcoming_limit),
        )

    try:
        room_list, bookings = asyncio.run(_load())
    except BookingAPIError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print()
    if not bookings:
        console.print("[yellow]No upcoming bookings this week.[/yellow]\n")
        return

    console.print(f"[bold cyan]Upcoming bookings ({len(bookings)}):[/bold cyan]")
    _print_bookings(bookings, _room_names(room_list))
    console.print()


@app.command("my-bookings")
def my_bookings(config_file: ConfigOption = None, verbose: VerboseOption = False):
    """
    List your own bookings (requires login).
    """
    config = _load_config(config_file, verbose)
    session = _load_session(config, mock=False)
    service = _build_service(config, False, session)

    async def _load():
        return await asyncio.gather(service.list_rooms(), service.my_bookings(session))

    try:
        room_list, bookings = asyncio.run(_load())
    except AuthenticationError as e:
        console.print(f"[bold red]Error:[/bold red] {e}. Run 'roomcalendar login' first.")
        raise typer.Exit(1)
    except BookingAPIError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    upcoming_list, past = split_user_bookings(bookings, pendulum.today().date())
    names = _room_names(room_list)

    console.print()
    if not upcoming_list and not past:
        console.print("[yellow]You have no bookings yet.[/yellow]\n")
        return

    if upcoming_list:
        console.print("[bold cyan]Upcoming[/bold cyan]")
        _print_bookings(upcoming_list, names)
    if past:
        console.print("\n[bold]Past[/bold]")
        _print_bookings(past, names)
    console.print()


@app.command("cancel-mine")
def cancel_mine(
    booking_id: Annotated[str, typer.Argument(help="Booking id as shown by my-bookings")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Cancel one of your own bookings (requires login).
    """
    config = _load_config(config_file, verbose)
    session = _load_session(config, mock=False)
    service = _build_service(config, False, session)

    try:
        bookings = asyncio.run(service.my_bookings(session))
        booking = next((b for b in bookings if b.key == booking_id or str(b.id) == booking_id), None)
        if booking is None:
            console.print(f"[bold red]Error:[/bold red] You have no booking #{booking_id}")
            raise typer.Exit(1)

        if not yes and not typer.confirm(f"Cancel {booking.format_display()}?"):
            raise typer.Exit(0)

        asyncio.run(service.cancel_booking(booking, session))
    except AuthenticationError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    except BookingAPIError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print("\n[green]✓ Booking cancelled.[/green]\n")


@app.command()
def login(
    identifier: Annotated[str, typer.Argument(help="Username or email")],
    password: Annotated[str, typer.Option(prompt=True, hide_input=True)],
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Log in and remember the session.
    """
    config = _load_config(config_file, verbose)
    authenticator = _build_authenticator(config)

    try:
        session = authenticator.login(identifier, password)
    except AuthenticationError as e:
        console.print(f"\n[bold red]✗ Login failed:[/bold red] {e}\n")
        raise typer.Exit(1)

    authenticator.save_session(session)
    console.print(f"\n[green]✓ Logged in as {session.user.username}[/green] [dim]({authenticator.storage_backend})[/dim]\n")


@app.command()
def register(
    username: Annotated[str, typer.Argument(help="Username")],
    email: Annotated[str, typer.Argument(help="Email address")],
    password: Annotated[str, typer.Option(prompt=True, hide_input=True, confirmation_prompt=True)],
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Create an account and log in.
    """
    config = _load_config(config_file, verbose)
    authenticator = _build_authenticator(config)

    try:
        session = authenticator.register(username, email, password)
    except AuthenticationError as e:
        console.print(f"\n[bold red]✗ Registration failed:[/bold red] {e}\n")
        raise typer.Exit(1)

    authenticator.save_session(session)
    console.print(f"\n[green]✓ Registered and logged in as {session.user.username}[/green]\n")


@app.command()
def logout(config_file: ConfigOption = None, verbose: VerboseOption = False):
    """
    Forget the stored session.
    """
    config = _load_config(config_file, verbose)
    _build_authenticator(config).clear_session()
    console.print("\n[green]✓ Logged out.[/green]\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]roomcalendar[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
