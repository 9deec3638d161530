"""Command-line interface for gameshare.

Built with Typer for commands and Rich for output.
"""

from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .borrowing import BorrowRequestCreate, BorrowRequestManager, BorrowRequestStatus
from .clock import OffsetClock
from .config import get_config
from .db import AccountCreate, AccountDirectory, AccountRole, Catalog, GameCreate, get_db
from .errors import GameShareError
from .events import EventCreate, EventManager, EventUpdate
from .lending import LendingManager, LendingRecordFilter, LendingStatus
from .logger import configure_logging
from .notifications import LogNotifier

# Create the main app
app = typer.Typer(
    name="gameshare",
    help="Lend board games, approve borrow requests and run game nights.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
account_app = typer.Typer(help="Manage accounts.")
app.add_typer(account_app, name="account")

game_app = typer.Typer(help="Manage the game catalog.")
app.add_typer(game_app, name="game")

request_app = typer.Typer(help="Create and answer borrow requests.")
app.add_typer(request_app, name="request")

lending_app = typer.Typer(help="Track games currently lent out.")
app.add_typer(lending_app, name="lending")

event_app = typer.Typer(help="Host events and register for them.")
app.add_typer(event_app, name="event")

# Rich console for pretty output
console = Console()

ACTING_AS = typer.Option(..., "--as", help="Account ID performing the action")


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn domain errors into an error line and exit code 1."""
    try:
        yield
    except GameShareError as e:
        print_error(e.message)
        raise typer.Exit(1)


def _clock() -> OffsetClock:
    return OffsetClock(timedelta(days=get_config().time_offset_days))


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Invalid date: {value} (expected YYYY-MM-DD)")


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Invalid date/time: {value} (expected YYYY-MM-DDTHH:MM)")


def _status_style(status: str) -> str:
    styles = {
        "PENDING": "yellow",
        "APPROVED": "green",
        "DECLINED": "dim",
        "ACTIVE": "green",
        "OVERDUE": "bold red",
        "RETURN_PENDING": "yellow",
        "DISPUTED": "red",
        "CLOSED": "dim",
    }
    return f"[{styles.get(status, 'white')}]{status}[/]"


@app.callback()
def main() -> None:
    """Configure logging before any command runs."""
    configure_logging(get_config())


@app.command()
def version() -> None:
    """Show the gameshare version."""
    console.print(f"gameshare {__version__}")


# ============================================================================
# Account Commands
# ============================================================================


@account_app.command("add")
def account_add(
    name: str = typer.Argument(..., help="Display name"),
    email: str = typer.Argument(..., help="Email address"),
    owner: bool = typer.Option(False, "--owner", help="Grant the game owner role"),
) -> None:
    """Create an account."""
    directory = AccountDirectory(get_db(), clock=_clock())
    with handle_errors():
        account = directory.create_account(
            AccountCreate(
                display_name=name,
                email=email,
                role=AccountRole.GAME_OWNER if owner else AccountRole.USER,
            )
        )
    print_success(f"Created account {account.id}: {account.display_name} ({account.role.value})")


@account_app.command("show")
def account_show(account_id: int = typer.Argument(..., help="Account ID")) -> None:
    """Show an account."""
    directory = AccountDirectory(get_db())
    with handle_errors():
        account = directory.resolve_account(account_id)
    console.print(Panel(
        f"[bold]{account.display_name}[/bold]\n"
        f"Email: {account.email}\n"
        f"Role: {account.role.value}\n"
        f"Joined: {account.created_at:%Y-%m-%d}",
        title=f"Account {account.id}",
        style="cyan",
    ))


# ============================================================================
# Game Commands
# ============================================================================


@game_app.command("add")
def game_add(
    name: str = typer.Argument(..., help="Game name"),
    owner_id: int = typer.Option(..., "--owner", help="Owning account ID"),
    min_players: int = typer.Option(1, "--min", help="Minimum players"),
    max_players: int = typer.Option(4, "--max", help="Maximum players"),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Category"),
) -> None:
    """Add a game to the catalog."""
    catalog = Catalog(get_db(), clock=_clock())
    with handle_errors():
        game = catalog.create_game(
            GameCreate(
                name=name,
                owner_id=owner_id,
                min_players=min_players,
                max_players=max_players,
                category=category,
            )
        )
    print_success(f"Added game {game.id}: {game.name}")


@game_app.command("list")
def game_list(
    owner_id: Optional[int] = typer.Option(None, "--owner", help="Only games of this owner"),
) -> None:
    """List catalog games."""
    games = Catalog(get_db()).list_games(owner_id=owner_id)
    if not games:
        print_info("No games found")
        return

    table = Table(title="Games", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Owner")
    table.add_column("Players", justify="center")
    table.add_column("Category")
    for game in games:
        table.add_row(
            str(game.id),
            game.name,
            str(game.owner_id),
            f"{game.min_players}-{game.max_players}",
            game.category or "-",
        )
    console.print(table)


# ============================================================================
# Borrow Request Commands
# ============================================================================


def _request_manager() -> BorrowRequestManager:
    return BorrowRequestManager(get_db(), clock=_clock(), notifier=LogNotifier())


@request_app.command("create")
def request_create(
    game_id: int = typer.Argument(..., help="Game to borrow"),
    start: str = typer.Argument(..., help="Start date (YYYY-MM-DD)"),
    end: str = typer.Argument(..., help="End date (YYYY-MM-DD)"),
    acting_as: int = ACTING_AS,
) -> None:
    """Ask to borrow a game."""
    data = BorrowRequestCreate(
        requester_id=acting_as,
        game_id=game_id,
        start_date=_parse_date(start),
        end_date=_parse_date(end),
    )
    with handle_errors():
        request = _request_manager().create_request(data)
    print_success(f"Borrow request {request.id} created ({request.status.value})")


@request_app.command("approve")
def request_approve(
    request_id: int = typer.Argument(..., help="Borrow request ID"),
    acting_as: int = ACTING_AS,
) -> None:
    """Approve a pending request and open its lending record."""
    with handle_errors():
        request = _request_manager().approve(request_id, acting_as)
    print_success(f"Request {request.id} approved; lending record {request.lending_record_id} opened")


@request_app.command("decline")
def request_decline(
    request_id: int = typer.Argument(..., help="Borrow request ID"),
    acting_as: int = ACTING_AS,
) -> None:
    """Decline a pending request."""
    with handle_errors():
        request = _request_manager().decline(request_id, acting_as)
    print_success(f"Request {request.id} declined")


@request_app.command("delete")
def request_delete(
    request_id: int = typer.Argument(..., help="Borrow request ID"),
    acting_as: int = ACTING_AS,
) -> None:
    """Withdraw your own pending request."""
    with handle_errors():
        _request_manager().delete(request_id, acting_as)
    print_success(f"Request {request_id} deleted")


@request_app.command("list")
def request_list(
    status: Optional[BorrowRequestStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    requester_id: Optional[int] = typer.Option(None, "--requester", help="Only this requester"),
    pending_for: Optional[int] = typer.Option(None, "--pending-for", help="Pending requests for this owner"),
) -> None:
    """List borrow requests."""
    manager = _request_manager()
    if pending_for is not None:
        requests = manager.find_pending_for_owner(pending_for)
    elif requester_id is not None:
        requests = manager.find_by_requester(requester_id)
    elif status is not None:
        requests = manager.find_by_status(status)
    else:
        requests = manager.list_requests()

    if not requests:
        print_info("No borrow requests found")
        return

    table = Table(title="Borrow Requests", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Game")
    table.add_column("Requester")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Status")
    for r in requests:
        table.add_row(
            str(r.id),
            str(r.game_id),
            str(r.requester_id),
            r.start_date.isoformat(),
            r.end_date.isoformat(),
            _status_style(r.status.value),
        )
    console.print(table)


# ============================================================================
# Lending Commands
# ============================================================================


def _lending_manager() -> LendingManager:
    config = get_config()
    return LendingManager(
        get_db(),
        clock=_clock(),
        notifier=LogNotifier(),
        page_size=config.page_size,
        max_page_size=config.max_page_size,
    )


@lending_app.command("list")
def lending_list(
    status: Optional[LendingStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    owner_id: Optional[int] = typer.Option(None, "--owner", help="Only this owner's records"),
    borrower_id: Optional[int] = typer.Option(None, "--borrower", help="Only this borrower's records"),
    game_id: Optional[int] = typer.Option(None, "--game", help="Only this game"),
    from_date: Optional[str] = typer.Option(None, "--from", help="Start date on or after (YYYY-MM-DD)"),
    to_date: Optional[str] = typer.Option(None, "--to", help="Start date on or before (YYYY-MM-DD)"),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
    page_size: Optional[int] = typer.Option(None, "--page-size", help="Records per page"),
) -> None:
    """List lending records."""
    filters = LendingRecordFilter(
        status=status,
        owner_id=owner_id,
        borrower_id=borrower_id,
        game_id=game_id,
        from_date=_parse_date(from_date) if from_date else None,
        to_date=_parse_date(to_date) if to_date else None,
    )
    with handle_errors():
        result = _lending_manager().filter_records(filters, page=page, page_size=page_size)

    if not result.items:
        print_info("No lending records found")
        return

    table = Table(
        title=f"Lending Records (page {result.current_page}/{result.total_pages})",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("ID", style="dim")
    table.add_column("Game")
    table.add_column("Owner")
    table.add_column("Borrower")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Status")
    for record in result.items:
        status_str = _status_style(record.status.value)
        if record.is_overdue:
            status_str = f"[bold red]OVERDUE ({record.days_overdue}d)[/bold red]"
        table.add_row(
            str(record.id),
            str(record.game_id),
            str(record.owner_id),
            str(record.borrower_id),
            record.start_date.isoformat(),
            record.end_date.isoformat(),
            status_str,
        )
    console.print(table)
    print_info(f"{result.total_items} record(s) total")


@lending_app.command("overdue")
def lending_overdue() -> None:
    """Show overdue lending records."""
    report = _lending_manager().get_overdue_report()

    if not report.records:
        print_success("No overdue records!")
        return

    console.print(Panel(
        f"[bold red]Overdue Records: {report.total_overdue}[/bold red]\n"
        f"Oldest: {report.oldest_overdue_days} days overdue",
        style="red",
    ))

    table = Table(show_header=True, header_style="bold red")
    table.add_column("ID", style="dim")
    table.add_column("Game")
    table.add_column("Borrower")
    table.add_column("Due Date")
    table.add_column("Days Overdue", justify="right")
    for r in report.records:
        table.add_row(
            str(r.id),
            str(r.game_id),
            str(r.borrower_id),
            r.end_date.isoformat(),
            f"[bold red]{r.days_overdue}[/bold red]",
        )
    console.print(table)


@lending_app.command("return")
def lending_return(
    record_id: int = typer.Argument(..., help="Lending record ID"),
    acting_as: int = ACTING_AS,
) -> None:
    """Mark a borrowed game as handed back."""
    with handle_errors():
        record = _lending_manager().mark_returned(record_id, acting_as)
    print_success(f"Record {record.id} is now {record.status.value}")


@lending_app.command("dispute")
def lending_dispute(
    record_id: int = typer.Argument(..., help="Lending record ID"),
    reason: str = typer.Argument(..., help="What went wrong"),
    acting_as: int = ACTING_AS,
) -> None:
    """Raise a dispute about a loan."""
    with handle_errors():
        record = _lending_manager().dispute(record_id, acting_as, reason)
    print_success(f"Record {record.id} is now {record.status.value}")


@lending_app.command("close")
def lending_close(
    record_id: int = typer.Argument(..., help="Lending record ID"),
    acting_as: int = ACTING_AS,
    damaged: bool = typer.Option(False, "--damaged", help="The game came back damaged"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Damage notes"),
    severity: int = typer.Option(0, "--severity", help="Damage severity 0-3"),
    reason: Optional[str] = typer.Option(None, "--reason", "-r", help="Closing reason"),
) -> None:
    """Confirm a return and close the record."""
    with handle_errors():
        record = _lending_manager().close(
            record_id,
            acting_as,
            damaged=damaged,
            damage_notes=notes,
            damage_severity=severity,
            reason=reason,
        )
    print_success(f"Record {record.id} closed")
    if record.damaged:
        print_info(f"Damage severity {record.damage_severity}: {record.damage_notes or '-'}")


@lending_app.command("extend")
def lending_extend(
    record_id: int = typer.Argument(..., help="Lending record ID"),
    new_end: str = typer.Argument(..., help="New end date (YYYY-MM-DD)"),
    acting_as: int = ACTING_AS,
) -> None:
    """Move the end date of an open record."""
    with handle_errors():
        record = _lending_manager().extend(record_id, acting_as, _parse_date(new_end))
    print_success(f"Record {record.id} now ends {record.end_date.isoformat()}")


# ============================================================================
# Event Commands
# ============================================================================


def _event_manager() -> EventManager:
    return EventManager(get_db(), clock=_clock(), notifier=LogNotifier())


@event_app.command("create")
def event_create(
    title: str = typer.Argument(..., help="Event title"),
    when: str = typer.Argument(..., help="Date and time (YYYY-MM-DDTHH:MM)"),
    max_participants: int = typer.Option(..., "--max", help="Participant limit"),
    acting_as: int = ACTING_AS,
    location: Optional[str] = typer.Option(None, "--location", "-l", help="Where"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Description"),
    game_id: Optional[int] = typer.Option(None, "--game", help="Featured game ID"),
) -> None:
    """Host a new event."""
    data = EventCreate(
        title=title,
        date_time=_parse_datetime(when),
        location=location,
        description=description,
        max_participants=max_participants,
        featured_game_id=game_id,
    )
    with handle_errors():
        event = _event_manager().create_event(data, acting_as)
    print_success(f"Event {event.id} created: {event.title}")


@event_app.command("list")
def event_list(
    host_id: Optional[int] = typer.Option(None, "--host", help="Only this host's events"),
    game_id: Optional[int] = typer.Option(None, "--game", help="Only events featuring this game"),
    location: Optional[str] = typer.Option(None, "--location", "-l", help="Location contains"),
    on: Optional[str] = typer.Option(None, "--on", help="Only events on this date (YYYY-MM-DD)"),
    upcoming: bool = typer.Option(False, "--upcoming", "-u", help="Only future events"),
) -> None:
    """List events."""
    manager = _event_manager()
    if host_id is not None:
        events = manager.find_events_by_host(host_id)
    elif game_id is not None:
        events = manager.find_events_by_game(game_id)
    elif location:
        events = manager.find_events_by_location(location)
    elif on:
        events = manager.find_events_on_date(_parse_date(on))
    else:
        events = manager.list_events(upcoming_only=upcoming)

    if not events:
        print_info("No events found")
        return

    table = Table(title="Events", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan", max_width=30)
    table.add_column("When")
    table.add_column("Where")
    table.add_column("Places", justify="center")
    for event in events:
        places = f"{event.current_participants}/{event.max_participants}"
        table.add_row(
            str(event.id),
            event.title,
            f"{event.date_time:%Y-%m-%d %H:%M}",
            event.location or "-",
            f"[red]{places}[/red]" if event.is_full else places,
        )
    console.print(table)


@event_app.command("register")
def event_register(
    event_id: int = typer.Argument(..., help="Event ID"),
    acting_as: int = ACTING_AS,
) -> None:
    """Register for an event."""
    with handle_errors():
        registration = _event_manager().register(acting_as, event_id)
    print_success(f"Registered for event {event_id} (registration {registration.id})")


@event_app.command("unregister")
def event_unregister(
    registration_id: int = typer.Argument(..., help="Registration ID"),
    acting_as: int = ACTING_AS,
) -> None:
    """Give up your place at an event."""
    with handle_errors():
        _event_manager().unregister(registration_id, acting_as)
    print_success(f"Registration {registration_id} removed")


@event_app.command("update")
def event_update(
    event_id: int = typer.Argument(..., help="Event ID"),
    acting_as: int = ACTING_AS,
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    when: Optional[str] = typer.Option(None, "--when", help="New date and time"),
    location: Optional[str] = typer.Option(None, "--location", "-l", help="New location"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="New description"),
    max_participants: Optional[int] = typer.Option(None, "--max", help="New participant limit"),
) -> None:
    """Update an event you host."""
    fields = {
        "title": title,
        "date_time": _parse_datetime(when) if when else None,
        "location": location,
        "description": description,
        "max_participants": max_participants,
    }
    data = EventUpdate(**{k: v for k, v in fields.items() if v is not None})
    with handle_errors():
        event = _event_manager().update_event(event_id, data, acting_as)
    print_success(f"Event {event.id} updated ({event.current_participants}/{event.max_participants})")


if __name__ == "__main__":
    app()
