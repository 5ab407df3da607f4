"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import List, NoReturn, Optional, Annotated

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.json_store import JsonStore
from ..config import AppConfig, load_config
from ..domain.exceptions import SchedulingError
from ..domain.matching import DedupPolicy
from ..domain.models import Person, TimeRange
from ..domain.slot_grid import SlotGridGenerator
from ..domain.time_labels import format_long_date, format_time_range, parse_utc, to_local
from ..services.scheduling import SchedulingService

app = typer.Typer(
    name="interviewslots",
    help="Match declared availability and book interview slots",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
StoreOption = Annotated[
    Optional[Path],
    typer.Option("--store", "-s", help="Path to the JSON store. Overrides the config file."),
]
OffsetOption = Annotated[
    int,
    typer.Option("--offset", "-o", help="Minutes your clock is ahead of UTC (EST in summer: -240)."),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]


def _configure_logging(level: str, verbose: bool) -> None:
    """Route log records through rich, on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _open_service(
    config_file: Optional[Path],
    store: Optional[Path],
    verbose: bool,
) -> tuple[AppConfig, SchedulingService]:
    """Load configuration, open the store and wire up the scheduling service."""
    config = load_config(config_file)
    _configure_logging(config.log_level, verbose)

    json_store = JsonStore(store or config.store_path)
    service = SchedulingService(
        availability=json_store.availability,
        commitments=json_store.commitments,
        people=json_store.people,
        grid=SlotGridGenerator(config.grid.to_working_window()),
        run_detector=config.build_run_detector(),
    )
    return config, service


def _parse_instant(value: Optional[str], option: str) -> DateTime:
    """Parse an ISO 8601 option value, defaulting to now."""
    if value is None:
        return pendulum.now("UTC")
    try:
        return parse_utc(value)
    except ValueError as e:
        raise typer.BadParameter(f"Could not parse {option}: {e}")


def _fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


@app.command()
def candidates(
    requester: Annotated[str, typer.Argument(help="Id of the person looking for an interview.")],
    offset: OffsetOption = 0,
    position: Annotated[Optional[str], typer.Option("--position", "-p", help="Only match people qualified for this position.")] = None,
    days: Annotated[Optional[int], typer.Option("--days", "-d", help="Days to search, starting now.")] = None,
    by_owner: Annotated[bool, typer.Option("--by-owner", help="List one row per free person instead of one per start time.")] = False,
    now: Annotated[Optional[str], typer.Option("--now", help="Search start (ISO 8601). Defaults to the current time.")] = None,
    config_file: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = False,
):
    """
    List bookable interview start times, grouped by day.

    Examples:

        interviewslots candidates bob --offset -240

        interviewslots candidates bob --position SWE --days 7 --by-owner
    """
    start = _parse_instant(now, "--now")
    try:
        config, service = _open_service(config_file, store, verbose)
        if by_owner:
            dedupe = DedupPolicy.BY_INSTANT_AND_OWNER
        else:
            dedupe = config.dedupe
        days_of_slots = service.search(
            requester,
            offset,
            now=start,
            position=position,
            days=days if days is not None else config.search_days,
            dedupe=dedupe,
        )
    except (SchedulingError, ValueError, FileNotFoundError) as e:
        _fail(e)

    if not days_of_slots:
        console.print(
            "[yellow]No interview slots found.[/yellow]\n"
            "Try again later or search more days."
        )
        return

    total = sum(len(day) for day in days_of_slots)
    console.print(f"[bold green]{total} interview slot(s) found:[/bold green]\n")

    for day in days_of_slots:
        table = Table(title=day[0].date_label, show_header=True, header_style="bold cyan")
        table.add_column("Time", style="bold yellow")
        table.add_column("UTC start", style="dim")
        if by_owner:
            table.add_column("Interviewer")
        for slot in day:
            row = [slot.time_label, slot.utc_encoding]
            if by_owner:
                row.append(slot.owner_id or "")
            table.add_row(*row)
        console.print(table)


@app.command()
def grid(
    person: Annotated[str, typer.Argument(help="Id of the person whose grid is shown.")],
    offset: OffsetOption = 0,
    start: Annotated[Optional[str], typer.Option("--start", help="Any instant on the first day (ISO 8601).")] = None,
    days: Annotated[Optional[int], typer.Option("--days", "-d", help="Number of days to show.")] = None,
    config_file: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = False,
):
    """
    Show a person's availability grid, marking free and booked cells.
    """
    first_day = _parse_instant(start, "--start")
    try:
        config, service = _open_service(config_file, store, verbose)
        week = service.availability_grid(
            person, first_day, offset, days if days is not None else config.grid_days
        )
    except (SchedulingError, ValueError, FileNotFoundError) as e:
        _fail(e)

    table = Table(title=f"Availability of {person}", show_header=True, header_style="bold cyan")
    table.add_column("Time", style="bold")
    for day in week:
        table.add_column(day[0].date_label, justify="center")

    for row_index, first in enumerate(week[0]):
        cells = []
        for day in week:
            slot = day[row_index]
            if slot.scheduled:
                cells.append("[red]booked[/red]")
            elif slot.selected:
                cells.append("[green]free[/green]")
            else:
                cells.append("[dim]-[/dim]")
        table.add_row(first.time_label, *cells)

    console.print(table)


@app.command("set-availability")
def set_availability(
    person: Annotated[str, typer.Argument(help="Id of the person declaring availability.")],
    window_start: Annotated[str, typer.Option("--from", help="Start of the replaced range (ISO 8601).")],
    window_end: Annotated[str, typer.Option("--to", help="End of the replaced range (ISO 8601).")],
    slots: Annotated[Optional[List[str]], typer.Argument(help="UTC start of each free granule (ISO 8601).")] = None,
    config_file: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = False,
):
    """
    Replace a person's availability between --from and --to with the given granules.
    """
    try:
        window = TimeRange(
            start=_parse_instant(window_start, "--from"),
            end=_parse_instant(window_end, "--to"),
        )
        starts = [_parse_instant(slot, "slot") for slot in slots or []]
        _, service = _open_service(config_file, store, verbose)
        stored = service.replace_availability(person, window, starts)
    except (SchedulingError, ValueError, FileNotFoundError) as e:
        _fail(e)

    booked = sum(1 for granule in stored if granule.scheduled)
    console.print(f"[green]Stored {len(stored)} granule(s) for {person}[/green] ({booked} already booked)")


@app.command()
def interviewers(
    requester: Annotated[str, typer.Argument(help="Id of the person looking for an interview.")],
    start: Annotated[str, typer.Argument(help="UTC start of the interview (ISO 8601).")],
    position: Annotated[Optional[str], typer.Option("--position", "-p", help="Only people qualified for this position.")] = None,
    config_file: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = False,
):
    """
    List the people free to interview at a given start time.
    """
    instant = _parse_instant(start, "start")
    try:
        _, service = _open_service(config_file, store, verbose)
        people = service.available_interviewers(requester, instant, position)
    except (SchedulingError, ValueError, FileNotFoundError) as e:
        _fail(e)

    if not people:
        console.print("[yellow]Nobody is free at that time.[/yellow]")
        return

    table = Table(title="Possible interviewers", show_header=True, header_style="bold cyan")
    table.add_column("Company", style="bold yellow")
    table.add_column("Job")
    for person in people:
        table.add_row(person.company, person.job)
    console.print(table)


@app.command()
def book(
    requester: Annotated[str, typer.Argument(help="Id of the interviewee.")],
    start: Annotated[str, typer.Argument(help="UTC start of the interview (ISO 8601).")],
    position: Annotated[str, typer.Option("--position", "-p", help="Position being interviewed for.")] = "",
    offset: OffsetOption = 0,
    config_file: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = False,
):
    """
    Book an interview at a start time returned by 'candidates'.
    """
    instant = _parse_instant(start, "start")
    try:
        _, service = _open_service(config_file, store, verbose)
        commitment = service.book(requester, instant, position)
    except (SchedulingError, ValueError, FileNotFoundError) as e:
        _fail(e)

    local = to_local(commitment.when.start, offset)
    console.print(
        f"[bold green]Booked:[/bold green] {format_long_date(local)} | "
        f"{format_time_range(commitment.when.start, commitment.when.duration_minutes(), offset)}"
        f" with {commitment.interviewer_id}"
    )


@app.command()
def interviews(
    person: Annotated[str, typer.Argument(help="Id of the person.")],
    offset: OffsetOption = 0,
    config_file: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = False,
):
    """
    List the interviews a person takes part in.
    """
    try:
        _, service = _open_service(config_file, store, verbose)
        commitments = service.commitments_for(person)
        labels = [
            (
                format_long_date(to_local(c.when.start, offset)),
                format_time_range(c.when.start, c.when.duration_minutes(), offset),
            )
            for c in commitments
        ]
    except (SchedulingError, ValueError, FileNotFoundError) as e:
        _fail(e)

    if not commitments:
        console.print(f"[yellow]{person} has no interviews.[/yellow]")
        return

    table = Table(title=f"Interviews of {person}", show_header=True, header_style="bold cyan")
    table.add_column("Date", style="bold yellow", no_wrap=True)
    table.add_column("Time", no_wrap=True)
    table.add_column("Interviewer")
    table.add_column("Interviewee")
    table.add_column("Shadow")
    table.add_column("Position", style="dim")
    for commitment, (date_label, time_label) in zip(commitments, labels):
        table.add_row(
            date_label,
            time_label,
            commitment.interviewer_id,
            commitment.interviewee_id,
            commitment.shadow_id,
            commitment.position,
        )
    console.print(table)


@app.command("shadow-interviews")
def shadow_interviews(
    person: Annotated[str, typer.Argument(help="Id of the person who wants to shadow.")],
    offset: OffsetOption = 0,
    position: Annotated[Optional[str], typer.Option("--position", "-p", help="Only interviews for this position.")] = None,
    days: Annotated[Optional[int], typer.Option("--days", "-d", help="Days to search, starting now.")] = None,
    now: Annotated[Optional[str], typer.Option("--now", help="Search start (ISO 8601). Defaults to the current time.")] = None,
    config_file: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = False,
):
    """
    List booked interviews the person could join as a shadow, grouped by day.
    """
    start = _parse_instant(now, "--now")
    try:
        config, service = _open_service(config_file, store, verbose)
        days_of_interviews = service.search_shadowable(
            person,
            offset,
            now=start,
            position=position,
            days=days if days is not None else config.search_days,
        )
    except (SchedulingError, ValueError, FileNotFoundError) as e:
        _fail(e)

    if not days_of_interviews:
        console.print("[yellow]No interviews to shadow.[/yellow]")
        return

    for day in days_of_interviews:
        table = Table(
            title=format_long_date(to_local(day[0].when.start, offset)),
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("ID", style="bold")
        table.add_column("Time", style="bold yellow")
        table.add_column("Position", style="dim")
        for interview in day:
            table.add_row(
                str(interview.commitment_id),
                format_time_range(interview.when.start, interview.when.duration_minutes(), offset),
                interview.position,
            )
        console.print(table)


@app.command()
def shadow(
    person: Annotated[str, typer.Argument(help="Id of the person joining as shadow.")],
    interview_id: Annotated[int, typer.Argument(help="Id shown by 'shadow-interviews'.")],
    offset: OffsetOption = 0,
    config_file: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = False,
):
    """
    Join a booked interview as a shadow.
    """
    try:
        _, service = _open_service(config_file, store, verbose)
        interview = service.join_as_shadow(interview_id, person)
    except (SchedulingError, ValueError, FileNotFoundError) as e:
        _fail(e)

    local = to_local(interview.when.start, offset)
    console.print(
        f"[bold green]Shadowing:[/bold green] {format_long_date(local)} | "
        f"{format_time_range(interview.when.start, interview.when.duration_minutes(), offset)}"
    )


@app.command("add-person")
def add_person(
    person_id: Annotated[str, typer.Argument(help="Id of the person.")],
    name: Annotated[str, typer.Option("--name", help="Display name.")] = "",
    email: Annotated[str, typer.Option("--email", help="Email address.")] = "",
    company: Annotated[str, typer.Option("--company", help="Current employer.")] = "",
    job: Annotated[str, typer.Option("--job", help="Current job title.")] = "",
    positions: Annotated[Optional[List[str]], typer.Option("--position", "-p", help="Position the person may interview for. Repeatable.")] = None,
    ok_shadow: Annotated[bool, typer.Option("--ok-shadow", help="Accept a shadow in this person's interviews.")] = False,
    config_file: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = False,
):
    """
    Register or update a person.
    """
    try:
        _, service = _open_service(config_file, store, verbose)
        service.register_person(
            Person(
                person_id=person_id,
                name=name,
                email=email,
                company=company,
                job=job,
                qualified_positions=frozenset(positions or []),
                ok_shadow=ok_shadow,
            )
        )
    except (SchedulingError, ValueError, FileNotFoundError) as e:
        _fail(e)

    console.print(f"[green]Saved {person_id}.[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]interviewslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
