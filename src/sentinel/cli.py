from datetime import date, datetime
from pathlib import Path

import psutil
import typer
from rich.console import Console
from rich.table import Table

from sentinel.aggregator import DailySummaryTracker, calculate_streak, compute_daily_stats
from sentinel.errors import ExternalCallError, ParseError, ValidationError
from sentinel.mailer import EmailClient
from sentinel.manager import PreferencesManager, ScheduleManager, VerificationStore
from sentinel.parser import parse_schedule_file, parse_text_with_diagnostics
from sentinel.reminders import get_next_block
from sentinel.schema import DEFAULT_SCHEDULE, ScheduleBlock
from sentinel.settings import load_settings, settings
from sentinel.utils.banner import display_day_complete
from sentinel.utils.logging import REMINDER_LOG, setup_logging
from sentinel.utils.state import read_state
from sentinel.utils.time import format_time_until
from sentinel.validator import require_valid, validate_schedule
from sentinel.verifier import ProofVerifier, verify_block

app = typer.Typer(help="Sentinel - daily schedule accountability")
console = Console()

GENERIC_PARSE_ERROR = (
    "Could not find any schedule entries. "
    'Use one block per line, e.g. "09:00 - 12:00 Deep Study".'
)


def is_daemon_running() -> bool:
    """Checks if the reminder loop is running via state file and PID."""
    state = read_state()
    if not state or not state.get("pid"):
        return False
    return psutil.pid_exists(state["pid"])


def load_user_schedule(sm: ScheduleManager) -> list[ScheduleBlock]:
    schedule = sm.load_schedule(settings.user_id)
    if schedule is None:
        console.print("[dim]No saved schedule yet, showing the default one.[/dim]")
        return list(DEFAULT_SCHEDULE)
    return schedule


def print_errors(errors: list[str]) -> None:
    for error in errors:
        console.print(f"[red]Error:[/red] {error}")


def render_schedule(schedule: list[ScheduleBlock], title: str, logs: dict | None = None) -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right", style="cyan", no_wrap=True)
    table.add_column("Start", style="magenta")
    table.add_column("End", style="magenta")
    table.add_column("Activity", style="white")
    table.add_column("Type", style="yellow")
    if logs is not None:
        table.add_column("Status", style="green")
        table.add_column("Focus", style="blue", justify="right")

    for block in schedule:
        row = [block.id, block.start, block.end, block.activity, block.type.value]
        if logs is not None:
            log = logs.get(block.id)
            if log is None:
                row += ["pending", "-"]
            elif log.verified:
                row += ["[green]verified[/green]", f"{log.focus_score}/10"]
            else:
                row += ["[red]failed[/red]", f"{log.focus_score}/10"]
        table.add_row(*row)
    return table


@app.command(name="import")
def import_schedule(
    file: Path | None = typer.Argument(
        None, exists=True, dir_okay=False, help="Schedule file (.xlsx, .pdf, .txt, .csv)"
    ),
    text: str | None = typer.Option(
        None, "--text", "-t", help="Pasted schedule, one '09:00 - 12:00 Study' per line"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Parse and validate without saving"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Parse a schedule from a file or pasted text, validate it and save it."""
    setup_logging(verbose=verbose)

    if (file is None) == (text is None):
        console.print("[red]Error:[/red] Provide either a FILE or --text.")
        raise typer.Exit(1)

    try:
        if file is not None:
            schedule = parse_schedule_file(file)
        else:
            schedule, skipped = parse_text_with_diagnostics(text)
            for line_number, line in skipped:
                console.print(f"[dim]Skipped line {line_number}: {line.strip()}[/dim]")
    except ParseError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if not schedule:
        console.print(f"[red]Error:[/red] {GENERIC_PARSE_ERROR}")
        raise typer.Exit(1)

    console.print(render_schedule(schedule, "Parsed Schedule"))
    try:
        require_valid(schedule)
    except ValidationError as e:
        print_errors(e.errors)
        raise typer.Exit(1) from None

    if dry_run:
        console.print("[yellow]Dry run: schedule not saved.[/yellow]")
        return

    sm = ScheduleManager()
    if not sm.save_schedule(settings.user_id, schedule):
        console.print("[red]Error:[/red] Failed to save schedule. Please try again.")
        raise typer.Exit(1)
    console.print(f"[green]Saved {len(schedule)} activities.[/green]")


@app.command()
def show(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Show today's schedule and which blocks are verified."""
    setup_logging(verbose=verbose)
    schedule = load_user_schedule(ScheduleManager())
    logs = {log.block_id: log for log in reversed(VerificationStore().for_date(settings.user_id, date.today()))}
    console.print(render_schedule(schedule, f"Schedule for {date.today().isoformat()}", logs))


@app.command()
def validate(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Validate the saved schedule and list every problem found."""
    setup_logging(verbose=verbose)
    schedule = ScheduleManager().load_schedule(settings.user_id)
    if schedule is None:
        console.print("[yellow]No saved schedule found.[/yellow]")
        raise typer.Exit(1)

    result = validate_schedule(schedule)
    if result.valid:
        console.print("[green]Schedule is valid.[/green]")
        return
    print_errors(result.errors)
    raise typer.Exit(1)


@app.command(name="next")
def next_block(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Show the next activity and how long until it starts."""
    setup_logging(verbose=verbose)
    schedule = load_user_schedule(ScheduleManager())
    block, minutes = get_next_block(schedule, datetime.now())
    if block is None:
        console.print("[yellow]Your schedule is empty.[/yellow]")
        return
    console.print(
        f"Next: [bold]{block.activity}[/bold] at [magenta]{block.start}[/magenta] "
        f"(in {format_time_until(minutes)})"
    )


@app.command()
def verify(
    block_id: str = typer.Argument(..., help="ID of the schedule block"),
    proof: Path = typer.Argument(..., exists=True, dir_okay=False, help="Photo or video proof"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Submit proof for a block and record the AI verdict."""
    setup_logging(verbose=verbose)
    schedule = load_user_schedule(ScheduleManager())
    block = next((b for b in schedule if b.id == block_id), None)
    if block is None:
        console.print(f"[red]Error:[/red] No activity with id {block_id}.")
        raise typer.Exit(1)

    console.print(f"Verifying [bold]{block.activity}[/bold]...")
    log = verify_block(ProofVerifier(), block, proof, settings.user_id)
    try:
        VerificationStore().append(log)
    except OSError as e:
        console.print(f"[red]Error:[/red] Failed to save verification: {e}")
        raise typer.Exit(1) from None

    verdict = "[bold green]VERIFIED[/bold green]" if log.verified else "[bold red]NOT VERIFIED[/bold red]"
    console.print(f"{verdict}  focus {log.focus_score}/10")
    if log.distractions_detected:
        console.print(f"Distractions: [magenta]{', '.join(log.distractions_detected)}[/magenta]")
    console.print(f"[italic]{log.ai_critique}[/italic]")

    send_summary_if_complete(schedule, date.today())


def send_summary_if_complete(schedule: list[ScheduleBlock], day: date) -> bool:
    """Mails the daily analysis once, the first time every block is verified."""
    logs = VerificationStore().for_date(settings.user_id, day)
    stats = compute_daily_stats(schedule, logs)
    tracker = DailySummaryTracker(settings.summary_file)

    if not tracker.should_send(stats, day):
        return False

    current_settings = load_settings()
    if not current_settings.user_email:
        # Nothing to mail, so the banner alone settles the day.
        tracker.mark_sent(day)
        display_day_complete(console, stats.completion_rate, stats.avg_focus_score)
        return False

    sent = False
    try:
        sent = EmailClient().send_daily_analysis(
            current_settings.user_email,
            current_settings.user_name,
            stats,
            day.strftime("%A, %B %d, %Y"),
        )
    except ExternalCallError as e:
        console.print(f"[yellow]Could not send the daily report:[/yellow] {e}")

    if sent:
        tracker.mark_sent(day)
    display_day_complete(console, stats.completion_rate, stats.avg_focus_score, emailed=sent)
    return sent


@app.command()
def stats(
    day: str | None = typer.Option(None, "--date", "-d", help="Day to summarise (YYYY-MM-DD)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Show completion and focus statistics for a day."""
    setup_logging(verbose=verbose)
    try:
        target = date.fromisoformat(day) if day else date.today()
    except ValueError:
        console.print(f"[red]Error:[/red] Invalid date: {day}")
        raise typer.Exit(1) from None

    schedule = load_user_schedule(ScheduleManager())
    logs = VerificationStore().for_date(settings.user_id, target)
    summary = compute_daily_stats(schedule, logs)

    table = Table(title=f"Daily Summary {target.isoformat()}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Completed", f"{summary.completed_count}/{summary.total_blocks}")
    table.add_row("Completion Rate", f"{summary.completion_rate}%")
    table.add_row("Average Focus", f"{summary.avg_focus_score}/10")
    console.print(table)

    if target == date.today():
        send_summary_if_complete(schedule, target)


@app.command()
def streak(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Show how many days in a row you've verified at least one block."""
    setup_logging(verbose=verbose)
    days = VerificationStore().verified_dates(settings.user_id)
    current = calculate_streak(days)
    if current:
        console.print(f"[bold yellow]{current} day streak[/bold yellow]")
    else:
        console.print("No active streak. Verify a block today to start one.")


@app.command()
def config(
    lead_mins: int | None = typer.Option(
        None, "--lead", "-l", min=0, help="Minutes before an activity to remind you"
    ),
    email: bool | None = typer.Option(None, "--email/--no-email", help="Email reminders"),
    push: bool | None = typer.Option(None, "--push/--no-push", help="Desktop notifications"),
    address: str | None = typer.Option(None, "--address", "-a", help="Email address for reminders"),
    name: str | None = typer.Option(None, "--name", "-n", help="Name used in emails"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure reminder preferences."""
    setup_logging(verbose=verbose)
    current_settings = load_settings()
    pm = PreferencesManager()
    prefs = pm.get_or_default(current_settings.user_id)

    if lead_mins is not None:
        prefs.reminder_minutes_before = lead_mins
    if email is not None:
        prefs.email_reminders_enabled = email
    if push is not None:
        prefs.push_notifications_enabled = push
    if address is not None:
        current_settings.user_email = address
    if name is not None:
        current_settings.user_name = name

    pm.save(prefs)
    current_settings.save()

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Lead Minutes", str(prefs.reminder_minutes_before))
    table.add_row("Email Reminders", "On" if prefs.email_reminders_enabled else "Off")
    table.add_row("Push Notifications", "On" if prefs.push_notifications_enabled else "Off")
    table.add_row("Email", current_settings.user_email or "-")
    table.add_row("Name", current_settings.user_name)
    console.print(table)
    console.print("[green]Configuration saved![/green]")
    if is_daemon_running():
        console.print("[dim]Restart `sentinel start` to apply the new lead time.[/dim]")


@app.command()
def reset(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Replace the saved schedule with the default one."""
    setup_logging(verbose=verbose)
    if not ScheduleManager().save_schedule(settings.user_id, list(DEFAULT_SCHEDULE)):
        console.print("[red]Error:[/red] Failed to save schedule. Please try again.")
        raise typer.Exit(1)
    console.print("[green]Schedule reset to the default.[/green]")


@app.command()
def status(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Show whether the reminder loop is running and what it has armed."""
    setup_logging(verbose=verbose)
    state = read_state()

    if not is_daemon_running():
        console.print("Reminder loop: [bold red]○ Stopped[/bold red]")
        console.print("\n[dim]To start it, run: [bold]sentinel start[/bold][/dim]")
        return

    console.print("Reminder loop: [bold green]● Running[/bold green]")
    console.print(f"PID: [magenta]{state['pid']}[/magenta]")
    armed = state.get("armed_reminders", [])
    if not armed:
        console.print("\nNo reminders left for today.")
        return

    table = Table(title="Armed Reminders")
    table.add_column("Fires At", style="green")
    table.add_column("Start", style="magenta")
    table.add_column("Activity", style="white")
    for reminder in armed:
        table.add_row(reminder["fire_at"][11:], reminder["start"], reminder["activity"])
    console.print(table)


@app.command()
def start(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Run the reminder loop in the foreground."""
    setup_logging(verbose=verbose, log_name=REMINDER_LOG)

    if is_daemon_running():
        console.print("[yellow]Reminder loop is already running.[/yellow]")
        return

    from sentinel.daemon import run_daemon

    try:
        run_daemon()
    except KeyboardInterrupt:
        console.print("[yellow]Reminders stopped.[/yellow]")
