import time
from datetime import date, datetime

from loguru import logger
from rich.console import Console

from sentinel.errors import SentinelError
from sentinel.mailer import EmailClient
from sentinel.manager import PreferencesManager, ScheduleManager
from sentinel.reminders import ReminderScheduler
from sentinel.schema import DEFAULT_SCHEDULE, ScheduleBlock
from sentinel.settings import load_settings, settings
from sentinel.utils.notifications import notifications_available, send_notification
from sentinel.utils.state import cleanup_state, write_state
from sentinel.validator import validate_schedule

console = Console()


class ReminderSession:
    """
    Keeps one user's reminders armed for the current day.

    Re-arms from scratch whenever the stored schedule changes or the date
    rolls over. Nothing is persisted: a restart simply arms again.
    """

    def __init__(
        self,
        user_id: str,
        scheduler: ReminderScheduler,
        schedules: ScheduleManager | None = None,
        preferences: PreferencesManager | None = None,
    ):
        self.user_id = user_id
        self.scheduler = scheduler
        self.schedules = schedules or ScheduleManager()
        self.preferences = preferences or PreferencesManager()
        self._schedule_mtime: float | None = None
        self._armed_for: date | None = None

    def current_schedule(self) -> list[ScheduleBlock]:
        schedule = self.schedules.load_schedule(self.user_id)
        if schedule is None:
            logger.debug("No stored schedule, using the default one")
            return list(DEFAULT_SCHEDULE)

        result = validate_schedule(schedule)
        if not result.valid:
            for error in result.errors:
                logger.error(f"Stored schedule rejected: {error}")
            return []
        return schedule

    def needs_rearm(self, now: datetime) -> bool:
        return (
            self._armed_for != now.date()
            or self.schedules.schedule_mtime(self.user_id) != self._schedule_mtime
        )

    def arm(self, now: datetime | None = None) -> int:
        if now is None:
            now = datetime.now()
        current_settings = load_settings()
        prefs = self.preferences.get_or_default(self.user_id)
        self._schedule_mtime = self.schedules.schedule_mtime(self.user_id)
        self._armed_for = now.date()
        return self.scheduler.arm_all(
            self.current_schedule(),
            prefs,
            now=now,
            user_email=current_settings.user_email,
            user_name=current_settings.user_name,
        )

    def tick(self, now: datetime | None = None) -> bool:
        """Re-arms if needed. Returns True when it did."""
        if now is None:
            now = datetime.now()
        if not self.needs_rearm(now):
            return False
        count = self.arm(now)
        console.print(f"[cyan]Armed {count} reminder(s) for {now.date().isoformat()}[/cyan]")
        return True

    def armed_summary(self) -> list[dict]:
        return [
            {
                "block_id": block_id,
                "activity": timer.block.activity,
                "start": timer.block.start,
                "fire_at": timer.fire_at.isoformat(timespec="minutes"),
            }
            for block_id, timer in sorted(
                self.scheduler.armed.items(), key=lambda item: item[1].fire_at
            )
        ]

    def close(self) -> None:
        self.scheduler.cancel_all()


def run_daemon(poll_seconds: float = 5.0):
    """Main loop: keep today's reminders armed until interrupted."""
    if not notifications_available():
        logger.warning("notify-send not available; push reminders will only be logged.")

    scheduler = ReminderScheduler(notifier=send_notification, mailer=EmailClient())
    session = ReminderSession(settings.user_id, scheduler)

    console.print("[bold green]Sentinel reminder loop started...[/bold green]")
    console.print(f"Data directory: [cyan]{settings.data_dir}[/cyan]")
    console.print("Watching your schedule for changes. Press Ctrl+C to stop.")

    try:
        while True:
            try:
                session.tick()
                write_state(session.armed_summary())
            except (SentinelError, ValueError) as e:
                logger.error(f"Reminder loop error, will retry: {e}")
            time.sleep(poll_seconds)
    finally:
        console.print("\n[yellow]Stopping reminder loop...[/yellow]")
        session.close()
        cleanup_state()
