import threading
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from typing import Protocol

from loguru import logger

from sentinel.schema import NotificationPreferences, ReminderTimer, ScheduleBlock
from sentinel.settings import settings
from sentinel.utils.time import MINUTES_PER_DAY, minutes_of_day


class Mailer(Protocol):
    def send_reminder(
        self, to: str, user_name: str, activity: str, start_time: str, minutes_before: int
    ) -> bool: ...


Notifier = Callable[[str, str], object]
TimerFactory = Callable[[float, Callable[[], None]], object]


def get_upcoming_blocks(
    schedule: Sequence[ScheduleBlock], now: datetime | None = None
) -> list[tuple[ScheduleBlock, int]]:
    """Blocks that haven't started yet today, with minutes until each starts."""
    current = minutes_of_day(now)
    return [
        (block, block.start_minutes - current)
        for block in schedule
        if block.start_minutes > current
    ]


def get_next_block(
    schedule: Sequence[ScheduleBlock], now: datetime | None = None
) -> tuple[ScheduleBlock | None, int]:
    """
    The next block to start and the minutes until it does.

    Once today's blocks are over this is tomorrow's first block.
    Returns (None, -1) for an empty schedule.
    """
    upcoming = get_upcoming_blocks(schedule, now)
    if upcoming:
        return upcoming[0]

    if not schedule:
        return None, -1

    first = schedule[0]
    return first, MINUTES_PER_DAY - minutes_of_day(now) + first.start_minutes


class ReminderScheduler:
    """
    Owns every armed reminder of a session, keyed by block id.

    `arm_all` and `cancel_all` are the only mutators. Re-arming always
    cancels everything first, so one block never has two live timers.
    """

    def __init__(
        self,
        notifier: Notifier,
        mailer: Mailer | None = None,
        timer_factory: TimerFactory = threading.Timer,
    ):
        self.notifier = notifier
        self.mailer = mailer
        self.timer_factory = timer_factory
        self._timers: dict[str, ReminderTimer] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._timers)

    @property
    def armed(self) -> dict[str, ReminderTimer]:
        return dict(self._timers)

    def arm_all(
        self,
        schedule: Sequence[ScheduleBlock],
        prefs: NotificationPreferences,
        now: datetime | None = None,
        user_email: str | None = None,
        user_name: str | None = None,
    ) -> int:
        """Cancels every armed reminder, then arms one per upcoming block. Returns the count."""
        self.cancel_all()

        if now is None:
            now = datetime.now()
        lead = prefs.reminder_minutes_before
        current = minutes_of_day(now)
        # Fire times are whole minutes from the top of the current minute.
        minute_start = now.replace(second=0, microsecond=0)

        upcoming = get_upcoming_blocks(schedule, now)
        logger.info(f"Scheduling reminders for {len(upcoming)} upcoming block(s)")

        with self._lock:
            for block, _ in upcoming:
                fire_in = (block.start_minutes - lead) - current
                if fire_in <= 0:
                    logger.debug(f"Lead window already passed for {block.activity}, skipping")
                    continue

                previous = self._timers.pop(block.id, None)
                if previous is not None:
                    logger.warning(f"Duplicate block id {block.id!r}, replacing its earlier reminder")
                    previous.cancel()

                fire_at = minute_start + timedelta(minutes=fire_in)
                delay = max(0.0, (fire_at - now).total_seconds())
                handle = self.timer_factory(
                    delay,
                    self._make_callback(block, prefs, user_email, user_name),
                )
                if hasattr(handle, "daemon"):
                    handle.daemon = True
                if hasattr(handle, "start"):
                    handle.start()

                self._timers[block.id] = ReminderTimer(
                    block=block, fire_in_minutes=fire_in, fire_at=fire_at, handle=handle
                )
                logger.debug(f"Reminder for {block.activity!r} in {fire_in} minute(s)")

            return len(self._timers)

    def cancel_all(self) -> None:
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            count = len(self._timers)
            self._timers.clear()
        if count:
            logger.info(f"Cleared {count} active reminder(s)")

    def _make_callback(
        self,
        block: ScheduleBlock,
        prefs: NotificationPreferences,
        user_email: str | None,
        user_name: str | None,
    ) -> Callable[[], None]:
        def fire() -> None:
            self.fire(block, prefs, user_email, user_name)
            with self._lock:
                current = self._timers.get(block.id)
                if current is not None and current.block is block:
                    del self._timers[block.id]

        return fire

    def fire(
        self,
        block: ScheduleBlock,
        prefs: NotificationPreferences,
        user_email: str | None = None,
        user_name: str | None = None,
    ) -> None:
        """Delivers one reminder. Delivery problems are logged, never raised."""
        lead = prefs.reminder_minutes_before
        logger.info(f"Reminder triggered for: {block.activity}")

        if prefs.push_notifications_enabled:
            fields = {"activity": block.activity, "minutes": lead, "start_time": block.start}
            try:
                summary = settings.notify_summary.format(**fields)
                body = settings.notify_body.format(**fields)
                self.notifier(summary, body)
            except Exception as e:
                logger.error(f"Push reminder for {block.activity} failed: {e}")

        if prefs.email_reminders_enabled and user_email and self.mailer is not None:
            try:
                self.mailer.send_reminder(
                    user_email, user_name or "User", block.activity, block.start, lead
                )
            except Exception as e:
                logger.error(f"Email reminder for {block.activity} failed: {e}")
