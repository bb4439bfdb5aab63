from datetime import datetime

import pytest

from sentinel.reminders import ReminderScheduler, get_next_block, get_upcoming_blocks
from sentinel.schema import NotificationPreferences, ScheduleBlock
from sentinel.settings import settings

NOW = datetime(2024, 5, 1, 9, 0, 30)


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.daemon = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True


class FakeMailer:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def send_reminder(self, to, user_name, activity, start_time, minutes_before):
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append((to, user_name, activity, start_time, minutes_before))
        return True


@pytest.fixture
def timers():
    return []


@pytest.fixture
def scheduler(timers):
    def factory(delay, callback):
        timer = FakeTimer(delay, callback)
        timers.append(timer)
        return timer

    notifications = []
    sched = ReminderScheduler(
        notifier=lambda summary, body: notifications.append((summary, body)),
        mailer=FakeMailer(),
        timer_factory=factory,
    )
    sched.notifications = notifications
    return sched


def prefs(lead=5, email=True, push=True):
    return NotificationPreferences(
        user_id="alice",
        reminder_minutes_before=lead,
        email_reminders_enabled=email,
        push_notifications_enabled=push,
    )


def block(id, start, end, activity="Study"):
    return ScheduleBlock(id=id, start=start, end=end, activity=activity)


def test_upcoming_excludes_started_blocks():
    schedule = [block("a", "08:00", "09:00"), block("b", "09:00", "10:00"), block("c", "11:00", "12:00")]
    upcoming = get_upcoming_blocks(schedule, NOW)
    assert [(b.id, minutes) for b, minutes in upcoming] == [("c", 120)]


def test_next_block_wraps_to_tomorrow():
    schedule = [block("a", "06:00", "07:00")]
    assert get_next_block(schedule, NOW) == (schedule[0], 15 * 60 + 6 * 60)
    assert get_next_block([], NOW) == (None, -1)


def test_block_inside_lead_window_is_not_armed(scheduler, timers):
    schedule = [block("soon", "09:03", "10:00"), block("later", "09:10", "10:00")]
    count = scheduler.arm_all(schedule, prefs(lead=5), now=NOW)

    assert count == 1
    assert list(scheduler.armed) == ["later"]
    armed = scheduler.armed["later"]
    assert armed.fire_in_minutes == 5
    assert armed.fire_at == datetime(2024, 5, 1, 9, 5)
    assert timers[0].started and timers[0].daemon
    assert timers[0].delay == pytest.approx(270.0)


def test_exact_lead_boundary_is_dropped(scheduler):
    assert scheduler.arm_all([block("a", "09:05", "10:00")], prefs(lead=5), now=NOW) == 0


def test_rearm_cancels_previous_timers(scheduler, timers):
    schedule = [block("a", "10:00", "11:00"), block("b", "12:00", "13:00")]

    fresh = scheduler.arm_all(schedule, prefs(), now=NOW)
    first_round = list(timers)
    again = scheduler.arm_all(schedule, prefs(), now=NOW)

    assert fresh == again == 2
    assert len(scheduler) == 2
    assert all(t.cancelled for t in first_round)
    assert not any(t.cancelled for t in timers[2:])


def test_cancel_all(scheduler, timers):
    scheduler.arm_all([block("a", "10:00", "11:00")], prefs(), now=NOW)
    scheduler.cancel_all()
    assert len(scheduler) == 0
    assert timers[0].cancelled


def test_fire_sends_push_and_email(scheduler, timers):
    schedule = [block("a", "10:00", "11:00", activity="Deep Study")]
    scheduler.arm_all(schedule, prefs(lead=10), now=NOW, user_email="a@example.com", user_name="Alice")

    timers[0].callback()

    assert scheduler.notifications == [
        ("Deep Study in 10 minutes!", "Get ready! Your Deep Study session starts at 10:00.")
    ]
    assert scheduler.mailer.sent == [("a@example.com", "Alice", "Deep Study", "10:00", 10)]
    assert len(scheduler) == 0


def test_fire_respects_preferences(scheduler, timers):
    scheduler.arm_all([block("a", "10:00", "11:00")], prefs(email=True, push=False), now=NOW)
    timers[0].callback()

    assert scheduler.notifications == []
    # No address known, so no email either
    assert scheduler.mailer.sent == []


def test_mail_failure_is_swallowed(scheduler):
    scheduler.mailer = FakeMailer(fail=True)
    scheduler.fire(block("a", "10:00", "11:00"), prefs(), user_email="a@example.com")
    assert len(scheduler.notifications) == 1


def test_duplicate_block_ids_never_leave_a_stray_timer(scheduler, timers):
    schedule = [block("1", "10:00", "11:00"), block("1", "12:00", "13:00")]

    count = scheduler.arm_all(schedule, prefs(), now=NOW)
    scheduler.cancel_all()

    assert count == 1
    assert len(timers) == 2
    assert all(t.cancelled for t in timers)


def test_template_with_foreign_placeholder(scheduler, monkeypatch):
    monkeypatch.setattr(settings, "notify_summary", "{activity} at {start_time}")
    monkeypatch.setattr(settings, "notify_body", "{minutes} minutes to go")
    scheduler.fire(block("a", "10:00", "11:00", activity="Gym"), prefs(lead=5), user_email="a@example.com")

    assert scheduler.notifications == [("Gym at 10:00", "5 minutes to go")]
    assert scheduler.mailer.sent == [("a@example.com", "User", "Gym", "10:00", 5)]


def test_broken_template_still_sends_email(scheduler, monkeypatch):
    monkeypatch.setattr(settings, "notify_summary", "{activity} in {room}")
    scheduler.fire(block("a", "10:00", "11:00", activity="Gym"), prefs(), user_email="a@example.com")

    assert scheduler.notifications == []
    assert len(scheduler.mailer.sent) == 1
