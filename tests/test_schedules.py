from datetime import date, datetime

from sentinel.manager import PreferencesManager, ScheduleManager, VerificationStore
from sentinel.schema import ActivityType, ScheduleBlock, VerificationLog


def make_schedule():
    return [
        ScheduleBlock(id="a", start="06:00", end="07:00", activity="Morning Workout", type=ActivityType.WORKOUT),
        ScheduleBlock(id="b", start="09:00", end="12:00", activity="Deep Study", type=ActivityType.DEEP_STUDY),
    ]


def test_schedule_manager_persistence(data_dir):
    manager = ScheduleManager()
    assert manager.load_schedule("alice") is None

    assert manager.save_schedule("alice", make_schedule())

    # Reload through a fresh manager
    loaded = ScheduleManager().load_schedule("alice")
    assert [b.id for b in loaded] == ["a", "b"]
    assert loaded[1].type is ActivityType.DEEP_STUDY
    assert (data_dir / "schedules" / "alice.json").exists()


def test_save_replaces_wholesale(data_dir):
    manager = ScheduleManager()
    manager.save_schedule("alice", make_schedule())
    manager.save_schedule("alice", [ScheduleBlock(id="z", start="20:00", end="21:00", activity="Read")])

    loaded = manager.load_schedule("alice")
    assert [b.id for b in loaded] == ["z"]


def test_schedule_manager_delete(data_dir):
    manager = ScheduleManager()
    manager.save_schedule("alice", make_schedule())
    assert manager.delete_schedule("alice")
    assert manager.load_schedule("alice") is None


def test_corrupt_schedule_file_reads_as_missing(data_dir):
    manager = ScheduleManager()
    manager.schedules_dir.mkdir(parents=True)
    manager.schedule_file("alice").write_text("{not json")
    assert manager.load_schedule("alice") is None


def test_preferences_default_then_saved(data_dir):
    pm = PreferencesManager()
    assert pm.get("alice") is None

    prefs = pm.get_or_default("alice")
    assert prefs.reminder_minutes_before == 5
    assert prefs.email_reminders_enabled and prefs.push_notifications_enabled

    prefs.reminder_minutes_before = 15
    prefs.email_reminders_enabled = False
    pm.save(prefs)

    stored = PreferencesManager().get("alice")
    assert stored.reminder_minutes_before == 15
    assert stored.email_reminders_enabled is False


def test_verification_store_filters_by_user_and_date(data_dir):
    store = VerificationStore()
    store.append(VerificationLog(user_id="alice", block_id="a", task_verified=True, focus_score=8,
                                 created_at=datetime(2024, 5, 1, 7, 0)))
    store.append(VerificationLog(user_id="alice", block_id="b", task_verified=False,
                                 created_at=datetime(2024, 5, 2, 10, 0)))
    store.append(VerificationLog(user_id="bob", block_id="a", task_verified=True,
                                 created_at=datetime(2024, 5, 1, 8, 0)))

    assert len(store.for_user("alice")) == 2
    assert store.for_user("alice")[0].block_id == "b"  # newest first
    assert [log.block_id for log in store.for_date("alice", date(2024, 5, 1))] == ["a"]
    assert store.verified_dates("alice") == [date(2024, 5, 1)]
