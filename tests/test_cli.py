from datetime import date, datetime

from typer.testing import CliRunner

import sentinel.cli
from sentinel.cli import app, send_summary_if_complete
from sentinel.manager import ScheduleManager, VerificationStore
from sentinel.schema import DEFAULT_SCHEDULE, VerificationLog
from sentinel.settings import settings

runner = CliRunner()


def test_import_text_saves_schedule(data_dir):
    result = runner.invoke(app, ["import", "--text", "06:00 - 07:00 Morning Workout\n09:00-12:00 Deep Study"])

    assert result.exit_code == 0, result.output
    saved = ScheduleManager().load_schedule(settings.user_id)
    assert [(b.start, b.activity) for b in saved] == [("06:00", "Morning Workout"), ("09:00", "Deep Study")]


def test_import_nothing_recognised(data_dir):
    result = runner.invoke(app, ["import", "--text", "just some words"])
    assert result.exit_code == 1
    assert "Could not find any schedule entries" in result.output
    assert ScheduleManager().load_schedule(settings.user_id) is None


def test_import_reports_all_violations(data_dir):
    result = runner.invoke(app, ["import", "--text", "09:00 - 11:00 Study\n10:00 - 12:00 Gym\n11:30 - 13:00 Read"])
    assert result.exit_code == 1
    assert "Activities 1 and 2 have overlapping times" in result.output
    assert "Activities 2 and 3 have overlapping times" in result.output
    assert ScheduleManager().load_schedule(settings.user_id) is None


def test_import_requires_one_source(data_dir):
    result = runner.invoke(app, ["import"])
    assert result.exit_code == 1


def test_import_dry_run(data_dir):
    result = runner.invoke(app, ["import", "--dry-run", "--text", "06:00 - 07:00 Gym"])
    assert result.exit_code == 0
    assert ScheduleManager().load_schedule(settings.user_id) is None


def test_stats_for_empty_day(data_dir):
    runner.invoke(app, ["reset"])
    result = runner.invoke(app, ["stats", "--date", "2024-05-01"])
    assert result.exit_code == 0, result.output
    assert "0/4" in result.output


def test_stats_rejects_bad_date(data_dir):
    result = runner.invoke(app, ["stats", "--date", "yesterday"])
    assert result.exit_code == 1


def test_day_done_banner_shown_once_without_email(data_dir, monkeypatch, capsys):
    monkeypatch.setattr(settings, "user_email", None)
    monkeypatch.setattr(sentinel.cli, "load_settings", lambda: settings)
    store = VerificationStore()
    for block in DEFAULT_SCHEDULE:
        store.append(
            VerificationLog(
                user_id=settings.user_id,
                block_id=block.id,
                task_verified=True,
                focus_score=8,
                created_at=datetime(2024, 5, 1, 20, 0),
            )
        )

    assert send_summary_if_complete(list(DEFAULT_SCHEDULE), date(2024, 5, 1)) is False
    first = capsys.readouterr().out
    assert "100% complete" in first
    assert "inbox" not in first

    send_summary_if_complete(list(DEFAULT_SCHEDULE), date(2024, 5, 1))
    assert "100% complete" not in capsys.readouterr().out
