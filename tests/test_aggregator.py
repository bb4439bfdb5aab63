from datetime import date, datetime

from sentinel.aggregator import (
    DailySummaryTracker,
    calculate_streak,
    compute_daily_stats,
    round_half_up,
)
from sentinel.schema import ScheduleBlock, VerificationLog


def schedule(count):
    return [
        ScheduleBlock(id=str(i), start=f"{8 + i:02d}:00", end=f"{8 + i:02d}:30", activity=f"Block {i}")
        for i in range(count)
    ]


def log(block_id, verified=True, score=0, when=datetime(2024, 5, 1, 12, 0)):
    return VerificationLog(block_id=block_id, task_verified=verified, focus_score=score, created_at=when)


def test_half_complete_day():
    stats = compute_daily_stats(schedule(4), {"0": log("0", score=6), "1": log("1", score=8)})
    assert stats.completed_count == 2
    assert stats.completion_rate == 50
    assert stats.avg_focus_score == 7
    assert stats.all_complete is False
    assert [t.verified for t in stats.tasks] == [True, True, False, False]


def test_empty_schedule_has_no_divide_by_zero():
    stats = compute_daily_stats([], {})
    assert stats.completion_rate == 0
    assert stats.avg_focus_score == 0
    assert stats.total_blocks == 0


def test_failed_logs_do_not_count():
    stats = compute_daily_stats(schedule(2), {"0": log("0", score=9), "1": log("1", verified=False, score=2)})
    assert stats.completed_count == 1
    assert stats.avg_focus_score == 9
    assert stats.tasks[1].focus_score == 2


def test_rounding_matches_half_up():
    stats = compute_daily_stats(schedule(3), {"0": log("0", score=7), "1": log("1", score=8)})
    assert stats.completion_rate == 67
    assert stats.avg_focus_score == 8
    assert round_half_up(2.5) == 3


def test_logs_for_unknown_blocks_are_ignored():
    stats = compute_daily_stats(schedule(2), {"0": log("0", score=5), "1": log("1", score=5), "x": log("x")})
    assert stats.all_complete is True


def test_list_of_logs_uses_latest_per_block():
    logs = [
        log("0", verified=False, score=1, when=datetime(2024, 5, 1, 8, 0)),
        log("0", verified=True, score=9, when=datetime(2024, 5, 1, 9, 0)),
    ]
    stats = compute_daily_stats(schedule(1), logs)
    assert stats.completed_count == 1
    assert stats.avg_focus_score == 9


def test_streak():
    today = date(2024, 5, 10)
    assert calculate_streak([], today) == 0
    assert calculate_streak([date(2024, 5, 10), date(2024, 5, 9), date(2024, 5, 8)], today) == 3
    assert calculate_streak([date(2024, 5, 9), date(2024, 5, 8), date(2024, 5, 6)], today) == 2
    assert calculate_streak([date(2024, 5, 7)], today) == 0


def test_summary_sent_once_per_day(tmp_path):
    tracker = DailySummaryTracker(tmp_path / "summary.json")
    day = date(2024, 5, 1)
    done = compute_daily_stats(schedule(1), {"0": log("0", score=6)})
    not_done = compute_daily_stats(schedule(2), {"0": log("0", score=6)})

    assert tracker.should_send(not_done, day) is False
    assert tracker.should_send(done, day) is True

    tracker.mark_sent(day)
    assert tracker.should_send(done, day) is False
    assert tracker.should_send(done, date(2024, 5, 2)) is True
