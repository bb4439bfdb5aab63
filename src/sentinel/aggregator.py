"""Daily completion summaries and streaks built from verification logs."""

import json
import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, timedelta
from pathlib import Path

from loguru import logger

from sentinel.schema import DailyStats, ScheduleBlock, TaskSummary, VerificationLog


def round_half_up(value: float) -> int:
    """Rounds .5 away from zero for positive values, like Math.round."""
    return math.floor(value + 0.5)


def latest_by_block(logs: Iterable[VerificationLog]) -> dict[str, VerificationLog]:
    """Keeps the most recent log per block id."""
    latest: dict[str, VerificationLog] = {}
    for log in sorted(logs, key=lambda entry: entry.created_at):
        latest[log.block_id] = log
    return latest


def compute_daily_stats(
    schedule: Sequence[ScheduleBlock],
    logs: Mapping[str, VerificationLog] | Iterable[VerificationLog],
) -> DailyStats:
    """
    Folds a day's verification logs against the schedule.

    `logs` is keyed by block id; a plain list is reduced to the latest log
    per block. A block counts as completed when its log is verified.
    `all_complete` compares counts only, not which blocks are done.
    """
    if not isinstance(logs, Mapping):
        logs = latest_by_block(logs)

    total_blocks = len(schedule)
    completed_count = 0
    focus_total = 0
    tasks: list[TaskSummary] = []

    for block in schedule:
        log = logs.get(block.id)
        verified = bool(log is not None and log.verified)
        focus_score = log.focus_score if log is not None else 0
        if verified:
            completed_count += 1
            focus_total += focus_score
        tasks.append(
            TaskSummary(
                name=block.activity,
                time=block.time_range,
                verified=verified,
                focus_score=focus_score,
            )
        )

    completion_rate = round_half_up(100 * completed_count / total_blocks) if total_blocks else 0
    avg_focus_score = round_half_up(focus_total / completed_count) if completed_count else 0

    return DailyStats(
        total_blocks=total_blocks,
        completed_count=completed_count,
        completion_rate=completion_rate,
        avg_focus_score=avg_focus_score,
        all_complete=completed_count >= total_blocks,
        tasks=tasks,
    )


def calculate_streak(verified_dates: Iterable[date], today: date | None = None) -> int:
    """
    Consecutive days with at least one verified block, ending today or
    yesterday. A gap of more than one day breaks the streak.
    """
    if today is None:
        today = date.today()

    days = sorted(set(verified_dates), reverse=True)
    if not days or days[0] not in (today, today - timedelta(days=1)):
        return 0

    streak = 1
    for newer, older in zip(days, days[1:]):
        if (newer - older).days != 1:
            break
        streak += 1
    return streak


class DailySummaryTracker:
    """Remembers which day the daily analysis was last sent, so it goes out once."""

    def __init__(self, path: Path):
        self.path = path

    def _load(self) -> str | None:
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                return json.load(f).get("last_sent")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read summary state: {e}")
            return None

    def already_sent(self, day: date) -> bool:
        return self._load() == day.isoformat()

    def should_send(self, stats: DailyStats, day: date) -> bool:
        return stats.total_blocks > 0 and stats.all_complete and not self.already_sent(day)

    def mark_sent(self, day: date) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump({"last_sent": day.isoformat()}, f, indent=4)
