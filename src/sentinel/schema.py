import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from sentinel.utils.time import to_minutes

# A label starting with AM/PM would be read back as the end time's meridiem.
_MERIDIEM_LEAD = re.compile(r"^[ap]m\b", re.IGNORECASE)


class ActivityType(str, Enum):
    """Display category of a block. Has no effect on scheduling."""

    WORKOUT = "Workout"
    CLASS = "Class"
    DEEP_STUDY = "Deep Study"
    STUDY = "Study"
    WALK = "Park Walk"
    OTHER = "Other"


class ScheduleBlock(BaseModel):
    """One scheduled activity with a start/end time-of-day."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    start: str
    end: str
    activity: str
    type: ActivityType = ActivityType.STUDY

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)

    @property
    def time_range(self) -> str:
        return f"{self.start} - {self.end}"

    def to_line(self) -> str:
        """Canonical text form, accepted back by the timetable parser."""
        if _MERIDIEM_LEAD.match(self.activity):
            return f"{self.time_range}: {self.activity}"
        return f"{self.time_range} {self.activity}"


class VerificationResult(BaseModel):
    """Outcome of an AI verification of one proof upload."""

    task_verified: bool = False
    focus_score: int = 0
    distractions_detected: list[str] = Field(default_factory=list)
    ai_critique: str = ""

    @field_validator("focus_score", mode="before")
    @classmethod
    def clamp_focus_score(cls, value: Any) -> int:
        try:
            score = round(float(value))
        except (TypeError, ValueError):
            return 0
        return max(0, min(10, score))


class VerificationLog(VerificationResult):
    """A stored verification, appended once per block per day."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str = "local"
    block_id: str
    activity_name: str = ""
    file_name: str = ""
    file_type: str = ""
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def verified(self) -> bool:
        return self.task_verified


class NotificationPreferences(BaseModel):
    user_id: str
    email_reminders_enabled: bool = True
    reminder_minutes_before: int = Field(default=5, ge=0)
    push_notifications_enabled: bool = True


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class TaskSummary(BaseModel):
    name: str
    time: str
    verified: bool
    focus_score: int


class DailyStats(BaseModel):
    total_blocks: int
    completed_count: int
    completion_rate: int
    avg_focus_score: int
    all_complete: bool
    tasks: list[TaskSummary] = Field(default_factory=list)


@dataclass
class ReminderTimer:
    """An armed reminder for one block; `handle` is whatever cancels it."""

    block: ScheduleBlock
    fire_in_minutes: int
    fire_at: datetime
    handle: Any = field(repr=False, default=None)

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()


DEFAULT_SCHEDULE: list[ScheduleBlock] = [
    ScheduleBlock(id="1", start="06:00", end="07:00", activity="Morning Routine", type=ActivityType.WORKOUT),
    ScheduleBlock(id="2", start="09:00", end="12:00", activity="Work / Study", type=ActivityType.DEEP_STUDY),
    ScheduleBlock(id="3", start="14:00", end="17:00", activity="Work / Study", type=ActivityType.STUDY),
    ScheduleBlock(id="4", start="18:00", end="19:00", activity="Exercise", type=ActivityType.WALK),
]
