import json
from datetime import date, datetime
from pathlib import Path

from loguru import logger

from sentinel.schema import NotificationPreferences, ScheduleBlock, VerificationLog
from sentinel.settings import settings


def _safe_name(user_id: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in user_id) or "local"


class ScheduleManager:
    """
    Persists one schedule per user as JSON.

    Saves replace the stored schedule wholesale; there is no merge and no
    history, so the last write wins.
    """

    def __init__(self, schedules_dir: Path | None = None):
        self.schedules_dir = schedules_dir or settings.schedules_dir

    def schedule_file(self, user_id: str) -> Path:
        return self.schedules_dir / f"{_safe_name(user_id)}.json"

    def schedule_mtime(self, user_id: str) -> float | None:
        path = self.schedule_file(user_id)
        return path.stat().st_mtime if path.exists() else None

    def load_schedule(self, user_id: str) -> list[ScheduleBlock] | None:
        """The user's schedule, or None when none is stored or it can't be read."""
        path = self.schedule_file(user_id)
        if not path.exists():
            return None

        try:
            with open(path) as f:
                data = json.load(f)
            return [ScheduleBlock(**block) for block in data.get("schedule", [])]
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Error fetching schedule: {e}")
            return None

    def save_schedule(self, user_id: str, schedule: list[ScheduleBlock]) -> bool:
        try:
            self.schedules_dir.mkdir(parents=True, exist_ok=True)
            payload = {
                "user_id": user_id,
                "updated_at": datetime.now().isoformat(),
                "schedule": [block.model_dump(mode="json") for block in schedule],
            }
            with open(self.schedule_file(user_id), "w") as f:
                json.dump(payload, f, indent=4)
        except OSError as e:
            logger.error(f"Error saving schedule: {e}")
            return False

        logger.info(f"Schedule saved for {user_id} ({len(schedule)} blocks)")
        return True

    def delete_schedule(self, user_id: str) -> bool:
        try:
            self.schedule_file(user_id).unlink(missing_ok=True)
            return True
        except OSError as e:
            logger.error(f"Error deleting schedule: {e}")
            return False


class PreferencesManager:
    """Notification preferences keyed by user id, stored in one JSON file."""

    def __init__(self, path: Path | None = None):
        self.path = path or settings.preferences_file

    def _load_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error fetching notification preferences: {e}")
            return {}

    def get(self, user_id: str) -> NotificationPreferences | None:
        data = self._load_all().get(user_id)
        return NotificationPreferences(**data) if data else None

    def get_or_default(self, user_id: str) -> NotificationPreferences:
        """Stored preferences, else the defaults from settings."""
        prefs = self.get(user_id)
        if prefs is not None:
            return prefs
        return NotificationPreferences(
            user_id=user_id,
            email_reminders_enabled=settings.email_reminders_enabled,
            reminder_minutes_before=settings.reminder_lead_minutes,
            push_notifications_enabled=settings.push_notifications_enabled,
        )

    def save(self, prefs: NotificationPreferences) -> NotificationPreferences:
        data = self._load_all()
        data[prefs.user_id] = prefs.model_dump(mode="json")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(data, f, indent=4)
        return prefs


class VerificationStore:
    """Append-only log of verifications."""

    def __init__(self, path: Path | None = None):
        self.path = path or settings.verifications_file

    def _load(self) -> list[VerificationLog]:
        if not self.path.exists():
            return []
        try:
            with open(self.path) as f:
                return [VerificationLog(**entry) for entry in json.load(f)]
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Error fetching verifications: {e}")
            return []

    def append(self, log: VerificationLog) -> VerificationLog:
        logs = self._load()
        logs.append(log)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump([entry.model_dump(mode="json") for entry in logs], f, indent=4)
        return log

    def for_user(self, user_id: str) -> list[VerificationLog]:
        """All of a user's logs, newest first."""
        logs = [log for log in self._load() if log.user_id == user_id]
        return sorted(logs, key=lambda log: log.created_at, reverse=True)

    def for_date(self, user_id: str, day: date) -> list[VerificationLog]:
        return [log for log in self.for_user(user_id) if log.created_at.date() == day]

    def verified_dates(self, user_id: str) -> list[date]:
        return sorted({log.created_at.date() for log in self.for_user(user_id) if log.verified})
