import requests
from loguru import logger

from sentinel.errors import ExternalCallError
from sentinel.schema import DailyStats
from sentinel.settings import settings


class EmailClient:
    """Talks to the email server that renders and delivers reminder mails."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.email_server_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.email_timeout_seconds

    def _post(self, path: str, payload: dict) -> bool:
        url = f"{self.base_url}{path}"
        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExternalCallError("email", f"{url} unreachable: {e}") from e

        if response.ok:
            return True

        logger.error(f"Email server returned {response.status_code} for {path}: {response.text[:200]}")
        return False

    def send_reminder(
        self,
        to: str,
        user_name: str,
        activity: str,
        start_time: str,
        minutes_before: int,
    ) -> bool:
        """Asks the server to mail a reminder. False if the server refused."""
        sent = self._post(
            "/api/send-reminder",
            {
                "to": to,
                "userName": user_name or "User",
                "taskName": activity,
                "taskTime": start_time,
                "minutesBefore": minutes_before,
            },
        )
        if sent:
            logger.info(f"Reminder email sent to {to} for {activity} at {start_time}")
        return sent

    def send_daily_analysis(self, to: str, user_name: str, stats: DailyStats, date_label: str) -> bool:
        sent = self._post(
            "/api/send-daily-analysis",
            {
                "to": to,
                "userName": user_name or "User",
                "date": date_label,
                "tasks": [
                    {
                        "name": task.name,
                        "time": task.time,
                        "verified": task.verified,
                        "focusScore": task.focus_score,
                    }
                    for task in stats.tasks
                ],
            },
        )
        if sent:
            logger.info(f"Daily analysis email sent to {to}")
        return sent
