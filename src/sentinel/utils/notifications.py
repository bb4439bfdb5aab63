import shutil
import subprocess

from loguru import logger

from sentinel.settings import settings


def notifications_available() -> bool:
    """Desktop notifications need notify-send on PATH."""
    return shutil.which("notify-send") is not None


def send_notification(summary: str, body: str, urgency: str = "normal") -> bool:
    """Sends a desktop notification using notify-send."""
    logger.info(f"Sending notification: {summary} | {body}")
    cmd = [
        "notify-send",
        summary,
        body,
        "-a",
        settings.app_name,
        "-u",
        urgency,
    ]
    try:
        result = subprocess.run(cmd, check=False, capture_output=True, timeout=5)
        return result.returncode == 0
    except FileNotFoundError:
        logger.error("notify-send not found. Install libnotify-bin.")
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.error(f"Failed to send notification: {e}")
    return False
