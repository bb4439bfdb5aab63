import json
import os
from datetime import datetime

from loguru import logger

from sentinel.settings import settings


_last_written_state: dict | None = None


def write_state(armed: list[dict] | None = None):
    """Writes the reminder loop's state to a file for the 'status' command."""
    global _last_written_state
    state = {
        "pid": os.getpid(),
        "armed_reminders": armed or [],
    }

    if state == _last_written_state:
        return  # No change, no need to write

    try:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        with open(settings.state_file, "w") as f:
            json.dump({**state, "last_update": datetime.now().isoformat()}, f, indent=4)
        _last_written_state = state
    except OSError as e:
        logger.warning(f"Could not write state file: {e}")


def read_state() -> dict | None:
    if not settings.state_file.exists():
        return None
    try:
        with open(settings.state_file) as f:
            return json.load(f)
    except (OSError, ValueError):
        return None


def cleanup_state():
    """Removes the state file when the reminder loop stops."""
    global _last_written_state
    _last_written_state = None
    try:
        settings.state_file.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove state file: {e}")
