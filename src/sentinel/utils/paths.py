from pathlib import Path

from platformdirs import user_data_dir, user_log_dir

APP_DIR_NAME = "sentinel"


def get_project_root() -> Path | None:
    """Returns the project root if running from a source checkout, else None."""
    # An editable install from a git checkout keeps its data in <repo>/outputs.
    potential_root = Path(__file__).resolve().parent.parent.parent.parent
    if (potential_root / "pyproject.toml").exists() and (potential_root / ".git").exists():
        return potential_root
    return None


def get_default_data_dir() -> Path:
    """Schedules, preferences, verifications and config.json live here."""
    root = get_project_root()
    if root:
        return root / "outputs"
    return Path(user_data_dir(appname=APP_DIR_NAME))


def get_default_log_dir() -> Path:
    """Where sentinel.log and reminders.log are written."""
    root = get_project_root()
    if root:
        return root / "outputs" / "logs"
    return Path(user_log_dir(appname=APP_DIR_NAME))
