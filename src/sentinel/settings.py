import json
from pathlib import Path

from loguru import logger
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sentinel.utils.paths import get_default_data_dir, get_default_log_dir

CONFIG_FILE = "config.json"
# Never written to config.json; the Gemini key comes from the environment.
SECRET_FIELDS = {"gemini_api_key"}


class Settings(BaseSettings):
    """Application-wide settings managed via .env and config.json."""

    app_name: str = "sentinel"
    debug: bool = Field(default=False, description="Master toggle for verbose logging")

    # Paths
    data_dir: Path = Field(default_factory=get_default_data_dir)
    log_dir: Path = Field(default_factory=get_default_log_dir)

    def model_post_init(self, __context):
        # Ensure paths are absolute
        self.data_dir = self.data_dir.resolve()
        self.log_dir = self.log_dir.resolve()

    @property
    def state_file(self) -> Path:
        return self.data_dir / "state.json"

    @property
    def schedules_dir(self) -> Path:
        return self.data_dir / "schedules"

    @property
    def verifications_file(self) -> Path:
        return self.data_dir / "verifications.json"

    @property
    def preferences_file(self) -> Path:
        return self.data_dir / "preferences.json"

    @property
    def summary_file(self) -> Path:
        return self.data_dir / "daily_summary.json"

    # User
    user_id: str = "local"
    user_email: str | None = None
    user_name: str = "User"

    # Reminders
    reminder_lead_minutes: int = Field(default=5, ge=0)
    email_reminders_enabled: bool = True
    push_notifications_enabled: bool = True
    notify_summary: str = "{activity} in {minutes} minutes!"
    notify_body: str = "Get ready! Your {activity} session starts at {start_time}."

    # Email server
    email_server_url: str = "http://localhost:3001"
    email_timeout_seconds: float = 10.0

    # AI verification
    gemini_api_key: str = Field(
        default="", validation_alias=AliasChoices("SENTINEL_GEMINI_API_KEY", "GEMINI_API_KEY", "gemini_api_key")
    )
    gemini_model: str = "gemini-1.5-flash"

    model_config = SettingsConfigDict(
        env_prefix="SENTINEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def save(self):
        """Writes the current settings to config.json, leaving out secrets."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(mode="json", exclude=SECRET_FIELDS)
        with open(self.data_dir / CONFIG_FILE, "w") as f:
            json.dump(data, f, indent=4)


_cache: tuple[Path, float, Settings] | None = None


def load_settings() -> Settings:
    """
    Environment defaults overlaid with config.json.

    The CLI and the reminder loop call this whenever they need fresh
    preferences; the parsed file is reused until its mtime changes.
    """
    global _cache

    base = Settings()
    path = base.data_dir / CONFIG_FILE
    try:
        mtime = path.stat().st_mtime
    except FileNotFoundError:
        _cache = None
        return base

    if _cache is not None and _cache[:2] == (path, mtime):
        return _cache[2]

    try:
        with open(path) as f:
            overrides = json.load(f)
        merged = Settings(**{**base.model_dump(), **overrides})
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable {path}: {e}")
        return base

    _cache = (path, mtime, merged)
    return merged


settings = load_settings()
