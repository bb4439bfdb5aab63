import sys

from loguru import logger

from sentinel.settings import settings

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"

# One file per entry point, so the long-running reminder loop keeps its own history.
CLI_LOG = "sentinel.log"
REMINDER_LOG = "reminders.log"


def setup_logging(verbose: bool = False, log_name: str = CLI_LOG) -> None:
    """
    Sends log records to stderr and to ``log_name`` under ``settings.log_dir``.

    The file sink rotates at 10 MB and keeps ten days of zipped history.
    ``verbose`` (or ``debug`` in config.json) lowers both sinks to DEBUG.
    """
    logger.remove()
    level = "DEBUG" if verbose or settings.debug else "INFO"

    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = settings.log_dir / log_name
    logger.add(
        log_file,
        level=level,
        format=FILE_FORMAT,
        rotation="10 MB",
        retention="10 days",
        compression="zip",
    )
    logger.debug(f"Writing logs to {log_file}")
