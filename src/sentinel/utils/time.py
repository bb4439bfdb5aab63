import re
from datetime import datetime

CLOCK_PATTERN = re.compile(r"^\d{2}:\d{2}$")
MINUTES_PER_DAY = 24 * 60


def normalize_time(time_str: str) -> str:
    """Normalizes '6:00', '06.30', '8pm', '8:30 PM' or '20:00' to zero-padded 'HH:MM'."""
    formats = ["%I%p", "%I:%M%p", "%I.%M%p", "%H:%M", "%H.%M"]
    cleaned = time_str.lower().replace(" ", "")
    for fmt in formats:
        try:
            return datetime.strptime(cleaned, fmt).strftime("%H:%M")
        except ValueError:
            continue
    raise ValueError(f"Could not parse time: {time_str}")


def is_clock_time(value: str) -> bool:
    """True for a well-formed, zero-padded 'HH:MM' within a single day."""
    if not isinstance(value, str) or not CLOCK_PATTERN.match(value):
        return False
    hours, minutes = (int(part) for part in value.split(":"))
    return hours < 24 and minutes < 60


def to_minutes(clock: str) -> int:
    """Converts 'HH:MM' into minutes since midnight."""
    hours, minutes = clock.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_of_day(now: datetime | None = None) -> int:
    """Wall-clock minutes since midnight; seconds are ignored."""
    if now is None:
        now = datetime.now()
    return now.hour * 60 + now.minute


def format_time_until(minutes: int) -> str:
    """
    Formats a number of minutes as '5 minutes', '1 hour' or '2h 30m'.
    """
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"

    hours = minutes // 60
    remaining_minutes = minutes % 60
    if remaining_minutes == 0:
        return f"{hours} hour{'s' if hours != 1 else ''}"
    return f"{hours}h {remaining_minutes}m"
