from collections.abc import Sequence

from sentinel.errors import ValidationError
from sentinel.schema import ScheduleBlock, ValidationResult
from sentinel.utils.time import is_clock_time


def validate_schedule(schedule: Sequence[ScheduleBlock]) -> ValidationResult:
    """
    Checks a candidate schedule before it is saved.

    Every violation is reported, not only the first. Overlaps are checked
    between neighbours in the order given; the list is not sorted first.
    """
    errors: list[str] = []

    if not schedule:
        return ValidationResult(valid=False, errors=["Schedule must have at least one activity"])

    seen_ids: set[str] = set()
    for index, block in enumerate(schedule, start=1):
        if block.id in seen_ids:
            errors.append(f"Activity {index}: Duplicate id")
        seen_ids.add(block.id)

        well_formed = is_clock_time(block.start) and is_clock_time(block.end)
        if not well_formed:
            errors.append(f"Activity {index}: Invalid time format")

        if well_formed and block.start >= block.end:
            errors.append(f"Activity {index}: End time must be after start time")

        if not block.activity or not block.activity.strip():
            errors.append(f"Activity {index}: Activity name is required")

    for index in range(len(schedule) - 1):
        if schedule[index].end > schedule[index + 1].start:
            errors.append(f"Activities {index + 1} and {index + 2} have overlapping times")

    return ValidationResult(valid=not errors, errors=errors)


def require_valid(schedule: Sequence[ScheduleBlock]) -> None:
    """Raises ValidationError carrying every violation if the schedule is invalid."""
    result = validate_schedule(schedule)
    if not result.valid:
        raise ValidationError(result.errors)
