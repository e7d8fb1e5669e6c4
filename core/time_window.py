"""
Time Window Core - Schedule Membership and Transitions.

Pure functions over a Schedule and an instant. Days are numbered
0=Sunday .. 6=Saturday; times are minute-granular "HH:MM" strings.

Windows are start-inclusive and end-exclusive. A window whose start is
after its end spans midnight (e.g. 22:00-06:00).
"""

import logging
import re
from datetime import datetime, timedelta

from core.privacy_types import (
    ALL_DAYS,
    PolicySettings,
    Schedule,
    ScheduleType,
    days_for_schedule_type,
)

logger = logging.getLogger(__name__)

_TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")
_DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

__all__ = [
    "days_for_schedule_type",
    "describe_schedule",
    "describe_settings",
    "is_active",
    "is_valid_time",
    "next_change",
    "parse_time",
]


def parse_time(value: str) -> int:
    """
    Parses an "HH:MM" string into minutes since midnight.

    Raises:
        ValueError: If the string is not a valid 24h time.
    """
    match = _TIME_PATTERN.match(str(value).strip())
    if not match:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid time {value!r}, out of range")
    return hours * 60 + minutes


def is_valid_time(value) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parse_time(value)
    except ValueError:
        return False
    return True


def _day_of_week(now: datetime) -> int:
    return now.isoweekday() % 7


def _window(schedule: Schedule) -> tuple[int, int] | None:
    try:
        return parse_time(schedule.start_time), parse_time(schedule.end_time)
    except ValueError as e:
        logger.warning(f"Ignoring schedule with malformed window: {e}")
        return None


def is_active(schedule: Schedule, now: datetime) -> bool:
    """
    Checks whether ``now`` falls inside the schedule's window.

    Args:
        schedule: Schedule to evaluate.
        now: Instant to test.

    Returns:
        True if the schedule is enabled, ``now`` is on an applicable day
        and inside the window.
    """
    if not schedule.enabled:
        return False

    if _day_of_week(now) not in schedule.applicable_days():
        return False

    window = _window(schedule)
    if window is None:
        return False
    start, end = window
    current = now.hour * 60 + now.minute

    if start <= end:
        return start <= current < end
    # Window spans midnight
    return current >= start or current < end


def next_change(schedule: Schedule, now: datetime) -> datetime | None:
    """
    Computes the next instant the schedule's active state flips.

    Returns:
        The end of the current window when active, the next window start
        when inactive, or None if the schedule is disabled or has no
        applicable day.
    """
    if not schedule.enabled:
        return None

    window = _window(schedule)
    if window is None:
        return None
    start, end = window

    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    current = now.hour * 60 + now.minute

    if is_active(schedule, now):
        end_at = midnight + timedelta(minutes=end)
        if start > end and current >= start:
            end_at += timedelta(days=1)
        return end_at

    applicable = schedule.applicable_days()
    # Today plus the following seven days, so a single applicable weekday
    # whose start already passed resolves to next week.
    for offset in range(8):
        day = midnight + timedelta(days=offset)
        if _day_of_week(day) not in applicable:
            continue
        start_at = day + timedelta(minutes=start)
        if start_at > now:
            return start_at

    return None


def describe_schedule(schedule: Schedule) -> str:
    """Human readable summary, e.g. "Weekdays 08:00-17:00"."""
    if schedule.type == ScheduleType.CUSTOM:
        days = sorted(schedule.days)
        if set(days) == ALL_DAYS:
            label = "Custom (every day)"
        elif not days:
            label = "Custom (no days)"
        else:
            label = f"Custom ({', '.join(_DAY_NAMES[d] for d in days)})"
    else:
        label = schedule.type.value.capitalize()

    text = f"{label} {schedule.start_time}-{schedule.end_time}"
    if not schedule.enabled:
        text += " (disabled)"
    return text


def describe_settings(settings: PolicySettings) -> str:
    """Describes which capabilities a policy blocks."""
    blocked = settings.blocked_labels()
    if not blocked:
        return "All allowed"
    if len(blocked) == 5:
        return "All BLOCKED"
    return f"BLOCKED: {', '.join(blocked)}"
