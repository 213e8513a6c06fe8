"""Resolve the time zone and shift hours that apply to an employee."""

from datetime import time
from typing import NamedTuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from daysheet.core.config import settings
from daysheet.db.models import Shift, User
from daysheet.services.segments import parse_clock_time


class Schedule(NamedTuple):
    tz: ZoneInfo
    shift_start: time
    # None when no active shift is assigned
    shift_end: time | None = None
    break_minutes: int | None = None


def resolve_timezone(name: str | None) -> ZoneInfo:
    """ZoneInfo for an IANA name; None means ATTENDANCE_TIMEZONE."""
    key = name or settings.ATTENDANCE_TIMEZONE
    try:
        return ZoneInfo(key)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        # OSError covers keys naming a tzdata directory, e.g. "Europe"
        raise ValueError(f"Unknown time zone '{key}'")


def resolve_shift_start(shift: Shift | None) -> time:
    """Raises ValueError when the stored or configured start is malformed."""
    if shift is not None and shift.is_active:
        return parse_clock_time(shift.start_time)
    try:
        return parse_clock_time(settings.SHIFT_START_TIME)
    except ValueError:
        raise ValueError(f"Invalid SHIFT_START_TIME '{settings.SHIFT_START_TIME}'")


def employee_schedule(user: User, shift: Shift | None) -> Schedule:
    tz = resolve_timezone(user.timezone)
    start = resolve_shift_start(shift)
    if shift is None or not shift.is_active:
        return Schedule(tz, start)
    return Schedule(tz, start, parse_clock_time(shift.end_time), shift.break_minutes)
