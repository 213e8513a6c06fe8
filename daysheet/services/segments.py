"""
Attendance day segmentation.

Turns a flat list of IN/OUT punches into one summary per calendar day:
worked segments, total minutes, arrival status and log status.

Everything here is pure. The caller passes ``now`` (used for a segment
that is still open), the employee's time zone (used to bucket punches
into local days) and the shift start (used for lateness).
"""

from __future__ import annotations

import logging
from calendar import monthrange
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from daysheet.schemas.attendance import (
    Arrival,
    AttendanceSegment,
    ClockEvent,
    DaySummary,
    RangeStats,
)

logger = logging.getLogger(__name__)

DEFAULT_SHIFT_START = time(9, 0)
WEEKEND_DAYS: frozenset[int] = frozenset({5, 6})  # Sat, Sun


def parse_clock_time(value: str) -> time:
    """Parse "HH:MM" into a time. Raises ValueError on bad input."""
    hours, _, minutes = value.strip().partition(":")
    return time(int(hours), int(minutes or 0))


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def _minutes_between(start: datetime, end: datetime) -> int:
    seconds = (_as_utc(end) - _as_utc(start)).total_seconds()
    return max(0, int(seconds // 60))


def sort_events(events: Iterable[ClockEvent]) -> list[ClockEvent]:
    # stable: punches sharing a timestamp keep their input order
    return sorted(events, key=lambda e: _as_utc(e.timestamp))


def local_date(ts: datetime, tz: tzinfo) -> date:
    return _as_utc(ts).astimezone(tz).date()


def group_events_by_day(
    events: Iterable[ClockEvent], start: date, end: date, tz: tzinfo
) -> dict[date, list[ClockEvent]]:
    """
    Bucket punches by their local calendar day.

    Punches whose local day is outside [start, end] are dropped. Each
    bucket is sorted ascending by timestamp.
    """
    buckets: dict[date, list[ClockEvent]] = {}
    for event in sort_events(events):
        day = local_date(event.timestamp, tz)
        if start <= day <= end:
            buckets.setdefault(day, []).append(event)
    return buckets


def pair_segments(
    events: Sequence[ClockEvent], now: datetime
) -> tuple[list[AttendanceSegment], int]:
    """
    Pair IN/OUT punches of one day into worked segments.

    Returns ``(segments, total_minutes)``. Malformed sequences never raise:
    an IN following an unmatched IN closes the earlier one as a zero-length
    segment, an OUT with no preceding IN is ignored, and a trailing IN
    becomes an open segment measured up to ``now``.
    """
    segments: list[AttendanceSegment] = []
    total = 0
    pending_in: datetime | None = None

    for event in sort_events(events):
        if event.event == "IN":
            if pending_in is not None:
                logger.debug(
                    "Unmatched IN at %s closed by IN at %s", pending_in, event.timestamp
                )
                segments.append(
                    AttendanceSegment(
                        in_time=pending_in, out_time=event.timestamp, duration_minutes=0
                    )
                )
            pending_in = event.timestamp
        elif pending_in is not None:
            duration = _minutes_between(pending_in, event.timestamp)
            segments.append(
                AttendanceSegment(
                    in_time=pending_in, out_time=event.timestamp, duration_minutes=duration
                )
            )
            total += duration
            pending_in = None
        else:
            logger.debug("Orphaned OUT at %s ignored", event.timestamp)

    if pending_in is not None:
        duration = _minutes_between(pending_in, now)
        segments.append(
            AttendanceSegment(in_time=pending_in, out_time=None, duration_minutes=duration)
        )
        total += duration

    return segments, total


def classify_day(day: date, events: Sequence[ClockEvent]) -> str:
    if day.weekday() in WEEKEND_DAYS:
        return "WEEKEND_OFF"
    if not events:
        return "NO_DATA"
    return "WORKED"


def compute_arrival(
    events: Sequence[ClockEvent], shift_start: time, tz: tzinfo
) -> Arrival:
    """Compare the day's first IN against the shift start, in local time."""
    first_in = next((e.timestamp for e in sort_events(events) if e.event == "IN"), None)
    if first_in is None:
        return Arrival(status="NONE")

    local_in = _as_utc(first_in).astimezone(tz)
    start_at = datetime.combine(local_in.date(), shift_start, tzinfo=tz)
    if local_in > start_at:
        late = int((local_in - start_at).total_seconds() // 60)
        return Arrival(status="LATE", first_in_time=first_in, late_minutes=late)
    return Arrival(status="ON_TIME", first_in_time=first_in, late_minutes=0)


def work_breakdown(segments: Sequence[AttendanceSegment]) -> tuple[int, int]:
    """
    Split a day into ``(effective_minutes, break_minutes)``.

    Only closed segments with a positive duration count. Effective time is
    their sum; break time is the rest of the span from the first of their
    INs to the last of their OUTs.
    """
    closed = [s for s in segments if s.out_time is not None and s.duration_minutes > 0]
    if not closed:
        return 0, 0
    effective = sum(s.duration_minutes for s in closed)
    span = _minutes_between(closed[0].in_time, closed[-1].out_time)
    return effective, max(0, span - effective)


def log_status(segments: Sequence[AttendanceSegment]) -> str:
    if not segments:
        return "EMPTY"
    if any(s.out_time is None for s in segments):
        return "OPEN"
    return "COMPLETE"


def build_day_summary(
    day: date,
    events: Sequence[ClockEvent],
    *,
    now: datetime,
    tz: tzinfo,
    shift_start: time = DEFAULT_SHIFT_START,
) -> DaySummary:
    classification = classify_day(day, events)
    if classification != "WORKED":
        return DaySummary(date=day, classification=classification)

    ordered = sort_events(events)
    segments, total = pair_segments(ordered, now)
    effective, breaks = work_breakdown(segments)
    return DaySummary(
        date=day,
        classification=classification,
        segments=segments,
        total_minutes=total,
        effective_minutes=effective,
        break_minutes=breaks,
        arrival=compute_arrival(ordered, shift_start, tz),
        log_status=log_status(segments),
        events=ordered,
    )


def assemble_range(
    events: Iterable[ClockEvent],
    start: date,
    end: date,
    *,
    now: datetime,
    tz: tzinfo,
    shift_start: time = DEFAULT_SHIFT_START,
) -> list[DaySummary]:
    """
    One summary per day in [start, end], most recent day first.

    The result is dense: days without punches are NO_DATA and weekends are
    WEEKEND_OFF. An inverted range yields an empty list.
    """
    buckets = group_events_by_day(events, start, end, tz)
    days: list[DaySummary] = []
    cur = end
    while cur >= start:
        days.append(
            build_day_summary(
                cur, buckets.get(cur, []), now=now, tz=tz, shift_start=shift_start
            )
        )
        cur -= timedelta(days=1)
    return days


def rolling_window(today: date, days: int) -> tuple[date, date]:
    """The last ``days`` calendar days, today included."""
    if days < 1:
        raise ValueError("Rolling window must cover at least one day")
    return today - timedelta(days=days - 1), today


def month_window(year: int, month: int) -> tuple[date, date]:
    _, last = monthrange(year, month)
    return date(year, month, 1), date(year, month, last)


def summarize_range(days: Sequence[DaySummary]) -> RangeStats:
    worked = [d for d in days if d.classification == "WORKED"]
    total = sum(d.total_minutes for d in worked)
    return RangeStats(
        days=len(days),
        worked_days=len(worked),
        late_days=sum(1 for d in worked if d.arrival.status == "LATE"),
        open_days=sum(1 for d in worked if d.log_status == "OPEN"),
        total_minutes=total,
        break_minutes=sum(d.break_minutes for d in worked),
        avg_minutes_per_worked_day=round(total / len(worked), 1) if worked else None,
    )
