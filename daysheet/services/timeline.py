"""Presentation helpers for the "My Attendance" day rows."""

from __future__ import annotations

from datetime import datetime, time, tzinfo

from daysheet.schemas.attendance import DayReport, DaySummary, TimelineBar

MINUTES_PER_DAY = 24 * 60


def _pct(minutes: float) -> float:
    return round(minutes / MINUTES_PER_DAY * 100, 3)


def timeline_bars(summary: DaySummary, tz: tzinfo) -> list[TimelineBar]:
    """
    Place each segment on a 24h bar: offset from local midnight, width
    proportional to its duration. Bars are clipped at the end of the row.
    """
    day_start = datetime.combine(summary.date, time(0, 0), tzinfo=tz)
    bars: list[TimelineBar] = []
    for index, segment in enumerate(summary.segments, start=1):
        offset_min = (segment.in_time.astimezone(tz) - day_start).total_seconds() / 60
        offset = min(max(_pct(offset_min), 0.0), 100.0)
        width = min(_pct(segment.duration_minutes), round(100.0 - offset, 3))
        bars.append(
            TimelineBar(
                label=f"Session {index}",
                in_time=segment.in_time,
                out_time=segment.out_time,
                duration_minutes=segment.duration_minutes,
                offset_pct=offset,
                width_pct=width,
                is_open=segment.out_time is None,
            )
        )
    return bars


def format_minutes(total: int) -> str:
    return f"{total // 60}h {total % 60}m"


def format_gross_hours(summary: DaySummary) -> str:
    if summary.classification == "WEEKEND_OFF":
        return "Full day Weekly-off"
    if summary.classification == "NO_DATA":
        return "0h 0m"
    if summary.total_minutes > 0:
        return format_minutes(summary.total_minutes)
    # worked day with nothing measurable yet
    return "0h 0m +"


def format_late(minutes: int) -> str:
    return f"{minutes // 60}:{minutes % 60:02d}:00 late"


def format_break(minutes: int) -> str:
    return f"{minutes // 60}:{minutes % 60:02d}"


def build_day_report(
    summary: DaySummary, tz: tzinfo, break_allowance: int | None = None
) -> DayReport:
    late_label = None
    if summary.arrival.status == "LATE":
        late_label = format_late(summary.arrival.late_minutes)
    excess = 0
    if break_allowance is not None:
        excess = max(0, summary.break_minutes - break_allowance)
    return DayReport(
        **summary.model_dump(),
        gross_hours=format_gross_hours(summary),
        late_label=late_label,
        break_label=format_break(summary.break_minutes),
        excess_break_minutes=excess,
        timeline=timeline_bars(summary, tz),
    )
