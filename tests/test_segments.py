"""
Day segmentation engine tests.

Tests:
  - pairing       : IN/OUT pairing, open segments, malformed sequences
  - grouping      : local-day bucketing across time zones, range filter
  - classification: weekend / no data / worked, arrival, log status
  - assembly      : dense descending ranges, rolling and month windows
  - scenarios     : the four reference days
"""

from __future__ import annotations

import math
from datetime import date, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from daysheet.services.segments import (
    assemble_range,
    build_day_summary,
    classify_day,
    compute_arrival,
    group_events_by_day,
    log_status,
    month_window,
    pair_segments,
    parse_clock_time,
    rolling_window,
    summarize_range,
    work_breakdown,
)
from tests.conftest import ev, utc

UTC = timezone.utc
WEDNESDAY = date(2026, 1, 7)
SATURDAY = date(2026, 1, 10)


# ---------------------------------------------------------------------------
# Reference scenarios
# ---------------------------------------------------------------------------


class TestScenarios:
    def test_single_clean_day(self) -> None:
        events = [
            ev("2026-01-07 09:05", "IN"),
            ev("2026-01-07 13:00", "OUT"),
            ev("2026-01-07 14:00", "IN"),
            ev("2026-01-07 18:00", "OUT"),
        ]
        day = build_day_summary(WEDNESDAY, events, now=utc("2026-01-07 20:00"), tz=UTC)

        assert day.classification == "WORKED"
        assert len(day.segments) == 2
        assert [s.duration_minutes for s in day.segments] == [235, 240]
        assert day.total_minutes == 475
        assert day.arrival.status == "LATE"
        assert day.arrival.late_minutes == 5
        assert day.arrival.first_in_time == utc("2026-01-07 09:05")
        assert day.log_status == "COMPLETE"

    def test_currently_clocked_in(self) -> None:
        events = [ev("2026-01-07 09:00", "IN")]
        day = build_day_summary(WEDNESDAY, events, now=utc("2026-01-07 11:00"), tz=UTC)

        assert len(day.segments) == 1
        assert day.segments[0].out_time is None
        assert day.segments[0].duration_minutes == 120
        assert day.total_minutes == 120
        assert day.log_status == "OPEN"
        assert day.arrival.status == "ON_TIME"
        assert day.arrival.late_minutes == 0

    def test_orphaned_out_still_counts_as_worked(self) -> None:
        """A lone OUT yields no segment, yet the day is WORKED because an event exists."""
        events = [ev("2026-01-07 14:00", "OUT")]
        day = build_day_summary(WEDNESDAY, events, now=utc("2026-01-07 20:00"), tz=UTC)

        assert day.classification == "WORKED"
        assert day.segments == []
        assert day.total_minutes == 0
        assert day.arrival.status == "NONE"
        assert day.arrival.first_in_time is None
        assert day.log_status == "EMPTY"

    def test_double_in(self) -> None:
        events = [
            ev("2026-01-07 09:00", "IN"),
            ev("2026-01-07 09:00", "IN"),
            ev("2026-01-07 17:00", "OUT"),
        ]
        day = build_day_summary(WEDNESDAY, events, now=utc("2026-01-07 20:00"), tz=UTC)

        assert len(day.segments) == 2
        first, second = day.segments
        assert first.in_time == first.out_time == utc("2026-01-07 09:00")
        assert first.duration_minutes == 0
        assert second.duration_minutes == 480
        assert day.total_minutes == 480
        assert day.log_status == "COMPLETE"


# ---------------------------------------------------------------------------
# Pairing
# ---------------------------------------------------------------------------


class TestPairSegments:
    NOW = utc("2026-01-07 23:00")

    def test_empty_input(self) -> None:
        assert pair_segments([], self.NOW) == ([], 0)

    def test_double_in_with_gap_is_zero_length(self) -> None:
        """The dangling IN is closed at the next IN with duration 0, not the gap."""
        events = [
            ev("2026-01-07 08:00", "IN"),
            ev("2026-01-07 10:00", "IN"),
            ev("2026-01-07 12:00", "OUT"),
        ]
        segments, total = pair_segments(events, self.NOW)

        assert segments[0].out_time == utc("2026-01-07 10:00")
        assert segments[0].duration_minutes == 0
        assert segments[1].duration_minutes == 120
        assert total == 120

    def test_orphaned_out_between_pairs_is_ignored(self) -> None:
        events = [
            ev("2026-01-07 09:00", "IN"),
            ev("2026-01-07 10:00", "OUT"),
            ev("2026-01-07 11:00", "OUT"),
            ev("2026-01-07 12:00", "IN"),
            ev("2026-01-07 12:30", "OUT"),
        ]
        segments, total = pair_segments(events, self.NOW)

        assert len(segments) == 2
        assert total == 90

    def test_minutes_are_floored(self) -> None:
        events = [
            ev("2026-01-07 09:00:00", "IN"),
            ev("2026-01-07 09:01:59", "OUT"),
        ]
        segments, total = pair_segments(events, self.NOW)
        assert segments[0].duration_minutes == 1
        assert total == 1

    def test_unsorted_input_is_sorted(self) -> None:
        events = [
            ev("2026-01-07 18:00", "OUT"),
            ev("2026-01-07 14:00", "IN"),
            ev("2026-01-07 13:00", "OUT"),
            ev("2026-01-07 09:05", "IN"),
        ]
        segments, total = pair_segments(events, self.NOW)

        assert total == 475
        assert [s.in_time for s in segments] == sorted(s.in_time for s in segments)

    def test_open_segment_counts_toward_total(self) -> None:
        events = [
            ev("2026-01-07 09:00", "IN"),
            ev("2026-01-07 12:00", "OUT"),
            ev("2026-01-07 13:00", "IN"),
        ]
        segments, total = pair_segments(events, utc("2026-01-07 15:30"))

        assert segments[-1].out_time is None
        assert segments[-1].duration_minutes == 150
        assert total == 180 + 150

    def test_open_segment_with_now_before_in_is_zero(self) -> None:
        segments, total = pair_segments(
            [ev("2026-01-07 09:00", "IN")], utc("2026-01-07 08:00")
        )
        assert segments[0].duration_minutes == 0
        assert total == 0

    def test_naive_now_is_treated_as_utc(self) -> None:
        segments, _ = pair_segments(
            [ev("2026-01-07 09:00", "IN")], utc("2026-01-07 10:00").replace(tzinfo=None)
        )
        assert segments[0].duration_minutes == 60

    @pytest.mark.parametrize(
        "kinds",
        [
            ["IN", "OUT", "IN", "OUT"],
            ["OUT", "IN", "OUT"],
            ["IN", "IN", "OUT"],
            ["IN"],
            ["OUT", "OUT", "IN"],
            ["IN", "OUT", "IN"],
        ],
    )
    def test_segment_count_bound_and_total(self, kinds: list[str]) -> None:
        events = [
            ev(f"2026-01-07 {9 + i:02d}:00", kind) for i, kind in enumerate(kinds)
        ]
        segments, total = pair_segments(events, self.NOW)

        assert len(segments) <= math.ceil(len(events) / 2)
        assert total == sum(s.duration_minutes for s in segments)
        assert total >= 0

    def test_idempotent_on_closed_sequence(self) -> None:
        events = [
            ev("2026-01-07 09:00", "IN"),
            ev("2026-01-07 12:00", "OUT"),
            ev("2026-01-07 13:00", "IN"),
            ev("2026-01-07 17:45", "OUT"),
        ]
        assert pair_segments(events, self.NOW) == pair_segments(
            events, self.NOW + timedelta(hours=5)
        )


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


class TestGrouping:
    def test_groups_by_local_date_not_utc(self) -> None:
        kolkata = ZoneInfo("Asia/Kolkata")
        # 20:00Z on the 6th is 01:30 on the 7th in Kolkata
        events = [ev("2026-01-06 20:00", "IN"), ev("2026-01-07 05:00", "OUT")]
        buckets = group_events_by_day(events, date(2026, 1, 1), date(2026, 1, 31), kolkata)

        assert list(buckets) == [date(2026, 1, 7)]
        assert len(buckets[date(2026, 1, 7)]) == 2

    def test_west_of_utc_moves_to_previous_day(self) -> None:
        new_york = ZoneInfo("America/New_York")
        events = [ev("2026-01-08 02:00", "OUT")]
        buckets = group_events_by_day(events, date(2026, 1, 1), date(2026, 1, 31), new_york)
        assert list(buckets) == [date(2026, 1, 7)]

    def test_events_outside_range_are_dropped(self) -> None:
        events = [
            ev("2025-12-31 09:00", "IN"),
            ev("2026-01-05 09:00", "IN"),
            ev("2026-02-01 09:00", "IN"),
        ]
        buckets = group_events_by_day(events, date(2026, 1, 1), date(2026, 1, 31), UTC)
        assert list(buckets) == [date(2026, 1, 5)]

    def test_empty_input(self) -> None:
        assert group_events_by_day([], date(2026, 1, 1), date(2026, 1, 31), UTC) == {}

    def test_buckets_are_sorted(self) -> None:
        events = [ev("2026-01-05 17:00", "OUT"), ev("2026-01-05 09:00", "IN")]
        buckets = group_events_by_day(events, date(2026, 1, 5), date(2026, 1, 5), UTC)
        assert [e.event for e in buckets[date(2026, 1, 5)]] == ["IN", "OUT"]


# ---------------------------------------------------------------------------
# Classification, arrival, log status
# ---------------------------------------------------------------------------


class TestClassification:
    def test_weekday_without_events_is_no_data(self) -> None:
        day = build_day_summary(WEDNESDAY, [], now=utc("2026-01-07 20:00"), tz=UTC)
        assert day.classification == "NO_DATA"
        assert day.log_status == "EMPTY"
        assert day.arrival.status == "NONE"
        assert day.segments == []

    @pytest.mark.parametrize("weekend", [date(2026, 1, 10), date(2026, 1, 11)])
    def test_weekend_ignores_events(self, weekend: date) -> None:
        events = [
            ev(f"{weekend.isoformat()} 09:00", "IN"),
            ev(f"{weekend.isoformat()} 17:00", "OUT"),
        ]
        day = build_day_summary(weekend, events, now=utc("2026-01-12 09:00"), tz=UTC)

        assert day.classification == "WEEKEND_OFF"
        assert day.segments == []
        assert day.total_minutes == 0
        assert day.log_status == "EMPTY"
        assert day.arrival.status == "NONE"

    def test_classify_day(self) -> None:
        assert classify_day(SATURDAY, []) == "WEEKEND_OFF"
        assert classify_day(WEDNESDAY, []) == "NO_DATA"
        assert classify_day(WEDNESDAY, [ev("2026-01-07 14:00", "OUT")]) == "WORKED"

    def test_arrival_uses_local_time(self) -> None:
        kolkata = ZoneInfo("Asia/Kolkata")
        # 03:45Z is 09:15 in Kolkata
        arrival = compute_arrival([ev("2026-01-07 03:45", "IN")], time(9, 0), kolkata)
        assert arrival.status == "LATE"
        assert arrival.late_minutes == 15

    def test_arrival_uses_earliest_in(self) -> None:
        events = [
            ev("2026-01-07 08:30", "OUT"),
            ev("2026-01-07 13:00", "IN"),
            ev("2026-01-07 08:50", "IN"),
        ]
        arrival = compute_arrival(events, time(9, 0), UTC)
        assert arrival.status == "ON_TIME"
        assert arrival.first_in_time == utc("2026-01-07 08:50")

    def test_arrival_exactly_at_shift_start_is_on_time(self) -> None:
        arrival = compute_arrival([ev("2026-01-07 09:00", "IN")], time(9, 0), UTC)
        assert arrival.status == "ON_TIME"

    def test_arrival_respects_custom_shift_start(self) -> None:
        arrival = compute_arrival([ev("2026-01-07 14:20", "IN")], time(14, 0), UTC)
        assert arrival.status == "LATE"
        assert arrival.late_minutes == 20

    def test_log_status(self) -> None:
        closed, _ = pair_segments(
            [ev("2026-01-07 09:00", "IN"), ev("2026-01-07 10:00", "OUT")],
            utc("2026-01-07 12:00"),
        )
        open_, _ = pair_segments([ev("2026-01-07 09:00", "IN")], utc("2026-01-07 12:00"))

        assert log_status([]) == "EMPTY"
        assert log_status(closed) == "COMPLETE"
        assert log_status(closed + open_) == "OPEN"


# ---------------------------------------------------------------------------
# Range assembly
# ---------------------------------------------------------------------------


class TestAssembly:
    def test_month_is_dense_and_descending(self) -> None:
        events = [
            ev("2026-01-07 09:05", "IN"),
            ev("2026-01-07 18:00", "OUT"),
            ev("2026-01-10 10:00", "IN"),  # Saturday
            ev("2026-02-02 09:00", "IN"),  # outside the month
        ]
        start, end = month_window(2026, 1)
        days = assemble_range(events, start, end, now=utc("2026-02-03 12:00"), tz=UTC)

        assert len(days) == 31
        assert days[0].date == date(2026, 1, 31)
        assert days[-1].date == date(2026, 1, 1)
        for newer, older in zip(days, days[1:]):
            assert newer.date - older.date == timedelta(days=1)

        by_date = {d.date: d for d in days}
        assert by_date[date(2026, 1, 7)].classification == "WORKED"
        assert by_date[date(2026, 1, 7)].total_minutes == 535
        assert by_date[date(2026, 1, 10)].classification == "WEEKEND_OFF"
        assert by_date[date(2026, 1, 8)].classification == "NO_DATA"

    def test_inverted_range_is_empty(self) -> None:
        days = assemble_range([], date(2026, 1, 10), date(2026, 1, 1), now=utc("2026-01-10 00:00"), tz=UTC)
        assert days == []

    def test_shift_start_is_passed_through(self) -> None:
        events = [ev("2026-01-07 10:30", "IN"), ev("2026-01-07 18:00", "OUT")]
        days = assemble_range(
            events, WEDNESDAY, WEDNESDAY,
            now=utc("2026-01-07 20:00"), tz=UTC, shift_start=time(10, 0),
        )
        assert days[0].arrival.late_minutes == 30

    def test_rolling_window(self) -> None:
        assert rolling_window(date(2026, 1, 20), 30) == (date(2025, 12, 22), date(2026, 1, 20))
        assert rolling_window(date(2026, 1, 20), 1) == (date(2026, 1, 20), date(2026, 1, 20))
        with pytest.raises(ValueError):
            rolling_window(date(2026, 1, 20), 0)

    def test_month_window(self) -> None:
        assert month_window(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_window(2026, 12) == (date(2026, 12, 1), date(2026, 12, 31))

    def test_rolling_range_length(self) -> None:
        start, end = rolling_window(date(2026, 1, 20), 30)
        days = assemble_range([], start, end, now=utc("2026-01-20 12:00"), tz=UTC)
        assert len(days) == 30
        assert len({d.date for d in days}) == 30


class TestWorkBreakdown:
    """Effective time is the sum of closed segments, breaks fill the span between them."""

    def test_lunch_gap_is_a_break(self) -> None:
        segments, _ = pair_segments(
            [
                ev("2026-01-07 09:00", "IN"),
                ev("2026-01-07 13:00", "OUT"),
                ev("2026-01-07 14:00", "IN"),
                ev("2026-01-07 18:00", "OUT"),
            ],
            now=utc("2026-01-07 20:00"),
        )
        assert work_breakdown(segments) == (480, 60)

    def test_open_segment_is_not_counted(self) -> None:
        day = build_day_summary(
            WEDNESDAY,
            [
                ev("2026-01-07 09:00", "IN"),
                ev("2026-01-07 12:00", "OUT"),
                ev("2026-01-07 13:00", "IN"),
            ],
            now=utc("2026-01-07 15:00"),
            tz=UTC,
        )
        assert day.total_minutes == 300
        assert day.effective_minutes == 180
        assert day.break_minutes == 0

    def test_zero_length_segment_is_not_counted(self) -> None:
        segments, _ = pair_segments(
            [
                ev("2026-01-07 09:00", "IN"),
                ev("2026-01-07 09:30", "IN"),
                ev("2026-01-07 12:00", "OUT"),
            ],
            now=utc("2026-01-07 20:00"),
        )
        assert work_breakdown(segments) == (150, 0)

    def test_no_segments(self) -> None:
        assert work_breakdown([]) == (0, 0)

    def test_non_worked_days_have_no_breaks(self) -> None:
        day = build_day_summary(SATURDAY, [], now=utc("2026-01-10 12:00"), tz=UTC)
        assert (day.effective_minutes, day.break_minutes) == (0, 0)


class TestSummarizeRange:
    def test_stats(self) -> None:
        events = [
            ev("2026-01-05 09:30", "IN"),
            ev("2026-01-05 17:30", "OUT"),
            ev("2026-01-06 08:55", "IN"),
            ev("2026-01-06 12:55", "OUT"),
            ev("2026-01-07 09:00", "IN"),
        ]
        days = assemble_range(
            events, date(2026, 1, 5), date(2026, 1, 11), now=utc("2026-01-07 11:00"), tz=UTC
        )
        stats = summarize_range(days)

        assert stats.days == 7
        assert stats.worked_days == 3
        assert stats.late_days == 1
        assert stats.open_days == 1
        assert stats.total_minutes == 480 + 240 + 120
        assert stats.avg_minutes_per_worked_day == 280.0
        assert stats.break_minutes == 0

    def test_break_minutes_add_up(self) -> None:
        events = [
            ev("2026-01-05 09:00", "IN"),
            ev("2026-01-05 12:00", "OUT"),
            ev("2026-01-05 13:00", "IN"),
            ev("2026-01-05 18:00", "OUT"),
            ev("2026-01-06 09:00", "IN"),
            ev("2026-01-06 12:30", "OUT"),
            ev("2026-01-06 13:00", "IN"),
            ev("2026-01-06 17:00", "OUT"),
        ]
        days = assemble_range(
            events, date(2026, 1, 5), date(2026, 1, 6), now=utc("2026-01-07 00:00"), tz=UTC
        )
        assert summarize_range(days).break_minutes == 90

    def test_no_worked_days(self) -> None:
        stats = summarize_range([])
        assert stats.worked_days == 0
        assert stats.avg_minutes_per_worked_day is None


def test_parse_clock_time() -> None:
    assert parse_clock_time("09:00") == time(9, 0)
    assert parse_clock_time(" 14:30 ") == time(14, 30)
    with pytest.raises(ValueError):
        parse_clock_time("25:00")
