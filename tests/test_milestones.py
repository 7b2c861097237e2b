from __future__ import annotations

import re
from datetime import UTC, date, datetime, timedelta

import pytest

from conftest import LinearSunsetOracle
from sunset.location import Location
from sunset.milestones import (
    calculate_countdown,
    classify_milestone,
    format_clock_label,
    format_milestone_label,
    generate_ladder,
    get_milestone_calendar,
    get_next_milestone,
    get_upcoming_milestones,
    next_boundary,
)
from sunset.oracle import AstralOracle
from sunset.results import (
    ClockTime,
    MilestoneError,
    MilestoneKind,
    NextMilestone,
    NotFound,
    PolarCondition,
    SunsetFailure,
)

NOON = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


def test_default_ladder():
    ladder = generate_ladder()
    assert [str(item.time) for item in ladder] == [
        "16:00", "16:30", "17:00", "17:30", "18:00", "18:30",
        "19:00", "19:30", "20:00", "20:30", "21:00",
    ]
    assert ladder[0].label == "4:00 PM"
    assert ladder[-1].label == "9:00 PM"
    assert [item.kind for item in ladder[:2]] == [MilestoneKind.hour, MilestoneKind.half_hour]
    assert not any(item.is_primary for item in ladder)


def test_reconfigured_ladder_bounds():
    ladder = generate_ladder(ClockTime(17, 0), ClockTime(18, 0), 20)
    assert [str(item.time) for item in ladder] == ["17:00", "17:20", "17:40", "18:00"]
    assert ladder[1].kind is MilestoneKind.exact_sunset
    assert ladder[1].label == "Sunset"


def test_labels():
    assert format_clock_label(ClockTime(18, 30)) == "6:30 PM"
    assert format_clock_label(ClockTime(12, 0)) == "12:00 PM"
    assert format_clock_label(ClockTime(0, 15)) == "12:15 AM"
    assert format_milestone_label(ClockTime(19, 0), MilestoneKind.golden_hour) == "Golden Hour"
    assert classify_milestone(ClockTime(17, 45)) is MilestoneKind.exact_sunset


@pytest.mark.parametrize(
    "clock, expected",
    [
        (ClockTime(16, 40), ClockTime(17, 0)),
        (ClockTime(17, 0), ClockTime(17, 30)),
        (ClockTime(17, 29), ClockTime(17, 30)),
        (ClockTime(17, 30), ClockTime(18, 0)),
    ],
)
def test_next_boundary_is_strictly_later(clock, expected):
    assert next_boundary(clock) == expected.minutes


def test_next_milestone(mid_latitude, stub_oracle):
    result = get_next_milestone(mid_latitude, NOON, UTC, stub_oracle)
    assert isinstance(result, NextMilestone)
    assert result.milestone.time == ClockTime(17, 0)
    assert result.milestone.kind is MilestoneKind.hour
    assert result.milestone.label == "5:00 PM"
    assert result.milestone.is_primary is True
    assert result.match.date == date(2024, 1, 11)
    assert result.days_until == 10
    assert result.sunset_info.date == date(2024, 1, 11)


def test_next_milestone_skips_an_exact_boundary(mid_latitude):
    oracle = LinearSunsetOracle(start=ClockTime(17, 0))
    result = get_next_milestone(mid_latitude, NOON, UTC, oracle)
    assert result.milestone.time == ClockTime(17, 30)
    assert result.milestone.kind is MilestoneKind.half_hour
    assert result.days_until == 15


def test_next_milestone_reports_invalid_location(stub_oracle):
    result = get_next_milestone(Location(999, 999), NOON, UTC, stub_oracle)
    assert isinstance(result, MilestoneError)
    assert isinstance(result.cause, SunsetFailure)
    assert result.success is False


def test_next_milestone_reports_polar_condition(stub_oracle):
    stub_oracle.missing = {date(2024, 1, 1)}
    result = get_next_milestone(Location(75.0, 15.0), NOON, UTC, stub_oracle)
    assert isinstance(result, MilestoneError)
    assert isinstance(result.cause, PolarCondition)
    assert result.error.startswith("Polar night")


def test_next_milestone_not_reached(mid_latitude):
    frozen = LinearSunsetOracle(per_day=0)
    result = get_next_milestone(mid_latitude, NOON, UTC, frozen)
    assert isinstance(result, MilestoneError)
    assert isinstance(result.cause, NotFound)


def test_upcoming_milestones(mid_latitude, stub_oracle):
    upcoming = get_upcoming_milestones(mid_latitude, NOON, 3, UTC, stub_oracle)
    assert [str(item.milestone.time) for item in upcoming] == ["17:30", "18:00", "18:30"]
    assert [item.days_until for item in upcoming] == [25, 40, 55]
    assert [item.milestone.kind for item in upcoming] == [
        MilestoneKind.half_hour,
        MilestoneKind.hour,
        MilestoneKind.half_hour,
    ]
    assert not any(item.milestone.is_primary for item in upcoming)


def test_upcoming_milestones_zero_count(mid_latitude, stub_oracle):
    assert get_upcoming_milestones(mid_latitude, NOON, 0, UTC, stub_oracle) == []
    assert stub_oracle.calls == []


def test_upcoming_milestones_stop_at_upper_bound(mid_latitude):
    oracle = LinearSunsetOracle(cap=ClockTime(22, 0))
    upcoming = get_upcoming_milestones(mid_latitude, NOON, 20, UTC, oracle)
    assert len(upcoming) == 8
    assert upcoming[-1].milestone.label == "9:00 PM"
    assert all(item.milestone.time.minutes <= 21 * 60 for item in upcoming)


def test_upcoming_milestones_omit_unreached_times(mid_latitude):
    oracle = LinearSunsetOracle(cap=ClockTime(18, 0))
    upcoming = get_upcoming_milestones(mid_latitude, NOON, 4, UTC, oracle)
    assert [str(item.milestone.time) for item in upcoming] == ["17:30", "18:00"]


def test_upcoming_milestones_without_primary(stub_oracle):
    assert get_upcoming_milestones(Location(999, 999), NOON, 4, UTC, stub_oracle) == []


def test_countdown(mid_latitude, stub_oracle):
    countdown = calculate_countdown(mid_latitude, NOON, UTC, stub_oracle)
    assert (countdown.days, countdown.hours, countdown.minutes, countdown.seconds) == (10, 5, 0, 0)
    assert countdown.total_minutes == 14700
    assert countdown.target == datetime(2024, 1, 11, 17, 0, tzinfo=UTC)
    assert countdown.milestone.label == "5:00 PM"


def test_countdown_carries_remainders_down(mid_latitude, stub_oracle):
    now = NOON + timedelta(seconds=30, milliseconds=500)
    countdown = calculate_countdown(mid_latitude, now, UTC, stub_oracle)
    assert (countdown.days, countdown.hours, countdown.minutes, countdown.seconds) == (10, 4, 59, 29)
    assert countdown.total_minutes == 14699


def test_countdown_reads_naive_now_in_zone(mid_latitude, stub_oracle):
    countdown = calculate_countdown(mid_latitude, datetime(2024, 1, 1, 12, 0), UTC, stub_oracle)
    assert countdown.total_minutes == 14700


def test_countdown_without_milestone(stub_oracle):
    assert calculate_countdown(Location(999, 999), NOON, UTC, stub_oracle) is None


@pytest.mark.parametrize("hours_offset", range(0, 24 * 20, 7))
def test_countdown_components_are_bounded(mid_latitude, hours_offset):
    now = datetime(2024, 1, 1, tzinfo=UTC) + timedelta(hours=hours_offset, minutes=13, seconds=7)
    countdown = calculate_countdown(mid_latitude, now, UTC, LinearSunsetOracle())
    assert countdown is not None
    assert countdown.days >= 0
    assert 0 <= countdown.hours <= 23
    assert 0 <= countdown.minutes <= 59
    assert 0 <= countdown.seconds <= 59
    assert countdown.target > now


def test_calendar_keeps_input_order(mid_latitude, stub_oracle):
    entries = get_milestone_calendar(
        mid_latitude, date(2024, 1, 1), [17, 16.5, 21, 18.5], UTC, stub_oracle
    )
    assert [entry.label for entry in entries] == ["5:00 PM", "4:30 PM", "9:00 PM", "6:30 PM"]
    assert [entry.days_from_now for entry in entries] == [10, 0, -1, 55]
    assert entries[0].date == date(2024, 1, 11)
    assert entries[2].date is None


def test_calendar_for_seattle(seattle):
    entries = get_milestone_calendar(seattle, date(2024, 1, 15), [17, 18, 19], oracle=AstralOracle())
    assert [entry.label for entry in entries] == ["5:00 PM", "6:00 PM", "7:00 PM"]
    assert all(entry.date is not None and entry.days_from_now >= 0 for entry in entries)


def test_upcoming_milestones_for_seattle(seattle):
    upcoming = get_upcoming_milestones(seattle, date(2024, 3, 1), 10, oracle=AstralOracle())
    assert 0 < len(upcoming) <= 10
    minutes = [item.milestone.time.minutes for item in upcoming]
    assert minutes == sorted(set(minutes))
    assert minutes[-1] == 21 * 60


@pytest.mark.parametrize("day", [date(2024, 12, 21), date(2024, 3, 1)])
def test_next_milestone_for_seattle(seattle, day):
    result = get_next_milestone(seattle, day, oracle=AstralOracle())
    assert isinstance(result, NextMilestone)
    assert result.days_until >= 0
    assert re.match(r"\d{1,2}:\d{2} (AM|PM)", result.milestone.label)


def test_no_later_milestone_after_summer_solstice(seattle):
    result = get_next_milestone(seattle, date(2024, 6, 21), oracle=AstralOracle())
    assert isinstance(result, MilestoneError)
    assert isinstance(result.cause, NotFound)
    assert result.cause.target == ClockTime(21, 30)


def test_countdown_honours_search_horizon(mid_latitude, stub_oracle):
    assert calculate_countdown(mid_latitude, NOON, UTC, stub_oracle, max_days=5) is None
    countdown = calculate_countdown(mid_latitude, NOON, UTC, LinearSunsetOracle(), max_days=11)
    assert countdown.days == 10


def test_calendar_marks_invalid_location(stub_oracle):
    entries = get_milestone_calendar(Location(999, 999), date(2024, 1, 1), [17, 18], UTC, stub_oracle)
    assert [(entry.date, entry.days_from_now) for entry in entries] == [(None, -1), (None, -1)]
    assert {entry.reason for entry in entries} == {"Invalid coordinates"}
    assert stub_oracle.calls == []


def test_calendar_explains_unreached_time(mid_latitude, stub_oracle):
    [entry] = get_milestone_calendar(mid_latitude, date(2024, 1, 1), [21], UTC, stub_oracle, 30)
    assert entry.date is None
    assert entry.reason == "Sunset does not reach this time within 30 days"


@pytest.mark.parametrize("hours", [-1, -0.5, 24, 23.9999, 30])
def test_calendar_rejects_hours_outside_one_day(mid_latitude, stub_oracle, hours):
    with pytest.raises(ValueError):
        get_milestone_calendar(mid_latitude, date(2024, 1, 1), [hours], UTC, stub_oracle)


@pytest.mark.parametrize(
    "hours, expected",
    [(0, ClockTime(0, 0)), (18.5, ClockTime(18, 30)), (23.99, ClockTime(23, 59))],
)
def test_clock_time_from_hours(hours, expected):
    assert ClockTime.from_hours(hours) == expected
