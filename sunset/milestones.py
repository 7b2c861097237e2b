"""Milestone ladder, countdown and calendar built on the sunset search."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Iterable, List, Optional, Union

from .calculator import (
    DEFAULT_HORIZON_DAYS,
    INVALID_COORDINATES_REASON,
    DateLike,
    OracleLike,
    calculate_sunset_info,
    find_sunset_after_time,
    local_date,
    localize,
    resolve_timezone,
)
from .location import Location
from .results import (
    CalendarEntry,
    ClockTime,
    CountdownBreakdown,
    Milestone,
    MilestoneError,
    MilestoneKind,
    MilestoneMatch,
    NextMilestone,
    SunsetInfo,
    UpcomingMilestone,
)

__all__ = [
    "DEFAULT_CALENDAR_HOURS",
    "LADDER_END",
    "LADDER_START",
    "LADDER_STEP_MINUTES",
    "calculate_countdown",
    "classify_milestone",
    "format_clock_label",
    "format_milestone_label",
    "generate_ladder",
    "get_milestone_calendar",
    "get_next_milestone",
    "get_upcoming_milestones",
    "next_boundary",
]

LADDER_START = ClockTime(16, 0)
LADDER_END = ClockTime(21, 0)
LADDER_STEP_MINUTES = 30
DEFAULT_CALENDAR_HOURS = (16.5, 17, 17.5, 18, 18.5, 19, 19.5, 20, 20.5, 21)

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR


def classify_milestone(clock: ClockTime) -> MilestoneKind:
    if clock.minute == 0:
        return MilestoneKind.hour
    if clock.minute == 30:
        return MilestoneKind.half_hour
    return MilestoneKind.exact_sunset


def format_clock_label(clock: ClockTime) -> str:
    """12-hour label such as ``6:30 PM``."""

    hour = clock.hour % 12 or 12
    suffix = "PM" if clock.hour >= 12 else "AM"
    return f"{hour}:{clock.minute:02d} {suffix}"


def format_milestone_label(clock: ClockTime, kind: MilestoneKind) -> str:
    if kind is MilestoneKind.exact_sunset:
        return "Sunset"
    if kind is MilestoneKind.golden_hour:
        return "Golden Hour"
    return format_clock_label(clock)


def _milestone(clock: ClockTime, is_primary: bool = False) -> Milestone:
    kind = classify_milestone(clock)
    return Milestone(clock, kind, format_milestone_label(clock, kind), is_primary)


def generate_ladder(
    lower: ClockTime = LADDER_START,
    upper: ClockTime = LADDER_END,
    step: int = LADDER_STEP_MINUTES,
) -> List[Milestone]:
    """Clock times from *lower* to *upper* inclusive, *step* minutes apart."""

    return [
        _milestone(ClockTime.from_minutes(minutes))
        for minutes in range(lower.minutes, upper.minutes + 1, step)
    ]


def next_boundary(clock: ClockTime, step: int = LADDER_STEP_MINUTES) -> int:
    """Minutes after midnight of the first *step* boundary strictly after *clock*.

    The result may reach or pass midnight.
    """

    return (clock.minutes // step + 1) * step


def _days_between(later: date, earlier: date) -> int:
    return (later - earlier).days


def get_next_milestone(
    location: Location,
    now: DateLike,
    tz: Optional[tzinfo] = None,
    oracle: OracleLike = None,
    max_days: int = DEFAULT_HORIZON_DAYS,
) -> Union[NextMilestone, MilestoneError]:
    """Resolve the primary milestone: the next half-hour past today's sunset.

    Today's sunset is rounded up to the following 30-minute boundary and the
    search runs from today's date. ``days_until`` counts calendar days from
    *now*'s date to the matching date.
    """

    zone = resolve_timezone(location, tz)
    today = local_date(now, zone)

    today_result = calculate_sunset_info(location, today, zone, oracle)
    if not isinstance(today_result, SunsetInfo):
        return MilestoneError(today_result.reason, cause=today_result)

    sunset = today_result.sunset
    target_minutes = next_boundary(ClockTime(sunset.hour, sunset.minute))
    if target_minutes >= 24 * 60:
        return MilestoneError("No milestone remains after today's sunset")
    target = ClockTime.from_minutes(target_minutes)

    match = find_sunset_after_time(location, target, today, max_days, zone, oracle)
    if not isinstance(match, MilestoneMatch):
        return MilestoneError("Could not find when sunset reaches next milestone", cause=match)

    matched_info = calculate_sunset_info(location, match.date, zone, oracle)
    if not isinstance(matched_info, SunsetInfo):
        matched_info = today_result

    return NextMilestone(
        milestone=_milestone(target, is_primary=True),
        match=match,
        sunset_info=matched_info,
        days_until=_days_between(match.date, today),
    )


def get_upcoming_milestones(
    location: Location,
    now: DateLike,
    count: int = 4,
    tz: Optional[tzinfo] = None,
    oracle: OracleLike = None,
    upper: ClockTime = LADDER_END,
    step: int = LADDER_STEP_MINUTES,
    max_days: int = DEFAULT_HORIZON_DAYS,
) -> List[UpcomingMilestone]:
    """Milestones after the primary one, each resolved by its own search.

    Stops at *upper* (inclusive) or after *count* entries. Times that sunset
    never reaches within the horizon are left out.
    """

    if count <= 0:
        return []

    zone = resolve_timezone(location, tz)
    today = local_date(now, zone)
    primary = get_next_milestone(location, today, zone, oracle, max_days)
    if not isinstance(primary, NextMilestone):
        return []

    upcoming: List[UpcomingMilestone] = []
    minutes = primary.milestone.time.minutes
    while len(upcoming) < count:
        minutes += step
        if minutes > upper.minutes:
            break
        clock = ClockTime.from_minutes(minutes)
        match = find_sunset_after_time(location, clock, today, max_days, zone, oracle)
        if isinstance(match, MilestoneMatch):
            upcoming.append(
                UpcomingMilestone(_milestone(clock), match, _days_between(match.date, today))
            )
    return upcoming


def calculate_countdown(
    location: Location,
    now: datetime,
    tz: Optional[tzinfo] = None,
    oracle: OracleLike = None,
    max_days: int = DEFAULT_HORIZON_DAYS,
) -> Optional[CountdownBreakdown]:
    """Time left until sunset first reaches the primary milestone.

    ``None`` when there is no primary milestone or its sunset is not in the
    future.
    """

    zone = resolve_timezone(location, tz)
    moment = localize(now, zone)
    primary = get_next_milestone(location, moment, zone, oracle, max_days)
    if not isinstance(primary, NextMilestone):
        return None

    target = primary.match.sunset
    # Subtract in UTC; same-zone aware subtraction ignores DST offsets.
    remaining = target.astimezone(UTC) - moment.astimezone(UTC)
    if remaining <= timedelta(0):
        return None

    total_ms = remaining // timedelta(milliseconds=1)
    return CountdownBreakdown(
        days=total_ms // MS_PER_DAY,
        hours=(total_ms % MS_PER_DAY) // MS_PER_HOUR,
        minutes=(total_ms % MS_PER_HOUR) // MS_PER_MINUTE,
        seconds=(total_ms % MS_PER_MINUTE) // MS_PER_SECOND,
        total_minutes=total_ms // MS_PER_MINUTE,
        target=target,
        milestone=primary.milestone,
    )


def get_milestone_calendar(
    location: Location,
    start: DateLike,
    milestone_hours: Iterable[float] = DEFAULT_CALENDAR_HOURS,
    tz: Optional[tzinfo] = None,
    oracle: OracleLike = None,
    max_days: int = DEFAULT_HORIZON_DAYS,
) -> List[CalendarEntry]:
    """When sunset next reaches each of *milestone_hours*, in the order given.

    Unmatched entries carry a ``reason``; out-of-range coordinates mark every
    entry invalid without searching.
    """

    zone = resolve_timezone(location, tz)
    first_day = local_date(start, zone)
    reason = f"Sunset does not reach this time within {max_days} days"

    entries: List[CalendarEntry] = []
    for hours in milestone_hours:
        clock = ClockTime.from_hours(hours)
        label = format_clock_label(clock)
        if not location.is_valid:
            entries.append(CalendarEntry(label, None, -1, INVALID_COORDINATES_REASON))
            continue
        match = find_sunset_after_time(location, clock, first_day, max_days, zone, oracle)
        if isinstance(match, MilestoneMatch):
            entries.append(CalendarEntry(label, match.date, _days_between(match.date, first_day)))
        else:
            entries.append(CalendarEntry(label, None, -1, reason))
    return entries
