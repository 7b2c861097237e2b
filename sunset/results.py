"""Result values produced by sunset queries and milestone searches."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from .location import Location


class PolarType(str, Enum):
    """Period during which the sun neither sets nor rises."""

    midnight_sun = "midnight-sun"
    polar_night = "polar-night"


class FailureKind(str, Enum):
    """Non-polar reasons a single-day query can fail."""

    invalid_location = "invalid-location"
    oracle_failure = "oracle-failure"


class MilestoneKind(str, Enum):
    """Classification of a milestone clock time."""

    hour = "hour"
    half_hour = "half-hour"
    exact_sunset = "exact-sunset"
    golden_hour = "golden-hour"


@dataclass(frozen=True)
class ClockTime:
    """Time of day expressed as minutes after local midnight."""

    hour: int
    minute: int = 0

    @classmethod
    def from_minutes(cls, total: int) -> "ClockTime":
        return cls(total // 60, total % 60)

    @classmethod
    def from_hours(cls, value: float) -> "ClockTime":
        """Build from fractional hours, ``18.5`` being 6:30 PM.

        Raises ``ValueError`` unless the value rounds to a time within one day.
        """

        total = int(round(value * 60))
        if not (0.0 <= value < 24.0 and total < 24 * 60):
            raise ValueError(f"Hour value out of range: {value!r}")
        return cls.from_minutes(total)

    @classmethod
    def parse(cls, text: str) -> "ClockTime":
        hour, _, minute = text.strip().partition(":")
        clock = cls(int(hour), int(minute or 0))
        if not (0 <= clock.hour <= 23 and 0 <= clock.minute < 60):
            raise ValueError(f"Invalid clock time: {text!r}")
        return clock

    @property
    def minutes(self) -> int:
        return self.hour * 60 + self.minute

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class SunsetInfo:
    """Successful single-day query."""

    sunset: datetime
    sunrise: datetime
    timezone: str
    date: date
    location: Location
    is_polar_region: bool = False

    success = True


@dataclass(frozen=True)
class PolarCondition:
    """The oracle produced no value at a high latitude."""

    polar_type: PolarType
    reason: str

    success = False


@dataclass(frozen=True)
class SunsetFailure:
    """Invalid input or an oracle that produced nothing outside polar latitudes."""

    kind: FailureKind
    reason: str

    success = False


SunsetQueryResult = Union[SunsetInfo, PolarCondition, SunsetFailure]


@dataclass(frozen=True)
class MilestoneMatch:
    """First date whose sunset reaches a target, with the exact sunset instant."""

    date: date
    sunset: datetime

    found = True


@dataclass(frozen=True)
class NotFound:
    """The search horizon was exhausted without a qualifying sunset."""

    target: ClockTime
    max_days: int

    found = False


SearchResult = Union[MilestoneMatch, NotFound]


@dataclass(frozen=True)
class Milestone:
    time: ClockTime
    kind: MilestoneKind
    label: str
    is_primary: bool = False


@dataclass(frozen=True)
class NextMilestone:
    """The primary milestone and when sunset first reaches it."""

    milestone: Milestone
    match: MilestoneMatch
    sunset_info: SunsetInfo
    days_until: int

    success = True


@dataclass(frozen=True)
class UpcomingMilestone:
    milestone: Milestone
    match: MilestoneMatch
    days_until: int


@dataclass(frozen=True)
class MilestoneError:
    """Why no primary milestone could be resolved.

    ``cause`` holds the failing query result when today's sunset could not be
    computed.
    """

    error: str
    cause: Optional[Union[PolarCondition, SunsetFailure, NotFound]] = None

    success = False


@dataclass(frozen=True)
class CountdownBreakdown:
    days: int
    hours: int
    minutes: int
    seconds: int
    total_minutes: int
    target: datetime
    milestone: Milestone


@dataclass(frozen=True)
class CalendarEntry:
    """``date`` is ``None`` and ``days_from_now`` -1 when no match; ``reason`` says why."""

    label: str
    date: Optional[date]
    days_from_now: int
    reason: Optional[str] = None
