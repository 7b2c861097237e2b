"""Single-day sunset queries and the day-by-day milestone search."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterator, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .location import Location
from .oracle import AstralOracle, SolarOracle, SolarOracleAdapter, is_candidate_polar
from .results import (
    ClockTime,
    FailureKind,
    MilestoneMatch,
    NotFound,
    SearchResult,
    SunsetFailure,
    SunsetInfo,
    SunsetQueryResult,
)

__all__ = [
    "DEFAULT_HORIZON_DAYS",
    "SunsetProgression",
    "calculate_sunset_info",
    "calculate_sunset_progression",
    "find_sunset_after_time",
    "local_date",
    "localize",
    "resolve_timezone",
    "timezone_label",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 365
INVALID_COORDINATES_REASON = "Invalid coordinates"

DEFAULT_ORACLE = SolarOracleAdapter(AstralOracle())

OracleLike = Union[SolarOracle, SolarOracleAdapter, None]
DateLike = Union[date, datetime]


def _adapter(oracle: OracleLike) -> SolarOracleAdapter:
    if oracle is None:
        return DEFAULT_ORACLE
    if isinstance(oracle, SolarOracleAdapter):
        return oracle
    return SolarOracleAdapter(oracle)


def _approximate_offset_hours(longitude: float) -> int:
    return int(round(longitude / 15.0))


def resolve_timezone(location: Location, tz: Optional[tzinfo] = None) -> tzinfo:
    """Pick the zone every clock reading for *location* is made in.

    An explicit *tz* wins, then the location's IANA name, then a whole-hour
    offset approximated from longitude.
    """

    if tz is not None:
        return tz
    if location.timezone:
        try:
            return ZoneInfo(location.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            LOGGER.warning(
                json.dumps({"event": "unknown_timezone", "timezone": location.timezone})
            )
    return timezone(timedelta(hours=_approximate_offset_hours(location.longitude)))


def timezone_label(location: Location, tz: tzinfo) -> str:
    key = getattr(tz, "key", None)
    if key:
        return key
    offset = tz.utcoffset(None)
    if offset is None:
        hours = _approximate_offset_hours(location.longitude)
    else:
        hours = int(round(offset.total_seconds() / 3600.0))
    sign = "+" if hours >= 0 else "-"
    return f"UTC{sign}{abs(hours):02d}:00"


def localize(moment: datetime, tz: tzinfo) -> datetime:
    """Attach *tz* to a naive *moment*, or convert an aware one."""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def local_date(value: DateLike, tz: tzinfo) -> date:
    if isinstance(value, datetime):
        return localize(value, tz).date()
    return value


def calculate_sunset_info(
    location: Location,
    day: DateLike,
    tz: Optional[tzinfo] = None,
    oracle: OracleLike = None,
) -> SunsetQueryResult:
    """Sunset and sunrise for *location* on the local calendar *day*.

    Returns
    -------
    SunsetInfo | PolarCondition | SunsetFailure
        Out-of-range coordinates fail before the oracle is consulted.
    """

    if not location.is_valid:
        return SunsetFailure(FailureKind.invalid_location, INVALID_COORDINATES_REASON)

    zone = resolve_timezone(location, tz)
    the_day = local_date(day, zone)
    adapter = _adapter(oracle)

    value = adapter.query(location.latitude, location.longitude, the_day, zone)
    if value is None:
        return adapter.explain_missing(location.latitude, the_day)

    return SunsetInfo(
        sunset=value.sunset.astimezone(zone),
        sunrise=value.sunrise.astimezone(zone),
        timezone=timezone_label(location, zone),
        date=the_day,
        location=location,
        is_polar_region=is_candidate_polar(location.latitude),
    )


class SunsetProgression:
    """Lazy, re-iterable sequence of daily queries starting at ``start``."""

    def __init__(
        self,
        location: Location,
        start: date,
        days: int,
        tz: Optional[tzinfo],
        oracle: OracleLike,
    ) -> None:
        self.location = location
        self.start = start
        self.days = max(days, 0)
        self.tz = tz
        self.oracle = oracle

    def __len__(self) -> int:
        return self.days

    def __iter__(self) -> Iterator[SunsetQueryResult]:
        for offset in range(self.days):
            yield calculate_sunset_info(
                self.location, self.start + timedelta(days=offset), self.tz, self.oracle
            )


def calculate_sunset_progression(
    location: Location,
    start: DateLike,
    days: int = 7,
    tz: Optional[tzinfo] = None,
    oracle: OracleLike = None,
) -> SunsetProgression:
    zone = resolve_timezone(location, tz)
    return SunsetProgression(location, local_date(start, zone), days, zone, oracle)


def find_sunset_after_time(
    location: Location,
    target: ClockTime,
    start: DateLike,
    max_days: int = DEFAULT_HORIZON_DAYS,
    tz: Optional[tzinfo] = None,
    oracle: OracleLike = None,
) -> SearchResult:
    """Find the first day from *start* whose sunset is at or after *target*.

    Days are scanned in order, at most *max_days* of them. Sunset time of
    day drifts with the seasons but is not strictly monotonic near the
    solstices, so the scan stays linear. Days whose query fails are skipped.
    Only hours and minutes of the sunset are compared. Out-of-range
    coordinates return :class:`NotFound` without scanning.
    """

    if not location.is_valid:
        return NotFound(target=target, max_days=0)

    zone = resolve_timezone(location, tz)
    first_day = local_date(start, zone)
    adapter = _adapter(oracle)

    for offset in range(max_days):
        day = first_day + timedelta(days=offset)
        result = calculate_sunset_info(location, day, zone, adapter)
        if not isinstance(result, SunsetInfo):
            continue
        if result.sunset.hour * 60 + result.sunset.minute >= target.minutes:
            LOGGER.debug(
                json.dumps(
                    {
                        "event": "milestone_search",
                        "target": str(target),
                        "start": first_day.isoformat(),
                        "match": day.isoformat(),
                        "days_scanned": offset + 1,
                    }
                )
            )
            return MilestoneMatch(date=day, sunset=result.sunset)

    LOGGER.debug(
        json.dumps(
            {
                "event": "milestone_search",
                "target": str(target),
                "start": first_day.isoformat(),
                "match": None,
                "days_scanned": max_days,
            }
        )
    )
    return NotFound(target=target, max_days=max_days)
