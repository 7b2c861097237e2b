from __future__ import annotations

import sys
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sunset.location import Location, LocationSource
from sunset.results import ClockTime

BASE_DATE = date(2024, 1, 1)


class LinearSunsetOracle:
    """Sunset advancing a fixed number of minutes per day from ``base``.

    Sunset is capped at ``cap`` so late targets are never reached. Days in
    ``missing`` yield no value and days in ``failing`` raise.
    """

    name = "stub"

    def __init__(
        self,
        start: ClockTime = ClockTime(16, 40),
        per_day: int = 2,
        cap: ClockTime = ClockTime(20, 30),
        base: date = BASE_DATE,
        missing: Iterable[date] = (),
        failing: Iterable[date] = (),
    ) -> None:
        self.start = start
        self.per_day = per_day
        self.cap = cap
        self.base = base
        self.missing = set(missing)
        self.failing = set(failing)
        self.calls: List[date] = []

    def sunset_minutes(self, day: date) -> int:
        return min(self.start.minutes + self.per_day * (day - self.base).days, self.cap.minutes)

    def sun_times(
        self, lat: float, lon: float, day: date, tz: tzinfo
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        self.calls.append(day)
        if day in self.failing:
            raise RuntimeError(f"oracle exploded on {day}")
        if day in self.missing:
            return None, None
        midnight = datetime.combine(day, time.min, tzinfo=tz)
        return (
            midnight + timedelta(minutes=self.sunset_minutes(day)),
            midnight + timedelta(hours=7, minutes=30),
        )


@pytest.fixture
def stub_oracle() -> LinearSunsetOracle:
    return LinearSunsetOracle()


@pytest.fixture
def utc():
    return UTC


@pytest.fixture
def mid_latitude() -> Location:
    return Location(40.0, 0.0, source=LocationSource.manual, name="Test Point")


@pytest.fixture
def seattle() -> Location:
    return Location(
        47.6062,
        -122.3321,
        source=LocationSource.manual,
        name="Seattle, WA",
        timezone="America/Los_Angeles",
    )
