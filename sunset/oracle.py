"""Solar oracle backends and the adapter that normalises their output."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Optional, Protocol, Tuple, Union

from astral import Observer
from astral.sun import sunrise as astral_sunrise
from astral.sun import sunset as astral_sunset

from . import astro
from .results import FailureKind, PolarCondition, PolarType, SunsetFailure

__all__ = [
    "AstralOracle",
    "EphemerisOracle",
    "OracleValue",
    "SolarOracle",
    "SolarOracleAdapter",
    "classify_polar",
    "is_candidate_polar",
]

LOGGER = logging.getLogger(__name__)

POLAR_LATITUDE = 66.5
NORTHERN_WINTER_DAYS = (range(340, 367), range(1, 51))

ORACLE_FAILURE_REASON = "Unable to calculate sunset times for this location and date"


class SolarOracle(Protocol):
    """Anything that can produce sunset and sunrise for a local calendar day.

    Either value may be ``None`` when the sun does not cross the horizon.
    """

    name: str

    def sun_times(
        self, lat: float, lon: float, day: date, tz: tzinfo
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        ...


class AstralOracle:
    """NOAA sunrise equation from :mod:`astral`."""

    name = "astral"

    def sun_times(
        self, lat: float, lon: float, day: date, tz: tzinfo
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        observer = Observer(latitude=lat, longitude=lon)
        return (
            self._crossing(astral_sunset, observer, day, tz),
            self._crossing(astral_sunrise, observer, day, tz),
        )

    @staticmethod
    def _crossing(func, observer: Observer, day: date, tz: tzinfo) -> Optional[datetime]:
        # astral raises ValueError when the sun stays above or below the horizon.
        try:
            return func(observer, date=day, tzinfo=tz)
        except ValueError:
            return None


class EphemerisOracle:
    """Crossings sampled from loaded JPL DE kernels, see :mod:`sunset.astro`."""

    name = "ephemeris"

    def __init__(self, elev_m: float = 0.0, twilight: str = "official") -> None:
        self.elev_m = elev_m
        self.twilight = twilight

    def sun_times(
        self, lat: float, lon: float, day: date, tz: tzinfo
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        times = astro.compute_sun_times(day, tz, lat, lon, self.elev_m, self.twilight)
        return times.sunset, times.sunrise


@dataclass(frozen=True)
class OracleValue:
    sunset: datetime
    sunrise: datetime


def is_candidate_polar(lat: float) -> bool:
    """Whether midnight sun or polar night is plausible at *lat*."""

    return abs(lat) > POLAR_LATITUDE


def classify_polar(lat: float, day: date) -> PolarType:
    """Guess the polar period from the day of year and hemisphere.

    Days 150-200 count as northern summer and 340-366 or 1-50 as northern
    winter. Dates outside both windows get the summer reading, so only the
    winter window changes the answer.
    """

    day_of_year = day.timetuple().tm_yday
    winter = any(day_of_year in window for window in NORTHERN_WINTER_DAYS)
    if lat > 0:
        return PolarType.polar_night if winter else PolarType.midnight_sun
    return PolarType.midnight_sun if winter else PolarType.polar_night


class SolarOracleAdapter:
    """Wraps a :class:`SolarOracle`, treating exceptions and gaps alike."""

    def __init__(self, oracle: SolarOracle) -> None:
        self.oracle = oracle

    @property
    def name(self) -> str:
        return self.oracle.name

    def query(self, lat: float, lon: float, day: date, tz: tzinfo) -> Optional[OracleValue]:
        """Return both instants, or ``None`` if either is missing or falls
        outside the local calendar *day*."""

        try:
            sunset, sunrise = self.oracle.sun_times(lat, lon, day, tz)
        except Exception as exc:
            LOGGER.warning(
                json.dumps(
                    {
                        "event": "oracle_error",
                        "oracle": self.name,
                        "lat": lat,
                        "lon": lon,
                        "date": day.isoformat(),
                        "error": str(exc),
                    }
                )
            )
            return None
        if sunset is None or sunrise is None:
            return None
        if sunset.astimezone(tz).date() != day or sunrise.astimezone(tz).date() != day:
            LOGGER.debug(
                json.dumps(
                    {
                        "event": "oracle_off_day",
                        "oracle": self.name,
                        "date": day.isoformat(),
                        "sunset": sunset.isoformat(),
                        "sunrise": sunrise.isoformat(),
                    }
                )
            )
            return None
        return OracleValue(sunset=sunset, sunrise=sunrise)

    @staticmethod
    def explain_missing(lat: float, day: date) -> Union[PolarCondition, SunsetFailure]:
        """Describe why the oracle gave no value for *day* at *lat*."""

        if not is_candidate_polar(lat):
            return SunsetFailure(FailureKind.oracle_failure, ORACLE_FAILURE_REASON)
        polar_type = classify_polar(lat, day)
        label = "Midnight sun" if polar_type is PolarType.midnight_sun else "Polar night"
        return PolarCondition(polar_type, f"{label} - no sunset during this period")
