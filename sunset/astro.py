"""Sunrise and sunset from JPL DE ephemerides."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, Tuple

import erfa
import numpy as np
import spiceypy as spice

__all__ = [
    "EphemerisError",
    "SunTimes",
    "TWILIGHT_ANGLES",
    "compute_sun_times",
    "ephemeris_loaded",
    "load_ephemeris",
    "loaded_files",
]

LOGGER = logging.getLogger(__name__)

TWILIGHT_ANGLES: Dict[str, float] = {
    "official": -0.833,
    "civil": -6.0,
    "nautical": -12.0,
    "astronomical": -18.0,
}

EARTH_EQUATORIAL_RADIUS_KM = 6378.137  # WGS84
EARTH_FLATTENING = 1.0 / 298.257223563  # WGS84
SAMPLE_STEP = timedelta(minutes=5)
MAX_BISECTIONS = 24

_LOADED_FILES: Optional[List[str]] = None
_LOAD_LOCK = Lock()


class EphemerisError(RuntimeError):
    """Raised when ephemeris loading or computation fails."""


@dataclass(frozen=True)
class SunTimes:
    """Horizon crossings found within one local calendar day.

    ``status`` is ``ok`` when at least one crossing exists, otherwise
    ``polar_day`` or ``polar_night`` depending on which side of the horizon
    the sun stayed.
    """

    sunrise: Optional[datetime]
    sunset: Optional[datetime]
    status: str


def load_ephemeris(bsp_dir: str) -> List[str]:
    """Furnish every ``.bsp`` kernel found in *bsp_dir*.

    Loading happens once per process; later calls return the cached list.

    Raises
    ------
    EphemerisError
        If the directory is missing or holds no kernels.
    """

    global _LOADED_FILES

    if _LOADED_FILES is not None:
        return _LOADED_FILES

    path = Path(bsp_dir).expanduser()
    if not path.is_dir():
        raise EphemerisError(f"Ephemeris directory not found: {path}")

    with _LOAD_LOCK:
        if _LOADED_FILES is not None:
            return _LOADED_FILES

        kernels = sorted(p for p in path.iterdir() if p.is_file() and p.suffix.lower() == ".bsp")
        if not kernels:
            raise EphemerisError(f"No .bsp ephemeris files found in directory: {path}")

        loaded: List[str] = []
        for kernel in kernels:
            try:
                spice.furnsh(str(kernel))
            except Exception as exc:
                spice.kclear()
                raise EphemerisError(f"Failed to load ephemeris file '{kernel}': {exc}") from exc
            loaded.append(kernel.name)

        _LOADED_FILES = loaded
        LOGGER.info(json.dumps({"event": "ephemeris_loaded", "files": loaded}))
        return loaded


def ephemeris_loaded() -> bool:
    return _LOADED_FILES is not None


def loaded_files() -> List[str]:
    return list(_LOADED_FILES or [])


def unload_ephemeris() -> None:
    """Forget every furnished kernel."""

    global _LOADED_FILES

    with _LOAD_LOCK:
        spice.kclear()
        _LOADED_FILES = None


def _julian_dates(instant: datetime) -> Tuple[Tuple[float, float], Tuple[float, float], float]:
    """Return the (TT, UT1) two-part Julian dates and SPICE ephemeris time."""

    if instant.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    utc = instant.astimezone(UTC)
    utc1, utc2 = erfa.dtf2d(
        "UTC",
        utc.year,
        utc.month,
        utc.day,
        utc.hour,
        utc.minute,
        utc.second + utc.microsecond / 1_000_000,
    )
    tt = erfa.taitt(*erfa.utctai(utc1, utc2))
    ut1 = erfa.utcut1(utc1, utc2, 0.0)
    et = (tt[0] - erfa.DJ00) * erfa.DAYSEC + tt[1] * erfa.DAYSEC
    return tt, ut1, et


class _Observer:
    """Topocentric sun altitude for one site, relative to a twilight threshold."""

    def __init__(self, lat: float, lon: float, elev_m: float, twilight: str) -> None:
        try:
            angle = TWILIGHT_ANGLES[twilight]
        except KeyError as exc:
            raise ValueError(f"Unsupported twilight selector: {twilight}") from exc
        # Horizon dip for an elevated observer, small-angle approximation.
        dip = math.degrees(math.sqrt(2.0 * elev_m / (EARTH_EQUATORIAL_RADIUS_KM * 1000.0))) if elev_m > 0 else 0.0
        self.threshold = angle - dip
        self.site = np.array(
            spice.georec(
                math.radians(lon),
                math.radians(lat),
                elev_m / 1000.0,
                EARTH_EQUATORIAL_RADIUS_KM,
                EARTH_FLATTENING,
            ),
            dtype=float,
        )
        self.zenith = self.site / np.linalg.norm(self.site)

    def elevation(self, instant: datetime) -> float:
        """Sun altitude minus the threshold, in degrees."""

        tt, ut1, et = _julian_dates(instant)
        sun_j2000, _ = spice.spkpos("SUN", et, "J2000", "LT+S", "EARTH")
        to_itrf = np.array(erfa.c2t06a(*tt, *ut1, 0.0, 0.0), dtype=float)
        topocentric = to_itrf @ np.array(sun_j2000, dtype=float) - self.site
        norm = np.linalg.norm(topocentric)
        if norm == 0:
            raise EphemerisError("Degenerate topocentric vector encountered")
        cos_zenith = float(np.clip(np.dot(topocentric / norm, self.zenith), -1.0, 1.0))
        return math.degrees(math.asin(cos_zenith)) - self.threshold

    def bisect(self, low: datetime, high: datetime) -> datetime:
        """Narrow a sign change between *low* and *high* to about a second."""

        low_value = self.elevation(low)
        if low_value == 0:
            return low
        for _ in range(MAX_BISECTIONS):
            if high - low <= timedelta(seconds=1):
                break
            middle = low + (high - low) / 2
            value = self.elevation(middle)
            if abs(value) < 1e-4:
                return middle
            if low_value * value <= 0:
                high = middle
            else:
                low, low_value = middle, value
        return low + (high - low) / 2


def compute_sun_times(
    day: date,
    tz: tzinfo,
    lat: float,
    lon: float,
    elev_m: float = 0.0,
    twilight: str = "official",
) -> SunTimes:
    """Find sunrise and sunset during the local calendar *day* in *tz*.

    The day is sampled every five minutes from local midnight to the next
    local midnight and each horizon crossing is refined by bisection.
    """

    if _LOADED_FILES is None:
        raise EphemerisError("Ephemeris kernels have not been loaded")

    observer = _Observer(lat, lon, elev_m, twilight)
    # Step in UTC so DST transitions neither skip nor repeat samples.
    start = datetime.combine(day, time.min, tzinfo=tz).astimezone(UTC)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz).astimezone(UTC)

    instants: List[datetime] = []
    current = start
    while current <= end:
        instants.append(current)
        current += SAMPLE_STEP
    values = [observer.elevation(instant) for instant in instants]

    sunrise: Optional[datetime] = None
    sunset: Optional[datetime] = None
    for before, after, value_before, value_after in zip(instants, instants[1:], values, values[1:]):
        if sunrise is None and value_before < 0 <= value_after:
            sunrise = observer.bisect(before, after).astimezone(tz)
        if sunset is None and value_before >= 0 > value_after:
            sunset = observer.bisect(before, after).astimezone(tz)

    if sunrise is not None or sunset is not None:
        status = "ok"
    elif max(values) < 0:
        status = "polar_night"
    else:
        status = "polar_day"
    return SunTimes(sunrise=sunrise, sunset=sunset, status=status)
