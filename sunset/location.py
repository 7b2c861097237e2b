"""Observer locations and the provider that supplies them."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

__all__ = [
    "Location",
    "LocationError",
    "LocationProvider",
    "LocationSource",
    "PLACES",
]

LOGGER = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
MAX_RECENT_LOCATIONS = 5
SAME_PLACE_TOLERANCE_DEG = 0.001

GEOLOCATION_ERROR_MESSAGES: Dict[int, str] = {
    1: "Location access denied by user",
    2: "Location information is unavailable",
    3: "Location request timed out",
}


class LocationSource(str, Enum):
    """Where a location came from."""

    geolocation = "geolocation"
    manual = "manual"
    search = "search"


@dataclass(frozen=True)
class Location:
    """Geographic point in degrees (east-positive longitude).

    Out-of-range coordinates are accepted here; queries reject them.
    """

    latitude: float
    longitude: float
    source: LocationSource = LocationSource.manual
    name: Optional[str] = None
    timezone: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0


@dataclass(frozen=True)
class _Place:
    name: str
    lat: float
    lon: float
    timezone: str
    aliases: Tuple[str, ...]


PLACES: Tuple[_Place, ...] = (
    _Place("Seattle, WA", 47.6062, -122.3321, "America/Los_Angeles", ("seattle", "sea")),
    _Place("New York, NY", 40.7128, -74.0060, "America/New_York", ("nyc", "new york", "manhattan")),
    _Place("Los Angeles, CA", 34.0522, -118.2437, "America/Los_Angeles", ("la", "los angeles")),
    _Place("Chicago, IL", 41.8781, -87.6298, "America/Chicago", ("chicago", "chi")),
    _Place("London, UK", 51.5074, -0.1278, "Europe/London", ("london",)),
    _Place("Paris, France", 48.8566, 2.3522, "Europe/Paris", ("paris",)),
    _Place("Tokyo, Japan", 35.6762, 139.6503, "Asia/Tokyo", ("tokyo",)),
    _Place("Sydney, Australia", -33.8688, 151.2093, "Australia/Sydney", ("sydney",)),
    _Place("Sammamish, WA", 47.6163, -122.0356, "America/Los_Angeles", ("sammamish",)),
    _Place("Bellevue, WA", 47.6101, -122.2015, "America/Los_Angeles", ("bellevue",)),
)


class LocationError(RuntimeError):
    """Raised when no usable location can be obtained."""

    def __init__(self, message: str, code: int = 0, fallback_required: bool = True) -> None:
        super().__init__(message)
        self.code = code
        self.fallback_required = fallback_required


Detector = Callable[[], Tuple[float, float]]
WatchCallback = Callable[[Location], None]


class LocationProvider:
    """Holds the current location for one session.

    ``detector`` is the position sensor: a callable returning ``(lat, lon)``
    or raising :class:`LocationError`. Without one, detection always fails
    and callers fall back to stored or manual locations.
    """

    def __init__(self, detector: Optional[Detector] = None) -> None:
        self._detector = detector
        self._current: Optional[Location] = None
        self._recent: List[Location] = []
        self._watch: Optional[WatchCallback] = None

    @property
    def watching(self) -> bool:
        return self._watch is not None

    def current_location(self) -> Location:
        """Return the cached sensor fix, a fresh detection or the last stored location."""

        if self._current is not None and self._current.source is LocationSource.geolocation:
            return self._current

        try:
            location = self.detect()
        except LocationError:
            if self._recent:
                self._current = self._recent[0]
                return self._current
            raise

        self._remember(location)
        return location

    def detect(self) -> Location:
        if self._detector is None:
            raise LocationError("Geolocation is not supported on this host")
        try:
            lat, lon = self._detector()
        except LocationError as exc:
            message = GEOLOCATION_ERROR_MESSAGES.get(
                exc.code, "An unknown error occurred while retrieving location"
            )
            LOGGER.warning(json.dumps({"event": "geolocation_failed", "code": exc.code}))
            raise LocationError(message, code=exc.code) from exc
        return Location(lat, lon, source=LocationSource.geolocation, name="Current Location")

    def set_manual_location(
        self, latitude: float, longitude: float, name: Optional[str] = None
    ) -> Location:
        if not self.is_valid_location(latitude, longitude):
            raise LocationError(
                f"Invalid coordinates: {latitude}, {longitude}", fallback_required=False
            )
        location = Location(
            latitude,
            longitude,
            source=LocationSource.manual,
            name=name or f"{latitude:.4f}, {longitude:.4f}",
        )
        self._remember(location)
        return location

    def search(self, query: str) -> List[Location]:
        """Match *query* against the place directory by name or alias."""

        term = query.strip().lower()
        if not term:
            return []
        return [
            Location(
                place.lat,
                place.lon,
                source=LocationSource.search,
                name=place.name,
                timezone=place.timezone,
            )
            for place in PLACES
            if term in place.name.lower() or any(term in alias for alias in place.aliases)
        ]

    def select(self, location: Location) -> Location:
        self._remember(location)
        return location

    def recent_locations(self) -> List[Location]:
        return list(self._recent)

    def start_watching(self, callback: WatchCallback) -> None:
        if self._watch is not None:
            return
        self._watch = callback

    def stop_watching(self) -> None:
        self._watch = None

    def publish(self, latitude: float, longitude: float) -> Location:
        """Feed a new sensor fix; notifies the active watcher."""

        location = Location(
            latitude, longitude, source=LocationSource.geolocation, name="Current Location"
        )
        self._remember(location)
        if self._watch is not None:
            self._watch(location)
        return location

    def clear(self) -> None:
        self._current = None
        self._recent = []

    @staticmethod
    def default_location() -> Location:
        return Location(47.6062, -122.3321, source=LocationSource.manual, name="Seattle, WA (Default)")

    @staticmethod
    def is_valid_location(latitude: float, longitude: float) -> bool:
        return Location(latitude, longitude).is_valid

    @staticmethod
    def distance_km(first: Location, second: Location) -> float:
        """Great-circle distance using the haversine formula."""

        d_lat = math.radians(second.latitude - first.latitude)
        d_lon = math.radians(second.longitude - first.longitude)
        a = (
            math.sin(d_lat / 2) ** 2
            + math.cos(math.radians(first.latitude))
            * math.cos(math.radians(second.latitude))
            * math.sin(d_lon / 2) ** 2
        )
        return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    def _remember(self, location: Location) -> None:
        self._current = location
        recent = [
            item
            for item in self._recent
            if not (
                abs(item.latitude - location.latitude) < SAME_PLACE_TOLERANCE_DEG
                and abs(item.longitude - location.longitude) < SAME_PLACE_TOLERANCE_DEG
            )
        ]
        recent.insert(0, location)
        self._recent = recent[:MAX_RECENT_LOCATIONS]
