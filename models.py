"""Pydantic models for API requests and responses."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from sunset.location import LocationSource
from sunset.results import MilestoneKind


class SunsetStatus(str, Enum):
    """Outcome of a single-day sunset query."""

    ok = "ok"
    midnight_sun = "midnight-sun"
    polar_night = "polar-night"
    invalid_location = "invalid-location"
    oracle_failure = "oracle-failure"


class ObserverParams(BaseModel):
    """Validated location and time-zone parameters shared by every endpoint."""

    lat: float = Field(..., ge=-90.0, le=90.0, description="Latitude in degrees")
    lon: float = Field(..., ge=-180.0, le=180.0, description="Longitude in degrees")
    name: Optional[str] = Field(None, description="Display name of the location")
    tz: Optional[str] = Field(None, description="IANA time-zone name, e.g. America/Los_Angeles")
    offset_hours: Optional[float] = Field(
        None,
        ge=-24.0,
        le=24.0,
        description="Fixed offset in hours used when no time-zone name is given",
    )


class SunsetResponse(BaseModel):
    """Sunset and sunrise for one day, or why there are none."""

    ok: bool
    status: SunsetStatus
    query_date: date = Field(..., description="Local calendar date queried")
    latitude: float
    longitude: float
    timezone: Optional[str] = Field(None, description="Time-zone label used for clock readings")
    sunrise: Optional[datetime] = None
    sunset: Optional[datetime] = None
    is_polar_region: bool = False
    reason: Optional[str] = Field(None, description="Failure explanation when ok is false")


class ProgressionResponse(BaseModel):
    ok: bool = True
    start: date
    days: int
    results: List[SunsetResponse]


class MilestoneOut(BaseModel):
    time: str = Field(..., description="Clock time as HH:MM")
    type: MilestoneKind
    label: str
    is_primary: bool


class NextMilestoneResponse(BaseModel):
    """The milestone currently counted down to."""

    ok: bool = True
    milestone: MilestoneOut
    target_date: date = Field(..., description="First date whose sunset reaches the milestone")
    target_sunset: datetime
    days_until: int
    sunset_info: SunsetResponse


class UpcomingMilestoneOut(BaseModel):
    milestone: MilestoneOut
    target_date: date
    target_sunset: datetime
    days_until: int


class UpcomingMilestonesResponse(BaseModel):
    ok: bool = True
    milestones: List[UpcomingMilestoneOut]


class LadderResponse(BaseModel):
    ok: bool = True
    milestones: List[MilestoneOut]


class CountdownResponse(BaseModel):
    ok: bool = True
    days: int = Field(..., ge=0)
    hours: int = Field(..., ge=0, le=23)
    minutes: int = Field(..., ge=0, le=59)
    seconds: int = Field(..., ge=0, le=59)
    total_minutes: int = Field(..., ge=0)
    target: datetime
    milestone: MilestoneOut


class CalendarEntryOut(BaseModel):
    time: str = Field(..., description="Milestone label, e.g. 6:30 PM")
    target_date: Optional[date] = None
    days_from_now: int = Field(..., description="-1 when the time is never reached")
    reason: Optional[str] = Field(None, description="Why no date was found")


class CalendarResponse(BaseModel):
    ok: bool = True
    start: date
    entries: List[CalendarEntryOut]


class PlaceOut(BaseModel):
    name: Optional[str]
    latitude: float
    longitude: float
    timezone: Optional[str]
    source: LocationSource


class PlacesResponse(BaseModel):
    ok: bool = True
    places: List[PlaceOut]


class HealthResponse(BaseModel):
    """Health-check response."""

    ok: bool = True
    oracle: str
    ephemeris_loaded: bool
    files: List[str]


class ErrorResponse(BaseModel):
    """Error payload."""

    ok: bool = False
    code: str
    error: str
