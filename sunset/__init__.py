"""Sunset milestone search and countdown."""

from .calculator import (
    calculate_sunset_info,
    calculate_sunset_progression,
    find_sunset_after_time,
)
from .location import Location, LocationProvider, LocationSource
from .milestones import (
    calculate_countdown,
    generate_ladder,
    get_milestone_calendar,
    get_next_milestone,
    get_upcoming_milestones,
)
from .oracle import AstralOracle, EphemerisOracle, SolarOracleAdapter
from .results import ClockTime

__all__ = [
    "AstralOracle",
    "ClockTime",
    "EphemerisOracle",
    "Location",
    "LocationProvider",
    "LocationSource",
    "SolarOracleAdapter",
    "calculate_countdown",
    "calculate_sunset_info",
    "calculate_sunset_progression",
    "find_sunset_after_time",
    "generate_ladder",
    "get_milestone_calendar",
    "get_next_milestone",
    "get_upcoming_milestones",
]
