"""FastAPI application exposing sunset milestones and countdowns."""

from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime, timedelta, timezone, tzinfo
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from models import (
    CalendarEntryOut,
    CalendarResponse,
    CountdownResponse,
    ErrorResponse,
    HealthResponse,
    LadderResponse,
    MilestoneOut,
    NextMilestoneResponse,
    ObserverParams,
    PlaceOut,
    PlacesResponse,
    ProgressionResponse,
    SunsetResponse,
    SunsetStatus,
    UpcomingMilestoneOut,
    UpcomingMilestonesResponse,
)
from sunset import astro
from sunset.calculator import (
    calculate_sunset_info,
    calculate_sunset_progression,
    local_date,
    resolve_timezone,
)
from sunset.config import Settings, load_settings
from sunset.ephemeris import EphemerisAcquisitionError, resolve_kernel_dir
from sunset.location import Location, LocationProvider
from sunset.milestones import (
    DEFAULT_CALENDAR_HOURS,
    calculate_countdown,
    generate_ladder,
    get_milestone_calendar,
    get_next_milestone,
    get_upcoming_milestones,
)
from sunset.oracle import AstralOracle, EphemerisOracle, SolarOracleAdapter
from sunset.results import (
    FailureKind,
    Milestone,
    PolarCondition,
    SunsetInfo,
    SunsetQueryResult,
)

logging.basicConfig(level=logging.INFO, format="%(message)s")
LOGGER = logging.getLogger("sunset-api")

APP_DESCRIPTION = "Countdown to the days when sunset first reaches each half-hour milestone"

SETTINGS: Settings = Settings()
ORACLE: SolarOracleAdapter = SolarOracleAdapter(AstralOracle())


@asynccontextmanager
async def lifespan(app: FastAPI):
    global SETTINGS, ORACLE

    SETTINGS = load_settings()
    if SETTINGS.oracle == "ephemeris":
        try:
            kernel_dir = resolve_kernel_dir(SETTINGS.kernel_path, SETTINGS.kernel_cache_dir)
            astro.load_ephemeris(str(kernel_dir))
        except (EphemerisAcquisitionError, astro.EphemerisError) as exc:
            LOGGER.error(json.dumps({"event": "ephemeris_load_failed", "error": str(exc)}))
            raise
        ORACLE = SolarOracleAdapter(EphemerisOracle())
    else:
        ORACLE = SolarOracleAdapter(AstralOracle())
    LOGGER.info(json.dumps({"event": "startup", "oracle": ORACLE.name}))
    yield


app = FastAPI(
    title="Sunset Milestones API",
    description=APP_DESCRIPTION,
    version="1.0.0",
    lifespan=lifespan,
)


def get_oracle() -> SolarOracleAdapter:
    return ORACLE


def get_settings() -> Settings:
    return SETTINGS


def get_location_provider() -> LocationProvider:
    return LocationProvider()


def observer_params(
    lat: float = Query(..., ge=-90.0, le=90.0, description="Latitude in degrees"),
    lon: float = Query(..., ge=-180.0, le=180.0, description="Longitude in degrees"),
    name: Optional[str] = Query(None),
    tz: Optional[str] = Query(None, description="IANA time-zone name"),
    offset_hours: Optional[float] = Query(None, ge=-24.0, le=24.0),
) -> ObserverParams:
    return ObserverParams(lat=lat, lon=lon, name=name, tz=tz, offset_hours=offset_hours)


def _location(params: ObserverParams) -> Location:
    return Location(params.lat, params.lon, name=params.name, timezone=params.tz)


def _zone(params: ObserverParams) -> tzinfo:
    if params.tz:
        try:
            return ZoneInfo(params.tz)
        except (ZoneInfoNotFoundError, ValueError):
            raise HTTPException(status_code=400, detail=f"Unknown time zone: {params.tz}")
    if params.offset_hours is not None:
        return timezone(timedelta(hours=params.offset_hours))
    return resolve_timezone(_location(params))


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(UTC)


def _milestone_out(milestone: Milestone) -> MilestoneOut:
    return MilestoneOut(
        time=str(milestone.time),
        type=milestone.kind,
        label=milestone.label,
        is_primary=milestone.is_primary,
    )


def _sunset_out(result: SunsetQueryResult, params: ObserverParams, day: date) -> SunsetResponse:
    if isinstance(result, SunsetInfo):
        return SunsetResponse(
            ok=True,
            status=SunsetStatus.ok,
            query_date=result.date,
            latitude=params.lat,
            longitude=params.lon,
            timezone=result.timezone,
            sunrise=result.sunrise,
            sunset=result.sunset,
            is_polar_region=result.is_polar_region,
        )
    if isinstance(result, PolarCondition):
        status = SunsetStatus(result.polar_type.value)
    elif result.kind is FailureKind.invalid_location:
        status = SunsetStatus.invalid_location
    else:
        status = SunsetStatus.oracle_failure
    return SunsetResponse(
        ok=False,
        status=status,
        query_date=day,
        latitude=params.lat,
        longitude=params.lon,
        is_polar_region=isinstance(result, PolarCondition),
        reason=result.reason,
    )


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    payload = ErrorResponse(code=code, error=message)
    LOGGER.error(json.dumps({"event": "error", "code": code, "message": message}))
    return JSONResponse(status_code=status_code, content=payload.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = ", ".join(error["msg"] for error in exc.errors())
    return _error_response(422, "validation_error", messages)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception("Unhandled exception", exc_info=exc)
    return _error_response(500, "internal_error", "Unhandled server error")


def _log(event: str, params: ObserverParams, started: float, **fields: object) -> None:
    LOGGER.info(
        json.dumps(
            {
                "event": event,
                "lat": params.lat,
                "lon": params.lon,
                **fields,
                "duration_ms": round((time.perf_counter() - started) * 1000.0, 3),
            },
            default=str,
        )
    )


@app.get("/health", response_model=HealthResponse)
def health(oracle: SolarOracleAdapter = Depends(get_oracle)) -> HealthResponse:
    return HealthResponse(
        ok=True,
        oracle=oracle.name,
        ephemeris_loaded=astro.ephemeris_loaded(),
        files=astro.loaded_files(),
    )


@app.get("/sunset", response_model=SunsetResponse, responses={422: {"model": ErrorResponse}})
def sunset_endpoint(
    params: ObserverParams = Depends(observer_params),
    day: Optional[date] = Query(None, alias="date", description="Local calendar date"),
    oracle: SolarOracleAdapter = Depends(get_oracle),
) -> SunsetResponse:
    started = time.perf_counter()
    zone = _zone(params)
    the_day = day or local_date(datetime.now(UTC), zone)
    result = calculate_sunset_info(_location(params), the_day, zone, oracle)
    response = _sunset_out(result, params, the_day)
    _log("sunset", params, started, date=the_day.isoformat(), status=response.status.value)
    return response


@app.get("/progression", response_model=ProgressionResponse)
def progression_endpoint(
    params: ObserverParams = Depends(observer_params),
    start: Optional[date] = Query(None, description="First local calendar date"),
    days: int = Query(7, ge=0, le=366),
    oracle: SolarOracleAdapter = Depends(get_oracle),
) -> ProgressionResponse:
    started = time.perf_counter()
    zone = _zone(params)
    first_day = start or local_date(datetime.now(UTC), zone)
    progression = calculate_sunset_progression(_location(params), first_day, days, zone, oracle)
    results = [
        _sunset_out(result, params, first_day + timedelta(days=offset))
        for offset, result in enumerate(progression)
    ]
    _log("progression", params, started, start=first_day.isoformat(), days=days)
    return ProgressionResponse(start=first_day, days=days, results=results)


@app.get("/milestones/ladder", response_model=LadderResponse)
def ladder_endpoint(settings: Settings = Depends(get_settings)) -> LadderResponse:
    ladder = generate_ladder(settings.ladder_start, settings.ladder_end, settings.ladder_step)
    return LadderResponse(milestones=[_milestone_out(item) for item in ladder])


@app.get(
    "/milestones/next",
    response_model=NextMilestoneResponse,
    responses={404: {"model": ErrorResponse}},
)
def next_milestone_endpoint(
    params: ObserverParams = Depends(observer_params),
    now: Optional[datetime] = Query(None, description="Current moment, ISO-8601"),
    oracle: SolarOracleAdapter = Depends(get_oracle),
    settings: Settings = Depends(get_settings),
) -> NextMilestoneResponse:
    started = time.perf_counter()
    zone = _zone(params)
    moment = _now(now)
    result = get_next_milestone(_location(params), moment, zone, oracle, settings.horizon_days)
    if not result.success:
        raise HTTPException(status_code=404, detail=result.error)
    _log("milestone", params, started, milestone=str(result.milestone.time), days_until=result.days_until)
    return NextMilestoneResponse(
        milestone=_milestone_out(result.milestone),
        target_date=result.match.date,
        target_sunset=result.match.sunset,
        days_until=result.days_until,
        sunset_info=_sunset_out(result.sunset_info, params, result.match.date),
    )


@app.get("/milestones/upcoming", response_model=UpcomingMilestonesResponse)
def upcoming_milestones_endpoint(
    params: ObserverParams = Depends(observer_params),
    now: Optional[datetime] = Query(None),
    count: int = Query(4, ge=0, le=24),
    oracle: SolarOracleAdapter = Depends(get_oracle),
    settings: Settings = Depends(get_settings),
) -> UpcomingMilestonesResponse:
    started = time.perf_counter()
    upcoming = get_upcoming_milestones(
        _location(params),
        _now(now),
        count,
        _zone(params),
        oracle,
        upper=settings.ladder_end,
        step=settings.ladder_step,
        max_days=settings.horizon_days,
    )
    _log("upcoming_milestones", params, started, count=count, found=len(upcoming))
    return UpcomingMilestonesResponse(
        milestones=[
            UpcomingMilestoneOut(
                milestone=_milestone_out(item.milestone),
                target_date=item.match.date,
                target_sunset=item.match.sunset,
                days_until=item.days_until,
            )
            for item in upcoming
        ]
    )


@app.get(
    "/countdown",
    response_model=CountdownResponse,
    responses={404: {"model": ErrorResponse}},
)
def countdown_endpoint(
    params: ObserverParams = Depends(observer_params),
    now: Optional[datetime] = Query(None),
    oracle: SolarOracleAdapter = Depends(get_oracle),
    settings: Settings = Depends(get_settings),
) -> CountdownResponse:
    started = time.perf_counter()
    countdown = calculate_countdown(
        _location(params), _now(now), _zone(params), oracle, settings.horizon_days
    )
    if countdown is None:
        raise HTTPException(status_code=404, detail="No upcoming milestone to count down to")
    _log("countdown", params, started, total_minutes=countdown.total_minutes)
    return CountdownResponse(
        days=countdown.days,
        hours=countdown.hours,
        minutes=countdown.minutes,
        seconds=countdown.seconds,
        total_minutes=countdown.total_minutes,
        target=countdown.target,
        milestone=_milestone_out(countdown.milestone),
    )


@app.get("/calendar", response_model=CalendarResponse)
def calendar_endpoint(
    params: ObserverParams = Depends(observer_params),
    start: Optional[date] = Query(None),
    hours: List[float] = Query(list(DEFAULT_CALENDAR_HOURS), description="Fractional-hour targets"),
    oracle: SolarOracleAdapter = Depends(get_oracle),
    settings: Settings = Depends(get_settings),
) -> CalendarResponse:
    started = time.perf_counter()
    zone = _zone(params)
    first_day = start or local_date(datetime.now(UTC), zone)
    for value in hours:
        if not 0.0 <= value < 24.0:
            raise HTTPException(status_code=400, detail=f"Milestone hour out of range: {value}")
    entries = get_milestone_calendar(
        _location(params), first_day, hours, zone, oracle, settings.horizon_days
    )
    _log("calendar", params, started, start=first_day.isoformat(), targets=len(hours))
    return CalendarResponse(
        start=first_day,
        entries=[
            CalendarEntryOut(
                time=entry.label,
                target_date=entry.date,
                days_from_now=entry.days_from_now,
                reason=entry.reason,
            )
            for entry in entries
        ],
    )


@app.get("/places", response_model=PlacesResponse)
def places_endpoint(
    q: str = Query(..., min_length=1, description="Place name or alias"),
    provider: LocationProvider = Depends(get_location_provider),
) -> PlacesResponse:
    return PlacesResponse(
        places=[
            PlaceOut(
                name=place.name,
                latitude=place.latitude,
                longitude=place.longitude,
                timezone=place.timezone,
                source=place.source,
            )
            for place in provider.search(q)
        ]
    )
