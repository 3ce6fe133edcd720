"""
FastAPI application entry point for the departure board display layer.

On startup:
  1. Initialise the database schema (used when PERSIST_SCHEDULE is set).
  2. Start the APScheduler and two polling queries:
       - schedule: GTFS static download + decode every GTFS_REFRESH_SECONDS
         (default hourly).
       - realtime: all GTFS-RT feeds every GTFS_RT_POLL_SECONDS
         (default 10s).

Departures are never cached: every request merges the latest published
schedule and realtime snapshots.  While no realtime snapshot exists the
board falls back to scheduled times, tagged "Scheduled".

Endpoints (v1):
  GET  /health
  GET  /stations?query=<name>
  GET  /stations/{station_id}/departures
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import uvicorn
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func
from sqlalchemy.orm import Session

from api.schemas import HealthResponse, StationDeparturesResponse, StationResult
from config import (
    API_HOST,
    API_PORT,
    CORS_ORIGINS,
    GTFS_REFRESH_SECONDS,
    GTFS_RT_POLL_SECONDS,
    MAX_UPCOMING_DEPARTURES,
    PERSIST_SCHEDULE,
    TIMEZONE,
)
from db.models import Stop as StoredStop, Trip as StoredTrip
from db.session import get_session, init_db
from departures.formatter import format_upcoming
from departures.merge import DepartureSource, find_departures, find_scheduled_departures
from ingestion.gtfs_realtime import FeedSnapshot, fetch_realtime
from ingestion.gtfs_static import fetch_schedule
from query.poller import PollingQuery, QueryState, QueryStatus
from schedule.models import Route
from schedule.timetable import Schedule, Station

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

schedule_query: PollingQuery[Schedule] = PollingQuery(
    "gtfs_schedule", fetch_schedule, GTFS_REFRESH_SECONDS
)
realtime_query: PollingQuery[list[FeedSnapshot]] = PollingQuery(
    "gtfs_rt_feeds", fetch_realtime, GTFS_RT_POLL_SECONDS
)


def _log_transition(state: QueryState) -> None:
    if state.status == QueryStatus.ERROR:
        logger.warning("Query error (keeping last good data): %s", state.error)


def _start_queries() -> None:
    schedule_query.subscribe(_log_transition)
    realtime_query.subscribe(_log_transition)
    schedule_query.start(scheduler)
    realtime_query.start(scheduler)
    scheduler.start()
    logger.info(
        "Scheduler started. Schedule refresh every %ds, realtime every %ds.",
        GTFS_REFRESH_SECONDS, GTFS_RT_POLL_SECONDS,
    )


def _stop_queries() -> None:
    schedule_query.stop()
    realtime_query.stop()
    if scheduler.running:
        scheduler.shutdown(wait=False)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    init_db()
    logger.info("Database initialised.")
    _start_queries()

    yield

    # Shutdown
    _stop_queries()


app = FastAPI(
    title="NYCT Departure Board",
    description="Upcoming subway departures merged from GTFS static and GTFS-Realtime feeds.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET"],
    allow_headers=["*"],
)


def _now() -> datetime:
    """Current time in the agency timezone."""
    return datetime.now(ZoneInfo(TIMEZONE))


def _status(state: QueryState) -> dict:
    return {
        "status": state.status.value,
        "fetch_status": state.fetch_status.value,
        "updated_at": state.updated_at.isoformat() if state.updated_at else None,
        "error": state.error,
    }


def _route(route: Route) -> dict:
    return {
        "route_id": route.route_id,
        "short_name": route.route_short_name,
        "long_name": route.route_long_name,
        "color": route.route_color,
        "text_color": route.route_text_color,
    }


def _station(station: Station) -> dict:
    return {
        "stop_id": station.stop_id,
        "stop_name": station.stop_name,
        "lat": station.stop.stop_lat,
        "lon": station.stop.stop_lon,
        "routes": [_route(r) for r in station.routes],
    }


def _require_schedule() -> Schedule:
    schedule = schedule_query.state.data
    if schedule is None:
        raise HTTPException(status_code=503, detail="GTFS schedule has not been loaded yet.")
    return schedule


@app.get("/health", response_model=HealthResponse)
async def health(session: Session = Depends(get_session)) -> HealthResponse:
    """
    Liveness + data-freshness check.

    Reports both polling queries' two-axis status so operators (and the
    board) can tell loading, fresh, and stale-after-error apart.
    """
    stop_count = 0
    trip_count = 0
    if PERSIST_SCHEDULE:
        stop_count = session.query(func.count(StoredStop.stop_id)).scalar() or 0
        trip_count = session.query(func.count(StoredTrip.trip_id)).scalar() or 0

    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "schedule": _status(schedule_query.state),
        "realtime": _status(realtime_query.state),
        "persisted": {
            "enabled": PERSIST_SCHEDULE,
            "stops": stop_count,
            "trips": trip_count,
        },
    }


@app.get("/stations", response_model=list[StationResult])
async def list_stations(
    query: str | None = Query(None, min_length=2, description="Station name substring to search"),
) -> list[StationResult]:
    """List stations with the routes serving them, in feed order."""
    schedule = _require_schedule()
    stations = schedule.stations
    if query:
        needle = query.lower()
        stations = tuple(s for s in stations if needle in s.stop_name.lower())
    return [_station(s) for s in stations]


@app.get("/stations/{station_id}/departures", response_model=StationDeparturesResponse)
async def station_departures(
    station_id: str,
    limit: int = Query(MAX_UPCOMING_DEPARTURES, ge=1, le=10, description="Upcoming times per row"),
) -> StationDeparturesResponse:
    """
    Upcoming departures at a station, grouped under its route headings.

    Rows with nothing upcoming are left out; when every row is empty,
    has_upcoming is false so the board can show its "no upcoming
    departures" state instead of a loading state.
    """
    schedule = _require_schedule()
    station = schedule.station(station_id)
    if station is None:
        raise HTTPException(status_code=404, detail=f"Station '{station_id}' not found.")

    stop_ids = schedule.platform_ids(station_id)
    now = _now()
    feeds = realtime_query.state.data
    if feeds is not None:
        departures = find_departures(stop_ids, feeds, schedule)
        source = DepartureSource.REALTIME
    else:
        departures = find_scheduled_departures(stop_ids, schedule, now)
        source = DepartureSource.SCHEDULED

    # Station routes first (curated order), then any route only seen live.
    headings: list[Route] = list(station.routes)
    known = {r.route_id for r in headings}
    routes_by_id = {r.route_id: r for r in schedule.routes}
    for dep in departures:
        if dep.route_id not in known:
            known.add(dep.route_id)
            headings.append(routes_by_id.get(dep.route_id, Route(route_id=dep.route_id)))

    groups = []
    has_upcoming = False
    for route in headings:
        rows = []
        for dep in departures:
            if dep.route_id != route.route_id:
                continue
            upcoming = format_upcoming(dep.times, now, max_count=limit)
            if not upcoming.has_any:
                continue
            rows.append({
                "route_id": dep.route_id,
                "stop_id": dep.stop_id,
                "direction": dep.direction,
                "final_stop_id": dep.final_stop_id,
                "final_stop_name": dep.final_stop_name,
                "times": list(dep.times),
                "upcoming": list(upcoming.labels),
                "upcoming_text": upcoming.as_text(),
                "source": dep.source.value,
            })
        has_upcoming = has_upcoming or bool(rows)
        groups.append({"route": _route(route), "departures": rows})

    return {
        "station": _station(station),
        "source": source.value,
        "generated_at": now.isoformat(),
        "has_upcoming": has_upcoming,
        "routes": groups,
        "schedule": _status(schedule_query.state),
        "realtime": _status(realtime_query.state),
    }


def run() -> None:
    """Console entry point: serve the board API with uvicorn."""
    uvicorn.run("api.main:app", host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    run()
