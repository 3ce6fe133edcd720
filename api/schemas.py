from __future__ import annotations
from typing import Literal
from pydantic import BaseModel


# ---------------------------------------------------------------------------
# Shared building blocks
# ---------------------------------------------------------------------------

class QueryStatusResult(BaseModel):
    status: Literal["Pending", "Success", "Error"]
    fetch_status: Literal["Fetching", "Idle"]
    updated_at: str | None
    error: str | None = None


class RouteResult(BaseModel):
    route_id: str
    short_name: str
    long_name: str
    color: str
    text_color: str


# ---------------------------------------------------------------------------
# GET /stations
# ---------------------------------------------------------------------------

class StationResult(BaseModel):
    stop_id: str
    stop_name: str
    lat: float
    lon: float
    routes: list[RouteResult]


# ---------------------------------------------------------------------------
# GET /stations/{station_id}/departures
# ---------------------------------------------------------------------------

class DepartureResult(BaseModel):
    route_id: str
    stop_id: str
    direction: str
    final_stop_id: str
    final_stop_name: str
    times: list[int]          # epoch seconds, ascending
    upcoming: list[str]       # e.g. ["Now", "4", "11"]
    upcoming_text: str        # e.g. "Now, 4, 11 min" or "No Departures"
    source: Literal["Realtime", "Scheduled"]


class RouteDepartures(BaseModel):
    route: RouteResult
    departures: list[DepartureResult]


class StationDeparturesResponse(BaseModel):
    station: StationResult
    source: Literal["Realtime", "Scheduled"]
    generated_at: str
    has_upcoming: bool
    routes: list[RouteDepartures]
    schedule: QueryStatusResult
    realtime: QueryStatusResult


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------

class PersistedStats(BaseModel):
    enabled: bool
    stops: int
    trips: int


class HealthResponse(BaseModel):
    status: Literal["ok"]
    timestamp: str
    schedule: QueryStatusResult
    realtime: QueryStatusResult
    persisted: PersistedStats
