"""
Immutable GTFS static records.

Each field carries its GTFS column name as a "column" metadata tag, which
ingestion.records reads once per type to build its decode table.

GTFS time fields (arrival_time, departure_time) stay HH:MM:SS strings
because GTFS allows values >= 24:00:00 for trips crossing midnight.
Dates (start_date, end_date, date) stay YYYYMMDD strings, which order
correctly under plain string comparison.
"""

from dataclasses import dataclass, field
from enum import IntEnum


def _col(name: str, default):
    """Field tagged with its CSV column header."""
    return field(default=default, metadata={"column": name})


class LocationType(IntEnum):
    PLATFORM = 0
    STATION = 1


class ExceptionType(IntEnum):
    ADDED = 1
    REMOVED = 2


@dataclass(frozen=True)
class Stop:
    stop_id: str = _col("stop_id", "")
    stop_name: str = _col("stop_name", "")
    stop_lat: float = _col("stop_lat", 0.0)
    stop_lon: float = _col("stop_lon", 0.0)
    location_type: int = _col("location_type", 0)  # 0 = Platform, 1 = Station
    parent_station: str = _col("parent_station", "")

    @property
    def station_code(self) -> str:
        """Platform ids are <3-char station code><direction letter>, e.g. A46N."""
        return self.stop_id[:3]


@dataclass(frozen=True)
class StopTime:
    trip_id: str = _col("trip_id", "")
    stop_id: str = _col("stop_id", "")
    arrival_time: str = _col("arrival_time", "")    # HH:MM:SS (may exceed 24:00:00)
    departure_time: str = _col("departure_time", "")  # HH:MM:SS (may exceed 24:00:00)
    stop_sequence: int = _col("stop_sequence", 0)


@dataclass(frozen=True)
class Trip:
    route_id: str = _col("route_id", "")
    trip_id: str = _col("trip_id", "")
    service_id: str = _col("service_id", "")
    trip_headsign: str = _col("trip_headsign", "")
    direction_id: int = _col("direction_id", 0)
    shape_id: str = _col("shape_id", "")


@dataclass(frozen=True)
class Route:
    route_id: str = _col("route_id", "")
    agency_id: str = _col("agency_id", "")
    route_short_name: str = _col("route_short_name", "")
    route_long_name: str = _col("route_long_name", "")
    route_desc: str = _col("route_desc", "")
    route_type: int = _col("route_type", 0)
    route_url: str = _col("route_url", "")
    route_color: str = _col("route_color", "")
    route_text_color: str = _col("route_text_color", "")
    route_sort_order: int = _col("route_sort_order", 0)


@dataclass(frozen=True)
class Calendar:
    service_id: str = _col("service_id", "")
    monday: bool = _col("monday", False)
    tuesday: bool = _col("tuesday", False)
    wednesday: bool = _col("wednesday", False)
    thursday: bool = _col("thursday", False)
    friday: bool = _col("friday", False)
    saturday: bool = _col("saturday", False)
    sunday: bool = _col("sunday", False)
    start_date: str = _col("start_date", "")  # YYYYMMDD
    end_date: str = _col("end_date", "")      # YYYYMMDD

    def runs_on_weekday(self, weekday: int) -> bool:
        """weekday follows date.weekday(): Monday == 0."""
        return (
            self.monday, self.tuesday, self.wednesday, self.thursday,
            self.friday, self.saturday, self.sunday,
        )[weekday]


@dataclass(frozen=True)
class CalendarDate:
    service_id: str = _col("service_id", "")
    date: str = _col("date", "")                 # YYYYMMDD
    exception_type: int = _col("exception_type", 0)  # 1 = Added, 2 = Removed
