"""
Static timetable snapshot and its derived lookup indexes.

A Schedule holds the six decoded GTFS tables as tuples and is never mutated
after it is built.  The indexes below are pure derivations of those tables,
computed lazily and memoised on the snapshot, so each is built at most once
per snapshot:

  stop_id_to_name             stop_id → stop_name
  stations                    Station stops with the routes serving them
  service_and_route_to_trips  (service_id, route_id) → trips
  trip_id_to_stop_times       trip_id → stop times ascending by stop_sequence
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from functools import cached_property

from schedule.calendar import active_services
from schedule.models import (
    Calendar, CalendarDate, LocationType, Route, Stop, StopTime, Trip,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Station:
    stop: Stop
    routes: tuple[Route, ...] = ()

    @property
    def stop_id(self) -> str:
        return self.stop.stop_id

    @property
    def stop_name(self) -> str:
        return self.stop.stop_name


@dataclass(frozen=True, eq=False)
class Schedule:
    stops: tuple[Stop, ...] = ()
    stop_times: tuple[StopTime, ...] = ()
    trips: tuple[Trip, ...] = ()
    routes: tuple[Route, ...] = ()
    calendars: tuple[Calendar, ...] = ()
    calendar_dates: tuple[CalendarDate, ...] = ()

    @cached_property
    def stop_id_to_name(self) -> dict[str, str]:
        return {stop.stop_id: stop.stop_name for stop in self.stops}

    @cached_property
    def stations(self) -> tuple[Station, ...]:
        """
        Station-typed stops, each with the routes whose trips stop at one of
        its platforms.

        Routes keep the feed's curated order (route_sort_order, then file
        order) rather than being sorted by name.
        """
        trip_to_route = {trip.trip_id: trip.route_id for trip in self.trips}

        station_to_route_ids: dict[str, set[str]] = defaultdict(set)
        for st in self.stop_times:
            route_id = trip_to_route.get(st.trip_id)
            if route_id is not None:
                station_to_route_ids[st.stop_id[:3]].add(route_id)

        ordered_routes = sorted(
            enumerate(self.routes), key=lambda pair: (pair[1].route_sort_order, pair[0])
        )

        stations = []
        for stop in self.stops:
            if stop.location_type != LocationType.STATION:
                continue
            route_ids = station_to_route_ids.get(stop.stop_id, set())
            stations.append(Station(
                stop=stop,
                routes=tuple(route for _, route in ordered_routes if route.route_id in route_ids),
            ))
        logger.debug("Derived %d stations.", len(stations))
        return tuple(stations)

    @cached_property
    def service_and_route_to_trips(self) -> dict[tuple[str, str], tuple[Trip, ...]]:
        grouped: dict[tuple[str, str], list[Trip]] = defaultdict(list)
        for trip in self.trips:
            grouped[(trip.service_id, trip.route_id)].append(trip)
        return {key: tuple(trips) for key, trips in grouped.items()}

    @cached_property
    def trip_id_to_stop_times(self) -> dict[str, tuple[StopTime, ...]]:
        grouped: dict[str, list[StopTime]] = defaultdict(list)
        for st in self.stop_times:
            grouped[st.trip_id].append(st)
        return {
            trip_id: tuple(sorted(times, key=lambda st: st.stop_sequence))
            for trip_id, times in grouped.items()
        }

    @cached_property
    def _station_index(self) -> dict[str, Station]:
        return {station.stop_id: station for station in self.stations}

    @cached_property
    def _children_by_parent(self) -> dict[str, list[str]]:
        children: dict[str, list[str]] = defaultdict(list)
        for stop in self.stops:
            if stop.parent_station and stop.location_type == LocationType.PLATFORM:
                children[stop.parent_station].append(stop.stop_id)
        return children

    def station(self, station_id: str) -> Station | None:
        return self._station_index.get(station_id)

    def platform_ids(self, station_id: str) -> list[str]:
        """
        Boardable platform stop_ids of a station.

        Uses parent_station links when the feed has them, otherwise the
        NYCT convention of <station>N / <station>S.
        """
        children = self._children_by_parent.get(station_id)
        if children:
            return list(children)
        return [station_id + "N", station_id + "S"]

    def active_services(self, on: date) -> set[str]:
        return active_services(on, self.calendars, self.calendar_dates)
