"""
Unit tests for schedule.timetable.Schedule derived indexes.
"""

from datetime import date

from schedule.models import Calendar, CalendarDate, Route, Stop, StopTime, Trip
from schedule.timetable import Schedule


def _schedule(**overrides) -> Schedule:
    tables = dict(
        stops=(
            Stop("A46", "Utica Av", 40.68, -73.93, 1, ""),
            Stop("A46N", "Utica Av", 40.68, -73.93, 0, "A46"),
            Stop("A46S", "Utica Av", 40.68, -73.93, 0, "A46"),
            Stop("A02", "Inwood-207 St", 40.87, -73.92, 1, ""),
            Stop("A02N", "Inwood-207 St", 40.87, -73.92, 0, ""),
        ),
        stop_times=(
            StopTime("T1", "A02N", "08:40:00", "08:40:00", 9),
            StopTime("T1", "A46N", "08:00:00", "08:00:00", 1),
            StopTime("T2", "A46S", "09:00:00", "09:00:00", 1),
        ),
        trips=(
            Trip("A", "T1", "Weekday", "Inwood-207 St", 0, ""),
            Trip("C", "T2", "Weekday", "Euclid Av", 1, ""),
            Trip("A", "T3", "Saturday", "Inwood-207 St", 0, ""),
        ),
        routes=(
            Route(route_id="C", route_short_name="C", route_sort_order=2),
            Route(route_id="A", route_short_name="A", route_sort_order=1),
            Route(route_id="E", route_short_name="E", route_sort_order=1),
        ),
        calendars=(
            Calendar("Weekday", True, True, True, True, True, False, False, "20260101", "20261231"),
        ),
        calendar_dates=(),
    )
    tables.update(overrides)
    return Schedule(**tables)


class TestStations:
    def test_only_station_typed_stops(self):
        ids = [s.stop_id for s in _schedule().stations]
        assert ids == ["A46", "A02"]

    def test_routes_in_sort_order(self):
        station = _schedule().station("A46")
        assert [r.route_id for r in station.routes] == ["A", "C"]

    def test_sort_order_ties_keep_file_order(self):
        stop_times = (
            StopTime("T1", "A46N", "", "", 1),
            StopTime("T9", "A46S", "", "", 1),
        )
        trips = (
            Trip("A", "T1", "Weekday"),
            Trip("E", "T9", "Weekday"),
        )
        station = _schedule(stop_times=stop_times, trips=trips).station("A46")
        assert [r.route_id for r in station.routes] == ["A", "E"]

    def test_unknown_station_is_none(self):
        assert _schedule().station("Z99") is None

    def test_index_is_memoised(self):
        schedule = _schedule()
        assert schedule.stations is schedule.stations


class TestIndexes:
    def test_stop_id_to_name(self):
        assert _schedule().stop_id_to_name["A02N"] == "Inwood-207 St"

    def test_trip_stop_times_sorted_by_sequence(self):
        times = _schedule().trip_id_to_stop_times["T1"]
        assert [st.stop_sequence for st in times] == [1, 9]

    def test_trips_grouped_by_service_and_route(self):
        grouped = _schedule().service_and_route_to_trips
        assert [t.trip_id for t in grouped[("Weekday", "A")]] == ["T1"]
        assert [t.trip_id for t in grouped[("Saturday", "A")]] == ["T3"]
        assert ("Saturday", "C") not in grouped


class TestPlatformIds:
    def test_children_from_parent_station(self):
        assert _schedule().platform_ids("A46") == ["A46N", "A46S"]

    def test_fallback_to_direction_suffixes(self):
        assert _schedule().platform_ids("A02") == ["A02N", "A02S"]


class TestActiveServices:
    def test_delegates_to_calendar(self):
        schedule = _schedule(calendar_dates=(CalendarDate("Saturday", "20261019", 1),))
        assert schedule.active_services(date(2026, 10, 19)) == {"Weekday", "Saturday"}
