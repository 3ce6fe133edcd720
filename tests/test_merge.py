"""
Unit tests for departures.merge: realtime grouping and the scheduled fallback.

No network or DB: realtime input is built from FeedSnapshot values directly,
and the static side is a small in-memory Schedule.
"""

import logging
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from departures.merge import (
    Departure,
    DepartureSource,
    _hms_to_seconds,
    find_departures,
    find_scheduled_departures,
)
from ingestion.gtfs_realtime import FeedSnapshot, StopTimeUpdate, TripUpdate
from schedule.models import Calendar, CalendarDate, ExceptionType, Stop, StopTime, Trip
from schedule.timetable import Schedule

NY = ZoneInfo("America/New_York")
BOARDING = ["A46N", "A46S"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _stops() -> tuple[Stop, ...]:
    return (
        Stop("A46", "Utica Av", location_type=1),
        Stop("A46N", "Utica Av"),
        Stop("A46S", "Utica Av"),
        Stop("A02N", "Inwood-207 St"),
        Stop("A55S", "Euclid Av"),
        Stop("H11S", "Far Rockaway-Mott Av"),
    )


def _tu(trip_id: str, route_id: str, *updates: tuple[str, int, int]) -> TripUpdate:
    return TripUpdate(
        trip_id=trip_id,
        route_id=route_id,
        stop_time_updates=tuple(StopTimeUpdate(s, a, d) for s, a, d in updates),
    )


def _feed(*trip_updates: TripUpdate, source: str = "ace") -> FeedSnapshot:
    return FeedSnapshot(source=source, timestamp=1000, trip_updates=trip_updates)


# ---------------------------------------------------------------------------
# find_departures (realtime)
# ---------------------------------------------------------------------------

class TestFindDepartures:
    def test_single_trip_end_to_end(self):
        now = 1_800_000_000
        stops = _stops() + (Stop("101S", "Van Cortlandt Park-242 St"),)
        feeds = [_feed(_tu("T1", "1", ("A46N", 0, now + 180), ("101S", now + 1800, 0)))]

        departures = find_departures(BOARDING, feeds, Schedule(stops=stops))

        assert departures == [
            Departure("1", "A46N", "101S", "Van Cortlandt Park-242 St", (now + 180,), DepartureSource.REALTIME),
        ]

    def test_groups_by_route_boarding_and_final_stop(self):
        feeds = [_feed(
            _tu("T1", "A", ("A46N", 0, 1000), ("A41N", 0, 1300), ("A02N", 2400, 0)),
            _tu("T2", "A", ("A46N", 1500, 1520), ("A02N", 2900, 0)),
            _tu("T3", "A", ("A46S", 0, 1100), ("H11S", 3000, 0)),
        )]
        departures = find_departures(BOARDING, feeds, Schedule(stops=_stops()))

        assert departures == [
            Departure("A", "A46S", "H11S", "Far Rockaway-Mott Av", (1100,), DepartureSource.REALTIME),
            Departure("A", "A46N", "A02N", "Inwood-207 St", (1000, 1520), DepartureSource.REALTIME),
        ]

    def test_times_ascending_across_feeds(self):
        feeds = [
            _feed(_tu("T2", "A", ("A46N", 0, 1800), ("A02N", 2900, 0)), source="ace"),
            _feed(_tu("T1", "A", ("A46N", 0, 1200), ("A02N", 2400, 0)), source="other"),
        ]
        (dep,) = find_departures(BOARDING, feeds, Schedule(stops=_stops()))
        assert dep.times == (1200, 1800)

    def test_arrival_used_when_no_departure(self):
        feeds = [_feed(_tu("T1", "A", ("A46N", 1400, 0), ("A02N", 2400, 0)))]
        (dep,) = find_departures(BOARDING, feeds, Schedule(stops=_stops()))
        assert dep.times == (1400,)

    def test_update_without_prediction_skipped(self):
        feeds = [_feed(_tu("T1", "A", ("A46N", 0, 0), ("A02N", 2400, 0)))]
        assert find_departures(BOARDING, feeds, Schedule(stops=_stops())) == []

    def test_trip_terminating_at_boarding_stop_skipped(self):
        feeds = [_feed(_tu("T1", "A", ("A41S", 0, 900), ("A46S", 1000, 0)))]
        assert find_departures(BOARDING, feeds, Schedule(stops=_stops())) == []

    def test_trip_without_updates_skipped(self):
        feeds = [_feed(_tu("T1", "A"))]
        assert find_departures(BOARDING, feeds, Schedule(stops=_stops())) == []

    def test_other_stops_ignored(self):
        feeds = [_feed(_tu("T1", "A", ("A41N", 0, 900), ("A02N", 2400, 0)))]
        assert find_departures(BOARDING, feeds, Schedule(stops=_stops())) == []

    def test_unknown_final_stop_name_blank(self, caplog):
        feeds = [_feed(_tu("T1", "A", ("A46N", 0, 1000), ("ZZZN", 2400, 0)))]
        with caplog.at_level(logging.WARNING, logger="departures.merge"):
            (dep,) = find_departures(BOARDING, feeds, Schedule(stops=_stops()))
        assert dep.final_stop_name == ""
        assert "ZZZN" in caplog.text

    def test_sorted_by_name_then_route(self):
        feeds = [_feed(
            _tu("T1", "C", ("A46S", 0, 1000), ("A55S", 2000, 0)),
            _tu("T2", "A", ("A46S", 0, 1100), ("A55S", 2100, 0)),
            _tu("T3", "A", ("A46N", 0, 1200), ("A02N", 2200, 0)),
        )]
        departures = find_departures(BOARDING, feeds, Schedule(stops=_stops()))
        assert [(d.final_stop_name, d.route_id) for d in departures] == [
            ("Euclid Av", "A"),
            ("Euclid Av", "C"),
            ("Inwood-207 St", "A"),
        ]

    def test_direction_from_platform_suffix(self):
        feeds = [_feed(_tu("T1", "A", ("A46N", 0, 1000), ("A02N", 2400, 0)))]
        (dep,) = find_departures(BOARDING, feeds, Schedule(stops=_stops()))
        assert dep.direction == "N"

    def test_no_feeds(self):
        assert find_departures(BOARDING, [], Schedule(stops=_stops())) == []


# ---------------------------------------------------------------------------
# find_scheduled_departures (static fallback)
# ---------------------------------------------------------------------------

def _static(calendar_dates=()) -> Schedule:
    return Schedule(
        stops=_stops(),
        stop_times=(
            StopTime("W1", "A46N", "07:55:00", "07:55:00", 1),
            StopTime("W1", "A02N", "08:40:00", "08:40:00", 2),
            StopTime("W2", "A46N", "08:04:30", "08:05:00", 1),
            StopTime("W2", "A02N", "08:50:00", "08:50:00", 2),
            StopTime("W3", "A46N", "19:30:00", "19:30:00", 1),
            StopTime("W3", "A02N", "20:10:00", "20:10:00", 2),
            StopTime("W4", "A46N", "25:10:00", "25:10:00", 1),
            StopTime("W4", "A02N", "25:50:00", "25:50:00", 2),
            StopTime("W5", "A41S", "08:00:00", "08:00:00", 1),
            StopTime("W5", "A46S", "08:10:00", "08:10:00", 2),
            StopTime("H1", "A46S", "09:00:00", "", 1),
            StopTime("H1", "H11S", "09:45:00", "09:45:00", 2),
        ),
        trips=(
            Trip("A", "W1", "Weekday"),
            Trip("A", "W2", "Weekday"),
            Trip("A", "W3", "Weekday"),
            Trip("A", "W4", "Weekday"),
            Trip("A", "W5", "Weekday"),
            Trip("A", "H1", "Holiday"),
        ),
        calendars=(
            Calendar("Weekday", True, True, True, True, True, False, False, "20260101", "20261231"),
        ),
        calendar_dates=calendar_dates,
    )


class TestFindScheduledDepartures:
    now = datetime(2026, 10, 19, 8, 0, tzinfo=NY)  # Monday

    def _at(self, hms: str) -> int:
        h, m, s = (int(p) for p in hms.split(":"))
        midnight = self.now.replace(hour=0, minute=0, second=0)
        return int((midnight + timedelta(hours=h, minutes=m, seconds=s)).timestamp())

    def test_upcoming_within_horizon(self):
        (dep,) = find_scheduled_departures(BOARDING, _static(), self.now)
        assert dep == Departure(
            "A", "A46N", "A02N", "Inwood-207 St",
            (self._at("08:05:00"), self._at("19:30:00")),
            DepartureSource.SCHEDULED,
        )

    def test_shorter_horizon(self):
        (dep,) = find_scheduled_departures(BOARDING, _static(), self.now, horizon=timedelta(hours=1))
        assert dep.times == (self._at("08:05:00"),)

    def test_removed_service_has_no_departures(self):
        removed = (CalendarDate("Weekday", "20261019", ExceptionType.REMOVED),)
        assert find_scheduled_departures(BOARDING, _static(removed), self.now) == []

    def test_added_service_included(self):
        added = (CalendarDate("Holiday", "20261019", ExceptionType.ADDED),)
        departures = find_scheduled_departures(BOARDING, _static(added), self.now)
        holiday = [d for d in departures if d.final_stop_id == "H11S"]
        assert len(holiday) == 1
        assert holiday[0].times == (self._at("09:00:00"),)

    def test_inactive_day_has_no_departures(self):
        sunday = datetime(2026, 10, 18, 8, 0, tzinfo=NY)
        assert find_scheduled_departures(BOARDING, _static(), sunday) == []

    def test_terminating_trip_skipped(self):
        departures = find_scheduled_departures(BOARDING, _static(), self.now)
        assert all(d.stop_id != d.final_stop_id for d in departures)
        assert not any(d.stop_id == "A46S" for d in departures)

    def test_previous_service_day_after_midnight(self):
        just_after_midnight = datetime(2026, 10, 20, 0, 30, tzinfo=NY)  # Tuesday

        (dep,) = find_scheduled_departures(BOARDING, _static(), just_after_midnight)

        assert dep.times == (
            int(datetime(2026, 10, 20, 1, 10, tzinfo=NY).timestamp()),  # Monday's 25:10
            int(datetime(2026, 10, 20, 7, 55, tzinfo=NY).timestamp()),
            int(datetime(2026, 10, 20, 8, 5, tzinfo=NY).timestamp()),
        )

    def test_previous_day_service_only(self):
        saturday = datetime(2026, 10, 24, 0, 30, tzinfo=NY)

        (dep,) = find_scheduled_departures(BOARDING, _static(), saturday)

        assert dep.times == (int(datetime(2026, 10, 24, 1, 10, tzinfo=NY).timestamp()),)


class TestHmsToSeconds:
    def test_normal_time(self):
        assert _hms_to_seconds("08:30:00") == 8 * 3600 + 30 * 60

    def test_past_midnight(self):
        assert _hms_to_seconds("25:10:00") == 25 * 3600 + 10 * 60

    @pytest.mark.parametrize("bad", ["", "8:30", "ab:cd:ef"])
    def test_invalid_returns_none(self, bad):
        assert _hms_to_seconds(bad) is None
