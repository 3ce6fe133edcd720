"""
Merges realtime trip updates (or, as a fallback, the static timetable) into
per-destination departure groups for a set of boarding stops.

Grouping key: (route_id, boarding stop_id, final stop_id), where the final
stop is the last stop of the trip update (realtime) or the highest
stop_sequence of the trip (scheduled).  A trip terminating at the boarding
stop contributes nothing: there is no forward departure to show.

Output order never depends on dict iteration order.  Departures are sorted
by final stop name, then route_id, then boarding stop and final stop id;
each departure's times are ascending.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Iterable, Sequence

from config import SCHEDULE_HORIZON_HOURS
from ingestion.gtfs_realtime import FeedSnapshot
from schedule.timetable import Schedule

logger = logging.getLogger(__name__)

DepartureKey = tuple[str, str, str]  # (route_id, stop_id, final_stop_id)


class DepartureSource(str, Enum):
    REALTIME = "Realtime"
    SCHEDULED = "Scheduled"


@dataclass(frozen=True)
class Departure:
    route_id: str
    stop_id: str
    final_stop_id: str
    final_stop_name: str
    times: tuple[int, ...]  # epoch seconds, ascending, duplicates allowed
    source: DepartureSource

    @property
    def direction(self) -> str:
        """Direction letter of the boarding platform, e.g. "N" for A46N."""
        return self.stop_id[-1:] if len(self.stop_id) > 3 else ""


def find_departures(
    stop_ids: Sequence[str],
    feeds: Iterable[FeedSnapshot],
    schedule: Schedule,
) -> list[Departure]:
    """
    Group realtime predictions at stop_ids by (route, boarding stop, final stop).

    Args:
        stop_ids: Boarding platform stop_ids, e.g. ["A46N", "A46S"].
        feeds:    Latest realtime snapshots (all sources).
        schedule: Latest static snapshot, used for final stop names.
    """
    wanted = set(stop_ids)
    grouped: dict[DepartureKey, list[int]] = defaultdict(list)

    for feed in feeds:
        for tu in feed.trip_updates:
            final_stop_id = tu.final_stop_id
            if final_stop_id is None:
                continue
            for stu in tu.stop_time_updates:
                if stu.stop_id not in wanted or stu.stop_id == final_stop_id:
                    continue
                instant = stu.departs_at
                if not instant:
                    continue
                grouped[(tu.route_id, stu.stop_id, final_stop_id)].append(instant)

    return _emit(grouped, schedule, DepartureSource.REALTIME)


def find_scheduled_departures(
    stop_ids: Sequence[str],
    schedule: Schedule,
    now: datetime,
    horizon: timedelta = timedelta(hours=SCHEDULE_HORIZON_HOURS),
) -> list[Departure]:
    """
    Static-only departures for use while no realtime data is available.

    Trips count when their service runs on now's service date, or on the
    previous one (its times past 24:00:00 are still running after midnight).
    Each departure instant is the service date's local midnight plus the
    scheduled departure time, kept when it falls in [now, now + horizon].

    Args:
        now: Timezone-aware current time in the agency's timezone.
    """
    wanted = set(stop_ids)
    earliest = int(now.timestamp())
    latest = int((now + horizon).timestamp())
    grouped: dict[DepartureKey, list[int]] = defaultdict(list)

    for service_date in (now.date() - timedelta(days=1), now.date()):
        midnight = datetime.combine(service_date, time(), tzinfo=now.tzinfo)
        _collect_scheduled(
            grouped, wanted, schedule, schedule.active_services(service_date),
            midnight, earliest, latest,
        )

    return _emit(grouped, schedule, DepartureSource.SCHEDULED)


def _collect_scheduled(
    grouped: dict[DepartureKey, list[int]],
    wanted: set[str],
    schedule: Schedule,
    active: set[str],
    midnight: datetime,
    earliest: int,
    latest: int,
) -> None:
    for (service_id, route_id), trips in schedule.service_and_route_to_trips.items():
        if service_id not in active:
            continue
        for trip in trips:
            stop_times = schedule.trip_id_to_stop_times.get(trip.trip_id, ())
            if not stop_times:
                continue
            final_stop_id = stop_times[-1].stop_id
            for st in stop_times:
                if st.stop_id not in wanted or st.stop_id == final_stop_id:
                    continue
                offset = _hms_to_seconds(st.departure_time or st.arrival_time)
                if offset is None:
                    continue
                instant = int((midnight + timedelta(seconds=offset)).timestamp())
                if earliest <= instant <= latest:
                    grouped[(route_id, st.stop_id, final_stop_id)].append(instant)


def _emit(
    grouped: dict[DepartureKey, list[int]],
    schedule: Schedule,
    source: DepartureSource,
) -> list[Departure]:
    stop_id_to_name = schedule.stop_id_to_name
    departures = []
    for (route_id, stop_id, final_stop_id), times in grouped.items():
        final_stop_name = stop_id_to_name.get(final_stop_id)
        if final_stop_name is None:
            logger.warning("Unknown final stop %s on route %s; leaving name blank.", final_stop_id, route_id)
            final_stop_name = ""
        departures.append(Departure(
            route_id=route_id,
            stop_id=stop_id,
            final_stop_id=final_stop_id,
            final_stop_name=final_stop_name,
            times=tuple(sorted(times)),
            source=source,
        ))

    departures.sort(key=lambda d: (d.final_stop_name, d.route_id, d.stop_id, d.final_stop_id))
    return departures


def _hms_to_seconds(hms: str) -> int | None:
    """
    Convert HH:MM:SS (possibly HH > 23) to integer seconds past midnight.
    Returns None on parse failure.
    """
    try:
        parts = hms.strip().split(":")
        return int(parts[0]) * 3600 + int(parts[1]) * 60 + int(parts[2])
    except (ValueError, IndexError):
        return None
