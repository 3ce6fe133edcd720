"""
Resolves which GTFS services run on a given date.

  1. calendar.txt: a service is active when start_date <= date <= end_date
     and its weekday flag is set.
  2. calendar_dates.txt: exceptions dated on the target date override step 1
     unconditionally.  Added (1) inserts the service, Removed (2) deletes it.

Each exception touches a single service_id, so the result does not depend
on the order exceptions are applied.  When a feed carries several exceptions
for the same (service_id, date) the last one in input order is applied and
the rest are reported as a data-quality warning.
"""

import logging
from datetime import date
from typing import Iterable

from schedule.models import Calendar, CalendarDate, ExceptionType

logger = logging.getLogger(__name__)


def active_services(
    on: date,
    calendars: Iterable[Calendar],
    exceptions: Iterable[CalendarDate],
) -> set[str]:
    """Return the set of service_ids running on the given date."""
    day = on.strftime("%Y%m%d")
    weekday = on.weekday()

    active = {
        cal.service_id
        for cal in calendars
        if cal.start_date <= day <= cal.end_date and cal.runs_on_weekday(weekday)
    }

    for service_id, exception_type in _exceptions_on(day, exceptions).items():
        if exception_type == ExceptionType.ADDED:
            active.add(service_id)
        elif exception_type == ExceptionType.REMOVED:
            active.discard(service_id)
        else:
            logger.warning(
                "Ignoring calendar exception with unknown type %r for service %s on %s.",
                exception_type, service_id, day,
            )

    return active


def _exceptions_on(day: str, exceptions: Iterable[CalendarDate]) -> dict[str, int]:
    """Collapse the exceptions dated on day to one type per service_id (last wins)."""
    by_service: dict[str, int] = {}
    for exc in exceptions:
        if exc.date != day:
            continue
        if exc.service_id in by_service:
            logger.warning(
                "Multiple calendar exceptions for service %s on %s; applying the last (type %r).",
                exc.service_id, day, exc.exception_type,
            )
        by_service[exc.service_id] = exc.exception_type
    return by_service
