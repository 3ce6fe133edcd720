"""
Downloads and decodes the NYCT GTFS static feed into a Schedule snapshot.

Feed contents used:
  stops.txt          → Stop
  routes.txt         → Route
  trips.txt          → Trip
  stop_times.txt     → StopTime
  calendar.txt       → Calendar
  calendar_dates.txt → CalendarDate

The snapshot can optionally be persisted with store_schedule(), which wipes
and reloads every table inside a single transaction.
"""

import asyncio
import dataclasses
import io
import logging
import zipfile

import httpx
from sqlalchemy.orm import Session

from config import GTFS_STATIC_TIMEOUT_SECONDS, GTFS_STATIC_URL, PERSIST_SCHEDULE
from db import models as db
from ingestion.errors import DecodeError, EmptyInputError, NetworkError
from ingestion.records import read_records
from schedule.models import Calendar, CalendarDate, Route, Stop, StopTime, Trip
from schedule.timetable import Schedule

logger = logging.getLogger(__name__)

# file name → (Schedule attribute, record type, must have rows)
SCHEDULE_FILES: dict[str, tuple[str, type, bool]] = {
    "stops.txt": ("stops", Stop, True),
    "stop_times.txt": ("stop_times", StopTime, True),
    "trips.txt": ("trips", Trip, True),
    "routes.txt": ("routes", Route, True),
    "calendar.txt": ("calendars", Calendar, False),
    "calendar_dates.txt": ("calendar_dates", CalendarDate, False),
}

# Child tables first; inserts run in the reverse order.
_DELETE_ORDER = (
    db.CalendarDate, db.StopTime, db.Trip, db.Calendar, db.Route, db.Stop,
)
_TABLE_ATTRS = {
    db.Stop: "stops",
    db.Route: "routes",
    db.Calendar: "calendars",
    db.Trip: "trips",
    db.StopTime: "stop_times",
    db.CalendarDate: "calendar_dates",
}


async def download_gtfs_zip(
    url: str = GTFS_STATIC_URL,
    client: httpx.AsyncClient | None = None,
) -> bytes:
    """Download the GTFS zip from the given URL."""
    if not url:
        raise ValueError("GTFS_STATIC_URL is not configured. Set it in your .env file.")
    logger.info("Downloading GTFS static feed from %s", url)
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=GTFS_STATIC_TIMEOUT_SECONDS) as owned:
                response = await owned.get(url, follow_redirects=True)
        else:
            response = await client.get(url, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise NetworkError(f"Failed to download schedule from {url}: {exc}") from exc
    logger.info("Downloaded GTFS zip (%d bytes)", len(response.content))
    return response.content


def parse_schedule(zip_bytes: bytes) -> Schedule:
    """
    Decode the six GTFS tables in a zip archive into a Schedule.

    Unknown files are ignored.  calendar.txt and calendar_dates.txt may be
    absent; the other four are required and must contain rows.

    Raises:
        DecodeError:     Not a zip archive, or a table failed to decode.
        EmptyInputError: A required table is missing or has no rows.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(zip_bytes))
    except zipfile.BadZipFile as exc:
        raise DecodeError(f"GTFS static archive is not a valid zip: {exc}") from exc

    tables: dict[str, tuple] = {}
    with archive as zf:
        names = set(zf.namelist())
        logger.info("GTFS zip contains: %s", sorted(names))
        for filename, (attr, record_cls, required) in SCHEDULE_FILES.items():
            if filename not in names:
                if required:
                    raise EmptyInputError(f"GTFS archive is missing {filename}.")
                continue
            with zf.open(filename) as f:
                records = read_records(f, record_cls, name=filename)
            if required and not records:
                raise EmptyInputError(f"{filename} contains no rows.")
            tables[attr] = tuple(records)
            logger.info("Loaded %d rows from %s.", len(records), filename)

    return Schedule(**tables)


def store_schedule(schedule: Schedule, session: Session) -> None:
    """
    Replace every persisted GTFS table with the contents of schedule.

    Runs as one transaction: deletes calendar_dates → stop_times → trips →
    calendars → routes → stops, then inserts in the reverse order.  Any
    failure rolls the whole reload back.
    """
    try:
        for model in _DELETE_ORDER:
            session.query(model).delete()
        session.flush()
        for model in reversed(_DELETE_ORDER):
            rows = getattr(schedule, _TABLE_ATTRS[model])
            session.bulk_insert_mappings(model, [dataclasses.asdict(r) for r in rows])
            logger.info("Stored %d %s rows.", len(rows), model.__tablename__)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info("GTFS static data committed to database.")


def _persist(schedule: Schedule) -> None:
    from db.session import SessionLocal

    session = SessionLocal()
    try:
        store_schedule(schedule, session)
    except Exception as exc:
        logger.error("Persisting GTFS schedule failed: %s", exc, exc_info=True)
    finally:
        session.close()


async def fetch_schedule() -> Schedule:
    """Polling entry point: download, decode and (optionally) persist a fresh snapshot."""
    zip_bytes = await download_gtfs_zip()
    schedule = await asyncio.to_thread(parse_schedule, zip_bytes)
    if PERSIST_SCHEDULE:
        await asyncio.to_thread(_persist, schedule)
    logger.info(
        "Schedule synced: %d stops, %d trips, %d stop times.",
        len(schedule.stops), len(schedule.trips), len(schedule.stop_times),
    )
    return schedule
