"""
Fetches NYCT GTFS-Realtime trip-update feeds and decodes them into
immutable snapshots.

The subway is split across several independently addressed feeds (ACE,
BDFM, G, JZ, NQRW, L, 1-7, SIR).  fetch_all() fetches every configured feed
concurrently and fans the results back in:

  - Results come back in source-declaration order, not completion order.
  - Any failing source (transport error, non-2xx, timeout, undecodable
    protobuf) fails the whole call with FeedFetchError naming the first
    failing source in declaration order.  Partial results are discarded so
    the board never mixes live and stale lines.

Stop-time-update order within a trip update is kept as published; the last
element is the trip's current final stop.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

import httpx
from google.protobuf.message import DecodeError as ProtobufDecodeError
from google.transit import gtfs_realtime_pb2

from config import GTFS_RT_API_KEY, GTFS_RT_FEED_URLS, GTFS_RT_TIMEOUT_SECONDS
from ingestion.errors import DecodeError, FeedFetchError, NetworkError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StopTimeUpdate:
    stop_id: str
    arrival: int = 0    # predicted epoch seconds; 0 when absent
    departure: int = 0  # predicted epoch seconds; 0 when absent

    @property
    def departs_at(self) -> int:
        """Predicted departure, falling back to arrival for arrival-only updates."""
        return self.departure or self.arrival


@dataclass(frozen=True)
class TripUpdate:
    trip_id: str
    route_id: str
    stop_time_updates: tuple[StopTimeUpdate, ...] = ()

    @property
    def final_stop_id(self) -> str | None:
        if not self.stop_time_updates:
            return None
        return self.stop_time_updates[-1].stop_id


@dataclass(frozen=True)
class FeedSnapshot:
    source: str
    timestamp: int = 0  # feed header timestamp
    trip_updates: tuple[TripUpdate, ...] = ()


def decode_feed(payload: bytes, source: str = "") -> FeedSnapshot:
    """Parse a GTFS-RT FeedMessage and keep only its trip updates."""
    feed = gtfs_realtime_pb2.FeedMessage()
    try:
        feed.ParseFromString(payload)
    except ProtobufDecodeError as exc:
        raise DecodeError(f"Malformed GTFS-RT payload from {source or 'feed'}: {exc}") from exc

    trip_updates = []
    for entity in feed.entity:
        if not entity.HasField("trip_update"):
            continue
        tu = entity.trip_update
        trip_updates.append(TripUpdate(
            trip_id=tu.trip.trip_id,
            route_id=tu.trip.route_id,
            stop_time_updates=tuple(
                StopTimeUpdate(
                    stop_id=stu.stop_id,
                    arrival=stu.arrival.time if stu.HasField("arrival") else 0,
                    departure=stu.departure.time if stu.HasField("departure") else 0,
                )
                for stu in tu.stop_time_update
            ),
        ))

    return FeedSnapshot(
        source=source,
        timestamp=feed.header.timestamp,
        trip_updates=tuple(trip_updates),
    )


async def fetch_feed(
    client: httpx.AsyncClient,
    url: str,
    timeout: float = GTFS_RT_TIMEOUT_SECONDS,
) -> FeedSnapshot:
    """Fetch and decode one GTFS-RT feed.

    timeout applies per request and overrides the client's own default.

    Appends the API key as a ?key= query parameter when GTFS_RT_API_KEY is set.
    Uses httpx params= so the key is properly appended regardless of whether
    the URL already contains a query string.
    """
    params = {"key": GTFS_RT_API_KEY} if GTFS_RT_API_KEY else {}
    try:
        response = await client.get(
            url,
            params=params,
            headers={"Accept": "application/x-protobuf"},
            timeout=timeout,
        )
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise NetworkError(f"{type(exc).__name__}: {exc}") from exc
    return decode_feed(response.content, source=url)


async def _fetch_source(client: httpx.AsyncClient, url: str, timeout: float) -> FeedSnapshot:
    try:
        return await fetch_feed(client, url, timeout=timeout)
    except (NetworkError, DecodeError) as exc:
        raise FeedFetchError(url, exc) from exc


async def fetch_all(
    sources: Sequence[str] = GTFS_RT_FEED_URLS,
    client: httpx.AsyncClient | None = None,
    timeout: float = GTFS_RT_TIMEOUT_SECONDS,
) -> list[FeedSnapshot]:
    """
    Fetch every source concurrently and return their snapshots in source order.

    Args:
        sources: Feed URLs, in the order results should be returned.
        client:  Optional shared client (tests pass one with a mock transport).
        timeout: Per-request timeout in seconds, applied to a caller-supplied
                 client too; a timeout is a network failure.

    Raises:
        FeedFetchError: If any source fails.  Siblings are allowed to finish
            but none of their results are returned.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=timeout) as owned:
            return await fetch_all(sources, client=owned, timeout=timeout)

    results = await asyncio.gather(
        *(_fetch_source(client, url, timeout) for url in sources),
        return_exceptions=True,
    )

    snapshots: list[FeedSnapshot] = []
    for result in results:
        if isinstance(result, FeedFetchError):
            logger.warning("%s", result)
            raise result
        if isinstance(result, BaseException):
            raise result
        snapshots.append(result)

    logger.debug(
        "Fetched %d GTFS-RT feeds (%d trip updates).",
        len(snapshots), sum(len(s.trip_updates) for s in snapshots),
    )
    return snapshots


async def fetch_realtime() -> list[FeedSnapshot]:
    """Polling entry point: all configured feeds, all-or-nothing."""
    return await fetch_all(GTFS_RT_FEED_URLS)
