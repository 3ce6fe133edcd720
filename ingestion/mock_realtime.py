"""
Synthetic GTFS-RT payload builder for development and testing.

Builds real protobuf FeedMessages without any network calls, so the full
decode → merge path can be exercised offline, and serves them through an
httpx mock transport that stands in for the MTA feed endpoints.

WARNING: These helpers are intended for local development and automated
tests only.
"""

import asyncio
import logging
import time
from typing import Iterable

import httpx
from google.transit import gtfs_realtime_pb2

logger = logging.getLogger(__name__)

# (stop_id, arrival_epoch | None, departure_epoch | None)
StopPrediction = tuple[str, int | None, int | None]


def build_trip_update_entity(
    feed: gtfs_realtime_pb2.FeedMessage,
    trip_id: str,
    route_id: str,
    predictions: Iterable[StopPrediction],
) -> gtfs_realtime_pb2.FeedEntity:
    """
    Append one trip-update entity to feed.

    Args:
        feed:        FeedMessage being built.
        trip_id:     GTFS trip_id.
        route_id:    GTFS route_id.
        predictions: Ordered (stop_id, arrival, departure) tuples; None omits
                     that half of the prediction.
    """
    entity = feed.entity.add()
    entity.id = trip_id
    tu = entity.trip_update
    tu.trip.trip_id = trip_id
    tu.trip.route_id = route_id
    for stop_id, arrival, departure in predictions:
        stu = tu.stop_time_update.add()
        stu.stop_id = stop_id
        if arrival is not None:
            stu.arrival.time = arrival
        if departure is not None:
            stu.departure.time = departure
    return entity


def build_feed(
    trips: Iterable[tuple[str, str, Iterable[StopPrediction]]],
    timestamp: int | None = None,
) -> bytes:
    """
    Serialise a FeedMessage carrying one trip update per (trip_id, route_id, predictions).

    A vehicle-only entity is appended as well, since real feeds mix entity
    kinds and decoders must skip the ones without a trip update.
    """
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"
    feed.header.timestamp = timestamp if timestamp is not None else int(time.time())
    for trip_id, route_id, predictions in trips:
        build_trip_update_entity(feed, trip_id, route_id, predictions)

    vehicle = feed.entity.add()
    vehicle.id = "vehicle-only"
    vehicle.vehicle.trip.trip_id = "vehicle-only"
    return feed.SerializeToString()


def mock_transport(
    payloads: dict[str, bytes],
    delays: dict[str, float] | None = None,
    failures: dict[str, int] | None = None,
) -> httpx.MockTransport:
    """
    httpx transport serving canned feed payloads by URL.

    Args:
        payloads: URL (without query string) → response body.
        delays:   URL → seconds to wait before responding.
        failures: URL → HTTP status code to answer with instead.
    """
    delays = delays or {}
    failures = failures or {}

    async def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url).split("?", 1)[0]
        if url in delays:
            await asyncio.sleep(delays[url])
        if url in failures:
            logger.debug("Mock: failing %s with %d.", url, failures[url])
            return httpx.Response(failures[url])
        if url not in payloads:
            return httpx.Response(404)
        return httpx.Response(200, content=payloads[url])

    return httpx.MockTransport(handler)
