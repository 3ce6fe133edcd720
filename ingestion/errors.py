"""
Error taxonomy for schedule and feed ingestion.

DecodeError and NetworkError abort the enclosing fetch and surface as the
polling query's Error status.  EmptyInputError fails a schedule sync that
produced no rows.  Data-quality conditions are logged, never raised.
"""


class GtfsError(Exception):
    """Base class for ingestion failures."""


class DecodeError(GtfsError):
    """A static table or realtime payload could not be decoded."""


class NetworkError(GtfsError):
    """Transport failure, non-2xx response, or timeout."""


class FeedFetchError(NetworkError):
    """One realtime source failed, failing the whole aggregate fetch."""

    def __init__(self, source: str, cause: Exception) -> None:
        super().__init__(f"Failed to fetch GTFS-RT feed {source}: {cause}")
        self.source = source
        self.cause = cause


class EmptyInputError(GtfsError):
    """A required static table decoded to zero rows."""
