"""
Generic interval-driven query with a small observable state machine.

A PollingQuery wraps an async fetch function and re-runs it on a fixed
interval via APScheduler, publishing a QueryState after every transition:

  status       Pending | Success | Error
  fetch_status Fetching | Idle

  start / tick  → fetch_status=Fetching (status stays, or Pending if no data yet)
  fetch ok      → (Success, Idle), data and updated_at replaced
  fetch failed  → (Error, Idle), previous data kept

The published state is a frozen value swapped in with a single assignment,
so readers always see a complete state.  Runs never overlap.  After stop()
no further runs are scheduled, and a fetch that was in flight finishes but
its result is not published.

PollingQuery knows nothing about transit data; the app runs one for the
static schedule and one for the realtime feeds.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Generic, TypeVar

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueryStatus(str, Enum):
    PENDING = "Pending"
    SUCCESS = "Success"
    ERROR = "Error"


class FetchStatus(str, Enum):
    FETCHING = "Fetching"
    IDLE = "Idle"


@dataclass(frozen=True)
class QueryState(Generic[T]):
    status: QueryStatus = QueryStatus.PENDING
    fetch_status: FetchStatus = FetchStatus.IDLE
    data: T | None = None
    updated_at: datetime | None = None
    error: str | None = None


Subscriber = Callable[[QueryState], None]


class PollingQuery(Generic[T]):
    """Re-runs query_fn every interval_seconds and publishes its QueryState."""

    def __init__(
        self,
        name: str,
        query_fn: Callable[[], Awaitable[T]],
        interval_seconds: float,
    ) -> None:
        self.name = name
        self.query_fn = query_fn
        self.interval_seconds = interval_seconds
        self._state: QueryState[T] = QueryState()
        self._subscribers: list[Subscriber] = []
        self._scheduler: AsyncIOScheduler | None = None
        self._stopped = False
        # Bumped by stop(); a run only publishes if the generation it began in is current.
        self._generation = 0

    @property
    def state(self) -> QueryState[T]:
        return self._state

    @property
    def stopped(self) -> bool:
        return self._stopped

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback for every published state; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def start(self, scheduler: AsyncIOScheduler) -> None:
        """Run immediately, then every interval_seconds on scheduler."""
        if self._scheduler is not None:
            logger.warning("Query %s already started", self.name)
            return
        self._scheduler = scheduler
        self._stopped = False
        scheduler.add_job(
            self.run_once,
            "interval",
            seconds=self.interval_seconds,
            id=self.name,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
        )
        logger.info("Query %s scheduled (every %ss).", self.name, self.interval_seconds)

    def stop(self) -> None:
        """Signal stop: no further runs, and no publish from a fetch still in flight."""
        self._stopped = True
        self._generation += 1
        if self._scheduler is not None:
            try:
                self._scheduler.remove_job(self.name)
            except JobLookupError:
                pass
            self._scheduler = None
        logger.info("Query %s stopped.", self.name)

    async def run_once(self) -> None:
        """One fetch cycle: Fetching, then Success or Error."""
        if self._stopped:
            return
        generation = self._generation

        current = self._state
        self._publish(replace(
            current,
            fetch_status=FetchStatus.FETCHING,
            status=QueryStatus.PENDING if current.updated_at is None else current.status,
        ))

        try:
            data = await self.query_fn()
        except Exception as exc:
            if generation != self._generation:
                return
            logger.warning("Query %s failed: %s", self.name, exc, exc_info=True)
            self._publish(replace(
                self._state,
                status=QueryStatus.ERROR,
                fetch_status=FetchStatus.IDLE,
                error=str(exc) or type(exc).__name__,
            ))
            return

        if generation != self._generation:
            logger.debug("Query %s stopped mid-fetch; discarding result.", self.name)
            return
        self._publish(QueryState(
            status=QueryStatus.SUCCESS,
            fetch_status=FetchStatus.IDLE,
            data=data,
            updated_at=datetime.now(timezone.utc),
        ))

    def _publish(self, state: QueryState[T]) -> None:
        self._state = state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception as exc:
                logger.error("Subscriber of query %s failed: %s", self.name, exc, exc_info=True)
