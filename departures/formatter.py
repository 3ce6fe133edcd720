"""
Turns departure instants into the short "minutes until" labels a board shows.

  - Minutes are rounded half away from zero, so 90 s is "2" and -30 s is -1.
  - Negative values have already departed and are dropped.
  - 0 renders as "Now".
  - At most max_count labels are produced, soonest first.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from config import MAX_UPCOMING_DEPARTURES

NOW_LABEL = "Now"
NO_DEPARTURES = "No Departures"


@dataclass(frozen=True)
class UpcomingDepartures:
    labels: tuple[str, ...] = ()

    @property
    def has_any(self) -> bool:
        return bool(self.labels)

    def as_text(self) -> str:
        """Single-line form, e.g. "Now, 8 min" or "No Departures"."""
        if not self.labels:
            return NO_DEPARTURES
        suffix = "" if self.labels[-1] == NOW_LABEL else " min"
        return ", ".join(self.labels) + suffix


def format_upcoming(
    instants: Iterable[int],
    now: datetime | float,
    max_count: int = MAX_UPCOMING_DEPARTURES,
) -> UpcomingDepartures:
    """
    Format departure instants (epoch seconds) relative to now.

    Args:
        instants:  Departure times in epoch seconds, any order.
        now:       Current time, as a datetime or epoch seconds.
        max_count: Maximum number of labels to return.
    """
    now_ts = now.timestamp() if isinstance(now, datetime) else float(now)
    labels: list[str] = []
    for instant in sorted(instants):
        if len(labels) >= max_count:
            break
        minutes = _round_half_away_from_zero((instant - now_ts) / 60)
        if minutes < 0:
            continue
        labels.append(NOW_LABEL if minutes == 0 else str(minutes))
    return UpcomingDepartures(labels=tuple(labels))


def _round_half_away_from_zero(value: float) -> int:
    # round() would send 0.5 to 0 and 2.5 to 2
    magnitude = int(math.floor(abs(value) + 0.5))
    return magnitude if value >= 0 else -magnitude
