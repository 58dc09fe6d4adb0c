"""Deduplication logic - Pure functions.

This module decides whether a candidate report describes an event that is
already stored. Two reports are the same occurrence iff the place strings
are exactly equal, the magnitudes differ by less than 0.1 and the times
differ by less than five minutes.

Storage of events is handled by the event store. This module only
contains the policy and a small place-keyed index over the window.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Protocol


MAGNITUDE_TOLERANCE = 0.1

MAGNITUDE_PRECISION = 6

TIME_TOLERANCE = timedelta(minutes=5)

DEFAULT_WINDOW = timedelta(hours=24)


class Sighting(Protocol):
    """Anything with the fields the dedup policy compares."""

    place: str
    magnitude: float
    time: datetime


def is_duplicate(existing: Sighting, candidate: Sighting) -> bool:
    """Check whether a candidate duplicates an existing report.

    Pure function. Symmetric in its arguments.
    """
    if existing.place != candidate.place:
        return False

    # Rounded so 4.6 vs 4.5 counts as a full 0.1 apart
    delta = round(abs(existing.magnitude - candidate.magnitude), MAGNITUDE_PRECISION)
    if delta >= MAGNITUDE_TOLERANCE:
        return False

    return abs(existing.time - candidate.time) < TIME_TOLERANCE


def window_start(now: datetime, window: timedelta = DEFAULT_WINDOW) -> datetime:
    """Earliest occurrence time that still belongs to the dedup window.

    Pure function.
    """
    return now - window


@dataclass
class RecentEventIndex:
    """Reports within the dedup window, bucketed by place.

    Only reports with the same place can ever be duplicates, so lookups
    scan a single bucket instead of the whole window.

    Attributes:
        by_place: Place string -> reports seen at that place
    """
    by_place: dict[str, list[Sighting]] = field(default_factory=dict)

    @classmethod
    def build(cls, sightings: Iterable[Sighting]) -> "RecentEventIndex":
        """Create an index over the given reports."""
        index = cls()
        for sighting in sightings:
            index.add(sighting)
        return index

    def add(self, sighting: Sighting) -> None:
        """Record a report in the index."""
        self.by_place.setdefault(sighting.place, []).append(sighting)

    def find_duplicate(self, candidate: Sighting) -> Sighting | None:
        """Return the first indexed report the candidate duplicates."""
        for existing in self.by_place.get(candidate.place, ()):
            if is_duplicate(existing, candidate):
                return existing
        return None

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self.by_place.values())


def comparison_start(
    now: datetime,
    candidate_times: Iterable[datetime],
    window: timedelta = DEFAULT_WINDOW,
) -> datetime:
    """Earliest stored occurrence time a batch must be compared against.

    Pure function.

    Covers the whole window and reaches TIME_TOLERANCE past both the
    window start and the oldest candidate, so a stored report just
    outside the window still catches a repeat inside it.

    Args:
        now: Current time anchoring the window
        candidate_times: Occurrence times of the batch
        window: Dedup window length
    """
    start = window_start(now, window)
    earliest = min(candidate_times, default=start)
    return min(start, earliest) - TIME_TOLERANCE
