"""Event data models and normalization - Pure functions.

This module turns raw candidate records (USGS GeoJSON-shaped dicts) into
typed EventCandidate objects, and defines the stored Event model.
All functions are pure with no side effects.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from quakerisk.core.errors import MalformedInputError
from quakerisk.core.geo import region_bounds


# Source label used when a record does not name one
DEFAULT_SOURCE = "USGS"

DEFAULT_PLACE = "Unknown location"

_TRUTHY = {"1", "true", "yes"}


@dataclass(frozen=True)
class EventCandidate:
    """A normalized, not yet admitted seismic report.

    Attributes:
        place: Human-readable location description
        magnitude: Earthquake magnitude
        depth_km: Depth in kilometers
        latitude: Epicenter latitude
        longitude: Epicenter longitude
        time: Occurrence time (UTC)
        source: Feed the record came from
        tsunami: Whether a tsunami flag was raised
        url: Detail URL at the source (may be empty)
        source_id: Identifier assigned by the source feed (may be empty)
    """
    place: str
    magnitude: float
    depth_km: float
    latitude: float
    longitude: float
    time: datetime
    source: str = DEFAULT_SOURCE
    tsunami: bool = False
    url: str = ""
    source_id: str = ""


@dataclass(frozen=True)
class Event:
    """Canonical seismic event owned by the event store.

    Attributes:
        id: Opaque identifier assigned at creation, never reused
        place: Human-readable location description
        magnitude: Earthquake magnitude
        depth_km: Depth in kilometers
        latitude: Epicenter latitude
        longitude: Epicenter longitude
        time: Occurrence time (UTC)
        source: Feed the record came from
        verified: Whether the ledger confirmed the event
        tsunami: Whether a tsunami flag was raised
        url: Detail URL at the source
        source_id: Identifier assigned by the source feed
        ledger_tx_hash: Ledger transaction that recorded the event
        created_at: When the store admitted the event
    """
    id: str
    place: str
    magnitude: float
    depth_km: float
    latitude: float
    longitude: float
    time: datetime
    source: str = DEFAULT_SOURCE
    verified: bool = False
    tsunami: bool = False
    url: str = ""
    source_id: str = ""
    ledger_tx_hash: str | None = None
    created_at: datetime | None = None

    @property
    def coordinates(self) -> tuple[float, float]:
        """Return (latitude, longitude) tuple."""
        return (self.latitude, self.longitude)

    @classmethod
    def from_candidate(
        cls,
        event_id: str,
        candidate: EventCandidate,
        created_at: datetime | None = None,
    ) -> "Event":
        """Build a stored Event from an admitted candidate."""
        return cls(
            id=event_id,
            place=candidate.place,
            magnitude=candidate.magnitude,
            depth_km=candidate.depth_km,
            latitude=candidate.latitude,
            longitude=candidate.longitude,
            time=candidate.time,
            source=candidate.source,
            verified=False,
            tsunami=candidate.tsunami,
            url=candidate.url,
            source_id=candidate.source_id,
            created_at=created_at,
        )


def parse_time(value: Any) -> datetime:
    """Parse an occurrence time into a tz-aware UTC datetime.

    Pure function.

    Accepts epoch milliseconds (USGS convention), ISO-8601 strings
    (a trailing 'Z' is allowed) and datetime objects. Naive values are
    taken to be UTC.

    Raises:
        MalformedInputError: If the value cannot be interpreted as a time
    """
    if value is None or isinstance(value, bool):
        raise MalformedInputError(f"Invalid event time: {value!r}")

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise MalformedInputError(f"Invalid event time: {value!r}") from e
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise MalformedInputError(f"Invalid event time: {value!r}") from e
    else:
        raise MalformedInputError(f"Invalid event time: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def coerce_flag(value: Any) -> bool:
    """Coerce a feed flag (0/1, bool, "true") to bool.

    Pure function.
    """
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def normalize_record(record: dict[str, Any]) -> EventCandidate:
    """Normalize a raw candidate record into an EventCandidate.

    Pure function.

    Args:
        record: GeoJSON-shaped feature dict with "properties" and
            "geometry.coordinates" ([lon, lat, depth])

    Returns:
        Normalized candidate with verified implicitly False

    Raises:
        MalformedInputError: If coordinates, time or magnitude are missing
            or unparseable
    """
    if not isinstance(record, dict):
        raise MalformedInputError(f"Record is not a mapping: {type(record).__name__}")

    props = record.get("properties") or {}
    geometry = record.get("geometry") or {}
    if not isinstance(props, dict):
        raise MalformedInputError(f"Record properties are not a mapping: {type(props).__name__}")
    if not isinstance(geometry, dict):
        raise MalformedInputError(f"Record geometry is not a mapping: {type(geometry).__name__}")

    coords = geometry.get("coordinates") or []
    if not isinstance(coords, (list, tuple)):
        raise MalformedInputError(f"Record coordinates are not a list: {type(coords).__name__}")

    if len(coords) < 3:
        raise MalformedInputError("Record is missing coordinates")

    magnitude = props.get("mag")
    if magnitude is None:
        raise MalformedInputError("Record is missing magnitude")

    try:
        longitude = float(coords[0])
        latitude = float(coords[1])
        depth_km = float(coords[2])
        magnitude = float(magnitude)
    except (TypeError, ValueError) as e:
        raise MalformedInputError(f"Record has non-numeric fields: {e}") from e

    event_time = parse_time(props.get("time"))

    return EventCandidate(
        place=props.get("place") or DEFAULT_PLACE,
        magnitude=magnitude,
        depth_km=depth_km,
        latitude=latitude,
        longitude=longitude,
        time=event_time,
        source=props.get("source") or DEFAULT_SOURCE,
        tsunami=coerce_flag(props.get("tsunami", 0)),
        url=props.get("url") or "",
        source_id=str(record.get("id") or ""),
    )


def filter_by_magnitude(
    events: list[Event],
    min_magnitude: float | None = None,
    max_magnitude: float | None = None,
) -> list[Event]:
    """Filter events by magnitude range (both bounds inclusive).

    Pure function.
    """
    result = events

    if min_magnitude is not None:
        result = [e for e in result if e.magnitude >= min_magnitude]

    if max_magnitude is not None:
        result = [e for e in result if e.magnitude <= max_magnitude]

    return result


def filter_by_time(
    events: list[Event],
    after: datetime | None = None,
    before: datetime | None = None,
) -> list[Event]:
    """Filter events by time range (both bounds inclusive).

    Pure function.

    Args:
        events: Events to filter
        after: Only include events at or after this time
        before: Only include events at or before this time

    Returns:
        Filtered list of events
    """
    result = events

    if after is not None:
        result = [e for e in result if e.time >= after]

    if before is not None:
        result = [e for e in result if e.time <= before]

    return result


def sort_newest_first(events: list[Event]) -> list[Event]:
    """Sort events by occurrence time, newest first.

    Pure function.
    """
    return sorted(events, key=lambda e: e.time, reverse=True)


# Lookback of each named time range; unknown names fall back to 24h
TIME_RANGES: dict[str, timedelta] = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "1y": timedelta(days=365),
}

DEFAULT_TIME_RANGE = "24h"


@dataclass(frozen=True)
class EventFilters:
    """Query filters over stored events.

    Attributes:
        time_range: One of "24h", "7d", "30d", "1y"
        min_magnitude: Minimum magnitude (None for all)
        region: "global" or a named region (see geo.REGION_BOUNDS)
    """
    time_range: str = DEFAULT_TIME_RANGE
    min_magnitude: float | None = None
    region: str = "global"


@dataclass(frozen=True)
class EventStats:
    """Counts over the events of a time range.

    Attributes:
        total: Number of events
        average_magnitude: Mean magnitude (0 when there are no events)
        major_count: Events with magnitude >= 6
        moderate_count: Events with 4 <= magnitude < 6
        minor_count: Events with magnitude < 4
    """
    total: int
    average_magnitude: float
    major_count: int
    moderate_count: int
    minor_count: int


def time_range_start(time_range: str, now: datetime) -> datetime:
    """Earliest occurrence time included in a named time range.

    Pure function.
    """
    lookback = TIME_RANGES.get(time_range, TIME_RANGES[DEFAULT_TIME_RANGE])
    return now - lookback


def apply_filters(events: list[Event], filters: EventFilters, now: datetime) -> list[Event]:
    """Apply query filters and sort newest first.

    Pure function.

    Raises:
        ValueError: If the region is not known
    """
    bounds = region_bounds(filters.region)

    result = filter_by_time(events, after=time_range_start(filters.time_range, now))
    result = filter_by_magnitude(result, min_magnitude=filters.min_magnitude)

    if bounds is not None:
        result = [e for e in result if bounds.contains(e.latitude, e.longitude)]

    return sort_newest_first(result)


def summarize(events: list[Event]) -> EventStats:
    """Compute magnitude statistics.

    Pure function.
    """
    total = len(events)
    if total == 0:
        return EventStats(0, 0.0, 0, 0, 0)

    return EventStats(
        total=total,
        average_magnitude=sum(e.magnitude for e in events) / total,
        major_count=sum(1 for e in events if e.magnitude >= 6),
        moderate_count=sum(1 for e in events if 4 <= e.magnitude < 6),
        minor_count=sum(1 for e in events if e.magnitude < 4),
    )
