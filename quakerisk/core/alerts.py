"""Alert classification - Pure functions.

This module derives an alert severity from an event's magnitude and
decides which broadcast channels receive the resulting alert.
All functions are pure with no side effects.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from quakerisk.core.event import Event


# Magnitude thresholds (inclusive lower bounds)
MODERATE_MAGNITUDE = 4.0
MAJOR_MAGNITUDE = 6.0

MODERATE_MESSAGE = "Moderate Earthquake Alert"
MAJOR_MESSAGE = "Major Earthquake Warning"


class Severity(str, Enum):
    """Alert severity."""
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """Ordering used for channel thresholds."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.MEDIUM: 1, Severity.HIGH: 2}


@dataclass(frozen=True)
class AlertDraft:
    """An alert that has been decided but not yet stored.

    Attributes:
        message: Headline text
        severity: Alert severity
        magnitude: Magnitude of the originating event
        location: Place text of the originating event
        event_id: Identity of the originating event
    """
    message: str
    severity: Severity
    magnitude: float
    location: str
    event_id: str


@dataclass(frozen=True)
class Alert:
    """A stored alert.

    Attributes:
        id: Store-assigned sequence number
        message: Headline text
        severity: Alert severity
        magnitude: Magnitude of the originating event
        location: Place text of the originating event
        event_id: Identity of the originating event
        timestamp: When the alert was stored
        active: Whether the alert is still active
    """
    id: int
    message: str
    severity: Severity
    magnitude: float
    location: str
    event_id: str
    timestamp: datetime
    active: bool = True


@dataclass(frozen=True)
class BroadcastChannel:
    """A webhook that receives new alerts.

    Attributes:
        name: Channel identifier
        webhook_url: Incoming webhook URL
        min_severity: Lowest severity forwarded to this channel
    """
    name: str
    webhook_url: str
    min_severity: Severity = Severity.MEDIUM


def severity_for(magnitude: float) -> Severity | None:
    """Map a magnitude to an alert severity.

    Pure function.

    Returns:
        HIGH for magnitude >= 6.0, MEDIUM for 4.0 <= magnitude < 6.0,
        None below 4.0
    """
    if magnitude >= MAJOR_MAGNITUDE:
        return Severity.HIGH
    if magnitude >= MODERATE_MAGNITUDE:
        return Severity.MEDIUM
    return None


def classify(event: Event) -> AlertDraft | None:
    """Decide whether an event warrants an alert.

    Pure function. Called once per newly admitted event; later changes to
    the event (verification) never re-classify it.

    Args:
        event: Newly admitted event

    Returns:
        AlertDraft for qualifying events, None otherwise
    """
    severity = severity_for(event.magnitude)
    if severity is None:
        return None

    message = MAJOR_MESSAGE if severity is Severity.HIGH else MODERATE_MESSAGE

    return AlertDraft(
        message=message,
        severity=severity,
        magnitude=event.magnitude,
        location=event.place,
        event_id=event.id,
    )


def channels_for_alert(
    alert: Alert,
    channels: list[BroadcastChannel],
) -> list[BroadcastChannel]:
    """Select the channels that should receive an alert.

    Pure function.
    """
    return [
        channel for channel in channels
        if alert.severity.rank >= channel.min_severity.rank
    ]
