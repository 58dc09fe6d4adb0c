"""In-memory event and alert store.

The single source of truth for admitted events and raised alerts. One
reentrant lock guards every read and mutation, so the ingestion cycle,
the risk engine and the API can share one instance across threads.
"""

import logging
import random
import threading
from dataclasses import replace
from datetime import datetime

from quakerisk.core.alerts import Alert, AlertDraft
from quakerisk.core.errors import NotFoundError
from quakerisk.core.event import (
    Event,
    EventCandidate,
    EventFilters,
    EventStats,
    apply_filters,
    filter_by_time,
    sort_newest_first,
    summarize,
)
from quakerisk.runtime import Clock, random_token, utc_now


logger = logging.getLogger(__name__)


EVENT_ID_PREFIX = "eq_"
EVENT_TOKEN_LENGTH = 12


class EventStore:
    """Thread-safe in-memory store for events and alerts."""

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the store.

        Args:
            rng: Source of event id tokens (defaults to SystemRandom)
            clock: Time source for created_at and alert timestamps
        """
        self._rng = rng or random.SystemRandom()
        self._clock = clock
        self._events: dict[str, Event] = {}
        self._alerts: dict[int, Alert] = {}
        self._next_alert_id = 1
        self._lock = threading.RLock()

    # Events

    def _new_event_id(self) -> str:
        while True:
            event_id = EVENT_ID_PREFIX + random_token(self._rng, EVENT_TOKEN_LENGTH)
            if event_id not in self._events:
                return event_id

    def create_event(self, candidate: EventCandidate) -> Event:
        """Admit a candidate under a fresh, never reused id."""
        with self._lock:
            event = Event.from_candidate(self._new_event_id(), candidate, self._clock())
            self._events[event.id] = event
            logger.debug("Stored event %s (%s)", event.id, event.place)
            return event

    def get_event(self, event_id: str) -> Event | None:
        with self._lock:
            return self._events.get(event_id)

    def require_event(self, event_id: str) -> Event:
        """Get an event or raise NotFoundError."""
        event = self.get_event(event_id)
        if event is None:
            raise NotFoundError(f"Event not found: {event_id}")
        return event

    def mark_verified(self, event_id: str, tx_hash: str | None = None) -> Event:
        """Mark an event as confirmed by the ledger.

        Raises:
            NotFoundError: If the event does not exist
        """
        with self._lock:
            event = self.require_event(event_id)
            updated = replace(
                event,
                verified=True,
                ledger_tx_hash=tx_hash or event.ledger_tx_hash,
            )
            self._events[event_id] = updated
            return updated

    def all_events(self) -> list[Event]:
        with self._lock:
            return list(self._events.values())

    def events_since(self, instant: datetime) -> list[Event]:
        """Events that occurred at or after an instant."""
        return filter_by_time(self.all_events(), after=instant)

    def events_between(self, start: datetime, end: datetime) -> list[Event]:
        """Events that occurred within [start, end], newest first."""
        return sort_newest_first(filter_by_time(self.all_events(), after=start, before=end))

    def recent_events(self, limit: int = 10) -> list[Event]:
        return sort_newest_first(self.all_events())[:limit]

    def verified_events(self) -> list[Event]:
        return sort_newest_first([e for e in self.all_events() if e.verified])

    def query_events(
        self,
        filters: EventFilters | None = None,
        now: datetime | None = None,
    ) -> list[Event]:
        """Filter stored events, newest first.

        Raises:
            ValueError: If the filter names an unknown region
        """
        return apply_filters(
            self.all_events(),
            filters or EventFilters(),
            now or self._clock(),
        )

    def stats(self, time_range: str = "24h", now: datetime | None = None) -> EventStats:
        """Magnitude statistics over a named time range."""
        events = self.query_events(EventFilters(time_range=time_range), now)
        return summarize(events)

    # Alerts

    def create_alert(self, draft: AlertDraft) -> Alert:
        """Store an alert under the next sequence number."""
        with self._lock:
            alert = Alert(
                id=self._next_alert_id,
                message=draft.message,
                severity=draft.severity,
                magnitude=draft.magnitude,
                location=draft.location,
                event_id=draft.event_id,
                timestamp=self._clock(),
                active=True,
            )
            self._alerts[alert.id] = alert
            self._next_alert_id += 1
            return alert

    def get_alert(self, alert_id: int) -> Alert | None:
        with self._lock:
            return self._alerts.get(alert_id)

    def alerts(self) -> list[Alert]:
        """All alerts, newest first."""
        with self._lock:
            return sorted(self._alerts.values(), key=lambda a: a.id, reverse=True)

    def active_alerts(self) -> list[Alert]:
        return [a for a in self.alerts() if a.active]

    def deactivate_alert(self, alert_id: int) -> Alert:
        """Mark an alert inactive.

        Raises:
            NotFoundError: If the alert does not exist
        """
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                raise NotFoundError(f"Alert not found: {alert_id}")
            updated = replace(alert, active=False)
            self._alerts[alert_id] = updated
            return updated
