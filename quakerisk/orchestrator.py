"""Orchestrator - Wires Functional Core and Imperative Shell.

This module coordinates the flow of data between the pure functional
core, the stateful services and the I/O-performing shell components.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import date, timedelta

import requests

from quakerisk.access_controller import AccessController
from quakerisk.core.alerts import Alert, channels_for_alert, classify
from quakerisk.core.config import Config, ensure_valid_catalog
from quakerisk.core.correlation import (
    CurrencyPair,
    ExchangeRateSample,
    analyze_impact,
    correlate,
)
from quakerisk.core.errors import LedgerError
from quakerisk.core.event import Event
from quakerisk.core.formatter import format_alert_message, format_event_summary
from quakerisk.ingestion import IngestionFilter
from quakerisk.risk_engine import RiskScoringEngine
from quakerisk.runtime import Clock, utc_now
from quakerisk.scheduler import IngestionScheduler
from quakerisk.shell.exchange_rate_client import ExchangeRateClient
from quakerisk.shell.ledger_client import LedgerClient
from quakerisk.shell.slack_client import SlackClient
from quakerisk.shell.usgs_client import USGSClient
from quakerisk.store import EventStore


logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    """Result of one ingestion cycle.

    Attributes:
        events_fetched: Records returned by the feed
        events_new: Events admitted into the store
        duplicates: Records ignored as already known
        malformed: Records that could not be normalized
        alerts_created: Alerts raised for the new events
        broadcasts_sent: Successful webhook deliveries
        broadcasts_failed: Failed webhook deliveries
        events_verified: Ids of events confirmed by the ledger
        ledger_failures: Ledger errors (logged, not fatal)
        errors: Failures that aborted part of the cycle
    """
    events_fetched: int = 0
    events_new: int = 0
    duplicates: int = 0
    malformed: int = 0
    alerts_created: list[Alert] = field(default_factory=list)
    broadcasts_sent: int = 0
    broadcasts_failed: int = 0
    events_verified: list[str] = field(default_factory=list)
    ledger_failures: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Returns True if no critical errors occurred."""
        return len(self.errors) == 0

    @property
    def summary(self) -> str:
        """Human-readable summary of the processing result."""
        return (
            f"Fetched {self.events_fetched} events, "
            f"{self.events_new} new, "
            f"{self.duplicates} duplicates, "
            f"{len(self.alerts_created)} alerts, "
            f"{len(self.events_verified)} verified"
        )


@dataclass(frozen=True)
class CorrelationResult:
    """A rate series overlaid with events, plus its analysis.

    Attributes:
        pair: The currency pair
        samples: Correlated series, ascending by date
        analysis: Textual description of the period
    """
    pair: CurrencyPair
    samples: list[ExchangeRateSample]
    analysis: str


class Orchestrator:
    """Coordinates ingestion, alerting, ledger publication and correlation.

    This class wires together:
    - USGS client (fetches candidate records)
    - Ingestion filter and event store (dedup and persistence)
    - Core functions (classification, formatting, correlation)
    - Slack client (alert broadcast)
    - Ledger client (publication and verification)
    - Exchange-rate client (rate series)

    The risk engine and access controller share the same store and are
    exposed for the transport layer.
    """

    def __init__(
        self,
        config: Config,
        store: EventStore | None = None,
        usgs_client: USGSClient | None = None,
        slack_client: SlackClient | None = None,
        ledger_client: LedgerClient | None = None,
        exchange_rate_client: ExchangeRateClient | None = None,
        rng: random.Random | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize orchestrator with configuration.

        Args:
            config: Application configuration
            store: Event store (created if not provided)
            usgs_client: USGS client (created if not provided)
            slack_client: Slack client (created if not provided)
            ledger_client: Ledger client (created from config.ledger if set)
            exchange_rate_client: Rate client (created if not provided)
            rng: Randomness for ids, keys and risk noise
            clock: Time source shared by every service

        Raises:
            ConfigurationError: If the financial catalog is invalid
        """
        ensure_valid_catalog(config.financial_centers, config.market_regions)

        rng = rng or random.SystemRandom()

        self.config = config
        self.clock = clock
        self.store = store or EventStore(rng=rng, clock=clock)
        self.usgs_client = usgs_client or USGSClient()
        self.slack_client = slack_client or SlackClient()
        self.exchange_rate_client = exchange_rate_client or ExchangeRateClient()
        self.ledger_client = ledger_client
        if self.ledger_client is None and config.ledger is not None:
            self.ledger_client = LedgerClient(config.ledger)

        self.ingestion = IngestionFilter(
            self.store,
            clock=clock,
            window=timedelta(hours=config.dedup_window_hours),
        )
        self.risk_engine = RiskScoringEngine(
            self.store,
            rng=rng,
            clock=clock,
            centers=config.financial_centers,
            regions=config.market_regions,
        )
        self.access_controller = AccessController(rng=rng, clock=clock)

    def _broadcast(self, alert: Alert, event: Event, result: ProcessingResult) -> None:
        channels = channels_for_alert(alert, self.config.broadcast_channels)
        if not channels:
            return

        payload = format_alert_message(alert, event)
        for response in self.slack_client.broadcast(payload, channels):
            if response.success:
                result.broadcasts_sent += 1
            else:
                result.broadcasts_failed += 1
                logger.warning(
                    "Failed to broadcast alert %d to %s: %s",
                    alert.id,
                    response.channel,
                    response.error,
                )

    def _publish_to_ledger(self, event: Event, result: ProcessingResult) -> None:
        try:
            receipt = self.ledger_client.publish(event)
            if self.ledger_client.verify(event.id):
                self.store.mark_verified(event.id, receipt.tx_hash)
                result.events_verified.append(event.id)
        except (requests.RequestException, LedgerError) as e:
            message = f"Ledger publication failed for {event.id}: {e}"
            logger.error(message)
            result.ledger_failures.append(message)

    def process(self) -> ProcessingResult:
        """Run one ingestion cycle.

        1. Fetches recent records from USGS
        2. Admits new events (dedup against the window)
        3. Raises and broadcasts alerts for qualifying new events
        4. Publishes significant events to the ledger and marks them
           verified

        Returns:
            ProcessingResult with details of what happened
        """
        result = ProcessingResult()

        try:
            records = self.usgs_client.fetch_recent(
                min_magnitude=self.config.min_fetch_magnitude,
                hours=self.config.lookback_hours,
                now=self.clock(),
            )
        except Exception as e:
            error_msg = f"Failed to fetch earthquakes: {e}"
            logger.error(error_msg)
            result.errors.append(error_msg)
            return result

        result.events_fetched = len(records)

        report = self.ingestion.ingest_detailed(records)
        new_events = report.admitted
        result.events_new = len(new_events)
        result.duplicates = report.duplicate_count
        result.malformed = report.malformed_count

        for event in new_events:
            logger.info("New event %s: %s", event.id, format_event_summary(event))

            draft = classify(event)
            if draft is not None:
                alert = self.store.create_alert(draft)
                result.alerts_created.append(alert)
                logger.info(
                    "Alert %d: %s M%.1f %s",
                    alert.id,
                    alert.message,
                    alert.magnitude,
                    alert.location,
                )
                self._broadcast(alert, event, result)

            if (
                self.ledger_client is not None
                and event.magnitude >= self.config.verification_magnitude
            ):
                self._publish_to_ledger(event, result)

        logger.info("Ingestion cycle complete: %s", result.summary)

        return result

    def correlate_pair(
        self,
        pair: CurrencyPair,
        days: int = 30,
        end_date: date | None = None,
    ) -> CorrelationResult:
        """Overlay stored events onto a fetched rate series."""
        end = end_date or self.clock().date()
        series = self.exchange_rate_client.fetch_series(pair, days, end)

        # Events in chronological order so same-day moves compound oldest first
        events = sorted(self.store.all_events(), key=lambda e: e.time)
        samples = correlate(series, events, pair)

        return CorrelationResult(
            pair=pair,
            samples=samples,
            analysis=analyze_impact(samples, pair),
        )

    def scheduler(self) -> IngestionScheduler:
        """Build a scheduler running this orchestrator's cycle."""
        return IngestionScheduler(self.process, self.config.polling_interval_seconds)
