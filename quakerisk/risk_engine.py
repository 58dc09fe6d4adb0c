"""Cached financial risk scoring.

Wraps the pure risk model with a per-event cache. The first assessment
computed for an event is the one every later caller sees, even when two
callers race to compute it.
"""

import logging
import random
import threading
from datetime import datetime, timedelta

from quakerisk.core.catalog import (
    FINANCIAL_CENTERS,
    MARKET_REGIONS,
    FinancialCenter,
    MarketRegion,
)
from quakerisk.core.event import Event, filter_by_magnitude
from quakerisk.core.risk import (
    MarketRiskReport,
    RiskAssessment,
    build_assessment,
    build_market_risk_report,
)
from quakerisk.runtime import Clock, utc_now
from quakerisk.store import EventStore


logger = logging.getLogger(__name__)


MARKET_TIMEFRAMES: dict[str, timedelta] = {
    "24h": timedelta(hours=24),
    "48h": timedelta(hours=48),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


class RiskScoringEngine:
    """Computes and caches one RiskAssessment per event."""

    def __init__(
        self,
        store: EventStore,
        rng: random.Random | None = None,
        clock: Clock = utc_now,
        centers: tuple[FinancialCenter, ...] = FINANCIAL_CENTERS,
        regions: tuple[MarketRegion, ...] = MARKET_REGIONS,
    ) -> None:
        self.store = store
        self.rng = rng or random.SystemRandom()
        self.clock = clock
        self.centers = centers
        self.regions = regions
        self._cache: dict[str, RiskAssessment] = {}
        self._lock = threading.Lock()
        self._rng_lock = threading.Lock()

    def cached(self, event_id: str) -> RiskAssessment | None:
        """Return the cached assessment of an event, if any."""
        with self._lock:
            return self._cache.get(event_id)

    def score_for(self, event: Event) -> RiskAssessment:
        """Assess a stored event.

        Raises:
            NotFoundError: If the store does not hold the event
        """
        return self.score_for_id(event.id)

    def score_for_id(self, event_id: str) -> RiskAssessment:
        """Assess a stored event by id, computing it at most once.

        Computation runs outside the lock; the insert is first-wins.

        Raises:
            NotFoundError: If the event does not exist
        """
        existing = self.cached(event_id)
        if existing is not None:
            return existing

        event = self.store.require_event(event_id)
        assessment = self._compute(event)

        with self._lock:
            stored = self._cache.setdefault(event.id, assessment)

        if stored is assessment:
            logger.info(
                "Assessed %s: score %d (%s)",
                event.id,
                stored.market_impact_score,
                stored.risk_level.value,
            )
        return stored

    def _compute(self, event: Event) -> RiskAssessment:
        # One assessment's draws must not interleave with another's
        with self._rng_lock:
            return build_assessment(
                event, self.rng, self.clock(), self.centers, self.regions
            )

    def assessments_between(
        self,
        start: datetime,
        end: datetime,
        min_magnitude: float = 0.0,
    ) -> list[RiskAssessment]:
        """Assess every stored event in a period, newest first."""
        events = filter_by_magnitude(
            self.store.events_between(start, end),
            min_magnitude=min_magnitude,
        )
        return [self.score_for(event) for event in events]

    def market_risk(
        self,
        markets: list[str],
        timeframe: str = "24h",
        now: datetime | None = None,
    ) -> MarketRiskReport:
        """Aggregate per-market risk over the events of a timeframe.

        Raises:
            ValueError: If the timeframe is not one of 24h, 48h, 7d, 30d
        """
        if timeframe not in MARKET_TIMEFRAMES:
            raise ValueError(f"Invalid timeframe: {timeframe}")

        end = now or self.clock()
        assessments = self.assessments_between(end - MARKET_TIMEFRAMES[timeframe], end)
        return build_market_risk_report(markets, assessments)
