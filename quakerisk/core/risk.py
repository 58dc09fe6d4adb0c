"""Financial risk model - Pure functions.

This module scores the financial impact of an event from its magnitude,
depth and proximity to financial centers, and works out which markets
and currencies are exposed.

All functions are pure. The only non-determinism in the model (the
volatility noise and the per-market factors) is drawn from a random
source passed in by the caller, so a seeded random.Random reproduces
an assessment exactly.
"""

import math
import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping

from quakerisk.core.catalog import (
    DEFAULT_LOCATION_IMPACT,
    FINANCIAL_CENTERS,
    GLOBAL_CURRENCIES,
    GLOBAL_MARKETS,
    MARKET_REGIONS,
    FinancialCenter,
    MarketRegion,
)
from quakerisk.core.event import Event
from quakerisk.core.geo import is_within_radius


# Component weights of the market impact score
MAGNITUDE_WEIGHT = 0.5
DEPTH_WEIGHT = 0.2
LOCATION_WEIGHT = 0.3

VOLATILITY_FACTOR = 0.8
VOLATILITY_NOISE_MAX = 20.0

MARKET_FACTOR_MIN = 0.7
MARKET_FACTOR_MAX = 1.2


class RiskLevel(str, Enum):
    """Risk classification of a market impact score."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]


_LEVEL_RANK = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}


@dataclass(frozen=True)
class RiskAssessment:
    """Financial impact assessment of one event.

    Attributes:
        event_id: Identity of the assessed event
        timestamp: When the assessment was computed
        market_impact_score: Overall impact (0-100)
        volatility_index: Expected volatility (0-100)
        risk_level: Classification of market_impact_score
        affected_markets: Exposed market codes, catalog order
        affected_currencies: Exposed currency codes, catalog order
        market_specific_scores: Read-only market code -> score (0-100)
        summary: One-paragraph description
        recommendations: Suggested actions for the risk level
    """
    event_id: str
    timestamp: datetime
    market_impact_score: int
    volatility_index: int
    risk_level: RiskLevel
    affected_markets: tuple[str, ...]
    affected_currencies: tuple[str, ...]
    market_specific_scores: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    summary: str = ""
    recommendations: tuple[str, ...] = ()


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives.

    Pure function. Python's round() rounds halves to even, which would
    turn 86.5 into 86.
    """
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    """Round and clamp a score into [0, 100].

    Pure function.
    """
    return max(0, min(100, round_half_up(value)))


def magnitude_impact(magnitude: float) -> float:
    """Impact contribution of the event magnitude.

    Pure function. Continuous and non-decreasing in magnitude.
    """
    if magnitude < 5.0:
        return 5 * magnitude
    if magnitude < 6.0:
        return 25 + 20 * (magnitude - 5.0)
    if magnitude < 7.0:
        return 45 + 25 * (magnitude - 6.0)
    return 70 + min(30.0, 15 * (magnitude - 7.0))


def depth_impact(depth_km: float) -> float:
    """Impact contribution of the event depth. Shallower is worse.

    Pure function.
    """
    if depth_km < 10:
        return 80 + 2 * max(0.0, 10 - depth_km)
    if depth_km < 30:
        return 60 + max(0.0, 30 - depth_km)
    if depth_km < 70:
        return 40 + max(0.0, 70 - depth_km) / 2
    return max(10.0, 100 - depth_km)


def nearest_financial_center(
    latitude: float,
    longitude: float,
    centers: Iterable[FinancialCenter] = FINANCIAL_CENTERS,
) -> FinancialCenter | None:
    """First center (in catalog order) whose radius covers the point.

    Pure function.
    """
    for center in centers:
        if is_within_radius(
            latitude, longitude, center.latitude, center.longitude, center.radius_km
        ):
            return center
    return None


def location_impact(
    latitude: float,
    longitude: float,
    centers: Iterable[FinancialCenter] = FINANCIAL_CENTERS,
) -> float:
    """Impact contribution of proximity to financial centers.

    Pure function.

    Returns:
        The matching center's impact score, or the default (30) when the
        event is far from every center
    """
    center = nearest_financial_center(latitude, longitude, centers)
    if center is None:
        return DEFAULT_LOCATION_IMPACT
    return center.impact_score


def risk_level_for(score: float) -> RiskLevel:
    """Classify a market impact score.

    Pure function.
    """
    if score < 30:
        return RiskLevel.LOW
    if score < 60:
        return RiskLevel.MEDIUM
    if score < 85:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def market_impact_score(
    event: Event,
    centers: Iterable[FinancialCenter] = FINANCIAL_CENTERS,
) -> int:
    """Weighted market impact score of an event (0-100).

    Pure function.
    """
    raw = (
        MAGNITUDE_WEIGHT * magnitude_impact(event.magnitude)
        + DEPTH_WEIGHT * depth_impact(event.depth_km)
        + LOCATION_WEIGHT * location_impact(event.latitude, event.longitude, centers)
    )
    return clamp_score(raw)


def affected_markets_and_currencies(
    latitude: float,
    longitude: float,
    regions: Iterable[MarketRegion] = MARKET_REGIONS,
) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """Markets and currencies exposed to an event location.

    Pure function.

    Every region within its radius contributes, in catalog order, without
    repeating a code. With no region in range the global fallback applies.

    Returns:
        Tuple of (market codes, currency codes)
    """
    markets: list[str] = []
    currencies: list[str] = []

    for region in regions:
        if not is_within_radius(
            latitude, longitude, region.latitude, region.longitude, region.radius_km
        ):
            continue
        markets.extend(m for m in region.markets if m not in markets)
        currencies.extend(c for c in region.currencies if c not in currencies)

    if not markets:
        return GLOBAL_MARKETS, GLOBAL_CURRENCIES

    return tuple(markets), tuple(currencies)


def generate_recommendations(
    risk_level: RiskLevel,
    markets: tuple[str, ...],
    currencies: tuple[str, ...],
) -> tuple[str, ...]:
    """Suggested actions for a risk level.

    Pure function.
    """
    market_list = ", ".join(markets)
    currency_list = ", ".join(currencies)

    if risk_level is RiskLevel.LOW:
        return (
            "Monitor situation for potential supply chain disruptions in affected regions.",
            "No immediate market action required, continue normal operations.",
        )

    if risk_level is RiskLevel.MEDIUM:
        return (
            f"Monitor {market_list} for increased volatility in the next 24-48 hours.",
            f"Consider hedging exposure to {currency_list} in the short term.",
            "Review supply chain resilience in affected regions.",
        )

    if risk_level is RiskLevel.HIGH:
        return (
            f"Anticipate significant volatility in {market_list} for 3-5 days.",
            f"Implement hedging strategies for {currency_list} positions.",
            "Activate business continuity plans for operations in affected regions.",
            "Consider temporary portfolio reallocation to reduce risk exposure.",
        )

    return (
        f"Immediate action required to mitigate exposure to {market_list}.",
        f"Implement maximum hedging for {currency_list} positions.",
        "Activate emergency business continuity protocols.",
        "Prepare for potential market circuit breakers and trading halts.",
        "Set up crisis management team to monitor developments.",
    )


def generate_summary(
    event: Event,
    risk_level: RiskLevel,
    score: int,
    volatility: int,
) -> str:
    """One-paragraph description of an assessment.

    Pure function.
    """
    return (
        f"{risk_level.value} financial impact risk from M{event.magnitude:.1f} "
        f"earthquake near {event.place}. Market impact score: {score}/100, "
        f"Expected volatility index: {volatility}/100. Monitor markets for "
        f"potential disruptions and implement appropriate risk management strategies."
    )


def build_assessment(
    event: Event,
    rng: random.Random,
    now: datetime,
    centers: Iterable[FinancialCenter] = FINANCIAL_CENTERS,
    regions: Iterable[MarketRegion] = MARKET_REGIONS,
) -> RiskAssessment:
    """Compute the full risk assessment of an event.

    Pure function given the random source: the volatility noise is drawn
    first, then one factor per affected market in market order.

    Args:
        event: Event to assess
        rng: Source of the bounded perturbations
        now: Timestamp recorded on the assessment
        centers: Financial centers for the location component
        regions: Market regions for exposure

    Returns:
        The computed RiskAssessment
    """
    score = market_impact_score(event, centers)
    level = risk_level_for(score)
    markets, currencies = affected_markets_and_currencies(
        event.latitude, event.longitude, regions
    )

    volatility = clamp_score(
        score * VOLATILITY_FACTOR + rng.uniform(0, VOLATILITY_NOISE_MAX)
    )

    market_scores = MappingProxyType({
        market: clamp_score(score * rng.uniform(MARKET_FACTOR_MIN, MARKET_FACTOR_MAX))
        for market in markets
    })

    return RiskAssessment(
        event_id=event.id,
        timestamp=now,
        market_impact_score=score,
        volatility_index=volatility,
        risk_level=level,
        affected_markets=markets,
        affected_currencies=currencies,
        market_specific_scores=market_scores,
        summary=generate_summary(event, level, score, volatility),
        recommendations=generate_recommendations(level, markets, currencies),
    )


@dataclass(frozen=True)
class MarketRisk:
    """Aggregated risk for one market over a set of assessments.

    Attributes:
        market: Market code
        risk_level: Level of the highest market-specific score
        risk_score: Highest market-specific score
        affecting_events: Number of assessments exposing the market
    """
    market: str
    risk_level: RiskLevel
    risk_score: int
    affecting_events: int


@dataclass(frozen=True)
class MarketRiskReport:
    """Per-market risks plus the overall picture.

    Attributes:
        market_risks: One entry per requested market, request order
        overall_level: Highest level among market_risks
        overall_score: Rounded mean of the market risk scores
        event_ids: Events that expose at least one requested market
    """
    market_risks: tuple[MarketRisk, ...]
    overall_level: RiskLevel
    overall_score: int
    event_ids: tuple[str, ...]


def assess_market(market: str, assessments: list[RiskAssessment]) -> MarketRisk:
    """Aggregate the assessments that expose one market.

    Pure function.
    """
    affecting = [a for a in assessments if market in a.affected_markets]
    score = max(
        (a.market_specific_scores.get(market, 0) for a in affecting),
        default=0,
    )
    return MarketRisk(
        market=market,
        risk_level=risk_level_for(score),
        risk_score=score,
        affecting_events=len(affecting),
    )


def build_market_risk_report(
    markets: list[str],
    assessments: list[RiskAssessment],
) -> MarketRiskReport:
    """Aggregate assessments into a per-market risk report.

    Pure function.

    Args:
        markets: Market codes of interest
        assessments: Assessments of the events in the period

    Returns:
        MarketRiskReport; LOW with score 0 when no markets are requested
    """
    market_risks = tuple(assess_market(m, assessments) for m in markets)
    relevant = tuple(
        a.event_id for a in assessments
        if any(m in a.affected_markets for m in markets)
    )

    if not market_risks:
        return MarketRiskReport((), RiskLevel.LOW, 0, relevant)

    overall_level = max((r.risk_level for r in market_risks), key=lambda lvl: lvl.rank)
    overall_score = round_half_up(
        sum(r.risk_score for r in market_risks) / len(market_risks)
    )

    return MarketRiskReport(market_risks, overall_level, overall_score, relevant)
