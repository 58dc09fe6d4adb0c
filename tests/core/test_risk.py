"""Unit tests for the financial risk model.

Pure function tests - the random source is stubbed or seeded.
"""

import random
import pytest
from datetime import datetime, timezone

from quakerisk.core.catalog import GLOBAL_CURRENCIES, GLOBAL_MARKETS, MarketRegion
from quakerisk.core.event import Event
from quakerisk.core.risk import (
    RiskAssessment,
    RiskLevel,
    affected_markets_and_currencies,
    build_assessment,
    build_market_risk_report,
    clamp_score,
    depth_impact,
    generate_recommendations,
    location_impact,
    magnitude_impact,
    market_impact_score,
    risk_level_for,
    round_half_up,
)


NOW = datetime(2024, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


class MaxRandom:
    """Random source that always returns the top of the range."""

    def uniform(self, a, b):
        return b


class MinRandom:
    """Random source that always returns the bottom of the range."""

    def uniform(self, a, b):
        return a


def make_event(magnitude=7.2, depth_km=8.0, latitude=35.6762, longitude=139.6503):
    return Event(
        id="eq_tokyo",
        place="Tokyo Bay",
        magnitude=magnitude,
        depth_km=depth_km,
        latitude=latitude,
        longitude=longitude,
        time=NOW,
    )


def make_assessment(event_id, scores):
    return RiskAssessment(
        event_id=event_id,
        timestamp=NOW,
        market_impact_score=max(scores.values()),
        volatility_index=50,
        risk_level=risk_level_for(max(scores.values())),
        affected_markets=tuple(scores),
        affected_currencies=("JPY",),
        market_specific_scores=dict(scores),
    )


class TestRounding:
    """Tests for round_half_up() and clamp_score()."""

    def test_halves_round_up(self):
        assert round_half_up(86.5) == 87
        assert round_half_up(0.5) == 1
        assert round_half_up(2.4) == 2

    def test_clamp(self):
        assert clamp_score(-5) == 0
        assert clamp_score(103.2) == 100
        assert clamp_score(42.5) == 43


class TestMagnitudeImpact:
    """Tests for magnitude_impact() function."""

    @pytest.mark.parametrize("magnitude,expected", [
        (4.0, 20.0),
        (5.0, 25.0),
        (5.5, 35.0),
        (6.0, 45.0),
        (6.5, 57.5),
        (7.0, 70.0),
        (7.2, 73.0),
        (9.5, 100.0),
    ])
    def test_values(self, magnitude, expected):
        assert magnitude_impact(magnitude) == pytest.approx(expected)

    def test_capped_at_100(self):
        assert magnitude_impact(12.0) == 100.0

    def test_non_decreasing(self):
        values = [magnitude_impact(m / 10) for m in range(0, 100)]
        assert values == sorted(values)


class TestDepthImpact:
    """Tests for depth_impact() function."""

    @pytest.mark.parametrize("depth,expected", [
        (0, 100.0),
        (8, 84.0),
        (10, 80.0),
        (20, 70.0),
        (30, 60.0),
        (50, 50.0),
        (70, 30.0),
        (95, 10.0),
        (200, 10.0),
    ])
    def test_values(self, depth, expected):
        assert depth_impact(depth) == pytest.approx(expected)


class TestLocationImpact:
    """Tests for location_impact() function."""

    def test_tokyo(self):
        assert location_impact(35.6762, 139.6503) == 90.0

    def test_san_francisco(self):
        assert location_impact(37.7749, -122.4194) == 85.0

    def test_singapore(self):
        assert location_impact(1.3521, 103.8198) == 80.0

    def test_far_from_every_center(self):
        assert location_impact(0.0, -150.0) == 30.0


class TestRiskLevelFor:
    """Tests for risk_level_for() function."""

    @pytest.mark.parametrize("score,expected", [
        (0, RiskLevel.LOW),
        (29, RiskLevel.LOW),
        (30, RiskLevel.MEDIUM),
        (59, RiskLevel.MEDIUM),
        (60, RiskLevel.HIGH),
        (84, RiskLevel.HIGH),
        (85, RiskLevel.CRITICAL),
        (100, RiskLevel.CRITICAL),
    ])
    def test_boundaries(self, score, expected):
        assert risk_level_for(score) is expected


class TestMarketImpactScore:
    """Tests for market_impact_score() function."""

    def test_tokyo_bay_m72(self):
        """0.5 * 73 + 0.2 * 84 + 0.3 * 90 = 80.3."""
        event = make_event()
        assert market_impact_score(event) == 80
        assert risk_level_for(market_impact_score(event)) is RiskLevel.HIGH

    def test_tokyo_bay_m80_is_critical(self):
        """0.5 * 85 + 0.2 * 84 + 0.3 * 90 = 86.3."""
        event = make_event(magnitude=8.0)
        assert market_impact_score(event) == 86
        assert risk_level_for(86) is RiskLevel.CRITICAL

    def test_small_remote_event_is_low(self):
        event = make_event(magnitude=3.0, depth_km=300.0, latitude=0.0, longitude=-150.0)
        # 0.5 * 15 + 0.2 * 10 + 0.3 * 30 = 18.5
        assert market_impact_score(event) == 19


class TestAffectedMarkets:
    """Tests for affected_markets_and_currencies() function."""

    def test_japan(self):
        markets, currencies = affected_markets_and_currencies(35.6762, 139.6503)
        assert markets == ("NIKKEI", "JPX")
        assert currencies == ("JPY",)

    def test_global_fallback(self):
        markets, currencies = affected_markets_and_currencies(0.0, -150.0)
        assert markets == GLOBAL_MARKETS
        assert currencies == GLOBAL_CURRENCIES

    def test_overlapping_regions_concatenate_without_repeats(self):
        regions = (
            MarketRegion("A", 10.0, 10.0, ("M1", "M2"), ("C1",)),
            MarketRegion("B", 10.0, 10.5, ("M2", "M3"), ("C1", "C2")),
        )
        markets, currencies = affected_markets_and_currencies(10.0, 10.2, regions)
        assert markets == ("M1", "M2", "M3")
        assert currencies == ("C1", "C2")


class TestRecommendations:
    """Tests for generate_recommendations() function."""

    @pytest.mark.parametrize("level,count", [
        (RiskLevel.LOW, 2),
        (RiskLevel.MEDIUM, 3),
        (RiskLevel.HIGH, 4),
        (RiskLevel.CRITICAL, 5),
    ])
    def test_counts(self, level, count):
        assert len(generate_recommendations(level, ("NIKKEI",), ("JPY",))) == count

    def test_names_markets_and_currencies(self):
        recommendations = generate_recommendations(
            RiskLevel.HIGH, ("NIKKEI", "JPX"), ("JPY",)
        )
        assert "NIKKEI, JPX" in recommendations[0]
        assert "JPY" in recommendations[1]


class TestBuildAssessment:
    """Tests for build_assessment() function."""

    def test_upper_perturbation(self):
        """Volatility noise and market factors at their maximum."""
        assessment = build_assessment(make_event(magnitude=8.0), MaxRandom(), NOW)

        assert assessment.market_impact_score == 86
        assert assessment.risk_level is RiskLevel.CRITICAL
        assert assessment.volatility_index == 89
        assert assessment.market_specific_scores == {"NIKKEI": 100, "JPX": 100}

    def test_lower_perturbation(self):
        assessment = build_assessment(make_event(magnitude=8.0), MinRandom(), NOW)

        assert assessment.volatility_index == 69
        assert assessment.market_specific_scores == {"NIKKEI": 60, "JPX": 60}

    def test_fields(self):
        assessment = build_assessment(make_event(), MaxRandom(), NOW)

        assert assessment.event_id == "eq_tokyo"
        assert assessment.timestamp == NOW
        assert assessment.affected_markets == ("NIKKEI", "JPX")
        assert assessment.affected_currencies == ("JPY",)
        assert len(assessment.recommendations) == 4
        assert assessment.summary.startswith(
            "HIGH financial impact risk from M7.2 earthquake near Tokyo Bay."
        )
        assert "Market impact score: 80/100" in assessment.summary

    def test_market_scores_are_read_only(self):
        assessment = build_assessment(make_event(), MaxRandom(), NOW)

        with pytest.raises(TypeError):
            assessment.market_specific_scores["NIKKEI"] = 0
        assert assessment.market_specific_scores["NIKKEI"] == 100

    def test_seeded_source_is_reproducible(self):
        first = build_assessment(make_event(), random.Random(7), NOW)
        second = build_assessment(make_event(), random.Random(7), NOW)
        assert first == second

    def test_scores_within_bounds(self):
        rng = random.Random(1)
        for magnitude in (2.0, 5.0, 6.5, 8.0, 9.5):
            assessment = build_assessment(make_event(magnitude=magnitude), rng, NOW)
            assert 0 <= assessment.volatility_index <= 100
            for score in assessment.market_specific_scores.values():
                assert 0 <= score <= 100


class TestMarketRiskReport:
    """Tests for build_market_risk_report() function."""

    def test_aggregates_per_market(self):
        assessments = [
            make_assessment("eq_a", {"NIKKEI": 70, "JPX": 90}),
            make_assessment("eq_b", {"NIKKEI": 50}),
        ]

        report = build_market_risk_report(["NIKKEI", "JPX", "ASX200"], assessments)
        by_market = {r.market: r for r in report.market_risks}

        assert by_market["NIKKEI"].risk_score == 70
        assert by_market["NIKKEI"].risk_level is RiskLevel.HIGH
        assert by_market["NIKKEI"].affecting_events == 2
        assert by_market["JPX"].risk_score == 90
        assert by_market["JPX"].risk_level is RiskLevel.CRITICAL
        assert by_market["ASX200"].risk_score == 0
        assert by_market["ASX200"].risk_level is RiskLevel.LOW
        assert by_market["ASX200"].affecting_events == 0
        assert report.overall_level is RiskLevel.CRITICAL
        assert report.overall_score == 53
        assert report.event_ids == ("eq_a", "eq_b")

    def test_keeps_request_order(self):
        report = build_market_risk_report(["JPX", "NIKKEI"], [])
        assert [r.market for r in report.market_risks] == ["JPX", "NIKKEI"]

    def test_no_markets(self):
        report = build_market_risk_report([], [make_assessment("eq_a", {"JPX": 90})])
        assert report.market_risks == ()
        assert report.overall_level is RiskLevel.LOW
        assert report.overall_score == 0
