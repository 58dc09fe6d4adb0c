"""Functional Core - Pure functions with no side effects.

This module contains all business logic as pure functions:
- Event normalization and filtering
- Deduplication policy
- Alert classification
- Financial risk model
- Market correlation
- Subscription quota policy

All functions here are deterministic given their inputs and have no I/O.
"""

from quakerisk.core.alerts import Alert, Severity, classify
from quakerisk.core.correlation import CurrencyPair, ExchangeRateSample, correlate
from quakerisk.core.dedup import is_duplicate
from quakerisk.core.errors import (
    AccessError,
    ConfigurationError,
    ExpiredError,
    InvalidKeyError,
    LedgerError,
    MalformedInputError,
    NotFoundError,
    QuakeRiskError,
    QuotaExhaustedError,
)
from quakerisk.core.event import Event, EventCandidate, normalize_record
from quakerisk.core.geo import calculate_distance, is_within_radius
from quakerisk.core.quota import Subscription, check_access
from quakerisk.core.risk import RiskAssessment, RiskLevel, build_assessment

__all__ = [
    # Event
    "Event",
    "EventCandidate",
    "normalize_record",
    # Geo
    "calculate_distance",
    "is_within_radius",
    # Dedup
    "is_duplicate",
    # Alerts
    "Alert",
    "Severity",
    "classify",
    # Risk
    "RiskAssessment",
    "RiskLevel",
    "build_assessment",
    # Correlation
    "CurrencyPair",
    "ExchangeRateSample",
    "correlate",
    # Quota
    "Subscription",
    "check_access",
    # Errors
    "QuakeRiskError",
    "MalformedInputError",
    "NotFoundError",
    "AccessError",
    "InvalidKeyError",
    "ExpiredError",
    "QuotaExhaustedError",
    "LedgerError",
    "ConfigurationError",
]
