"""Configuration models - Pure data structures.

These are domain models for configuration. The actual loading
(I/O) is handled by the shell layer.
"""

from dataclasses import dataclass, field

from quakerisk.core.alerts import BroadcastChannel
from quakerisk.core.catalog import (
    FINANCIAL_CENTERS,
    MARKET_REGIONS,
    FinancialCenter,
    MarketRegion,
)
from quakerisk.core.correlation import CurrencyPair
from quakerisk.core.errors import ConfigurationError


DEFAULT_CURRENCY_PAIRS = (
    CurrencyPair("USD", "SGD"),
    CurrencyPair("USD", "GBP"),
)


@dataclass
class LedgerConfig:
    """Ledger gateway connection settings.

    Attributes:
        base_url: Gateway root URL
        api_token: Bearer token (None for an open gateway)
        timeout: Request timeout in seconds
    """
    base_url: str
    api_token: str | None = None
    timeout: int = 15


@dataclass
class Config:
    """Application configuration.

    This is a pure data structure - no I/O or side effects.

    Attributes:
        polling_interval_seconds: How often the ingestion cycle runs
        lookback_hours: How far back to fetch earthquakes
        dedup_window_hours: How far back stored events are compared
        min_fetch_magnitude: Minimum magnitude to fetch from USGS
        verification_magnitude: Events at or above this go to the ledger
        ledger: Ledger gateway (None disables publication)
        broadcast_channels: Webhooks that receive new alerts
        financial_centers: Centers for the location impact
        market_regions: Regions for market exposure
        currency_pairs: Pairs offered for correlation
    """
    polling_interval_seconds: int = 300
    lookback_hours: int = 24
    dedup_window_hours: int = 24
    min_fetch_magnitude: float | None = None
    verification_magnitude: float = 5.0
    ledger: LedgerConfig | None = None
    broadcast_channels: list[BroadcastChannel] = field(default_factory=list)
    financial_centers: tuple[FinancialCenter, ...] = FINANCIAL_CENTERS
    market_regions: tuple[MarketRegion, ...] = MARKET_REGIONS
    currency_pairs: tuple[CurrencyPair, ...] = DEFAULT_CURRENCY_PAIRS


@dataclass
class ValidationError:
    """A configuration validation error.

    Attributes:
        field: The field that has an error
        message: Human-readable error description
        severity: 'error' or 'warning'
    """
    field: str
    message: str
    severity: str = "error"


@dataclass
class ValidationResult:
    """Result of validating configuration.

    Attributes:
        valid: True if no errors (warnings are OK)
        errors: List of validation errors/warnings
    """
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def warnings(self) -> list[ValidationError]:
        """Get only warnings."""
        return [e for e in self.errors if e.severity == "warning"]

    @property
    def critical_errors(self) -> list[ValidationError]:
        """Get only critical errors."""
        return [e for e in self.errors if e.severity == "error"]


def _result(errors: list[ValidationError]) -> ValidationResult:
    has_critical = any(e.severity == "error" for e in errors)
    return ValidationResult(valid=not has_critical, errors=errors)


def validate_coordinates(lat: float, lon: float, field_name: str) -> list[ValidationError]:
    """Validate latitude/longitude coordinates.

    Pure function.

    Args:
        lat: Latitude value
        lon: Longitude value
        field_name: Name of the field for error messages

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    if not -90 <= lat <= 90:
        errors.append(ValidationError(
            field=field_name,
            message=f"Latitude {lat} out of range [-90, 90]",
        ))

    if not -180 <= lon <= 180:
        errors.append(ValidationError(
            field=field_name,
            message=f"Longitude {lon} out of range [-180, 180]",
        ))

    return errors


def _validate_unique_names(names: list[str], field_name: str) -> list[ValidationError]:
    seen: set[str] = set()
    errors = []
    for name in names:
        if name in seen:
            errors.append(ValidationError(
                field=field_name,
                message=f"Duplicate name '{name}'",
            ))
        seen.add(name)
    return errors


def validate_catalog(
    centers: tuple[FinancialCenter, ...] | list[FinancialCenter],
    regions: tuple[MarketRegion, ...] | list[MarketRegion],
) -> ValidationResult:
    """Validate the financial center and market region tables.

    Pure function.

    Args:
        centers: Financial centers to check
        regions: Market regions to check

    Returns:
        ValidationResult with any errors found
    """
    errors: list[ValidationError] = []

    for i, center in enumerate(centers):
        field_name = f"financial_centers[{i}]"
        errors.extend(validate_coordinates(center.latitude, center.longitude, field_name))
        if center.radius_km <= 0:
            errors.append(ValidationError(
                field=f"{field_name}.radius_km",
                message=f"Radius must be positive, got {center.radius_km}",
            ))
        if not 0 <= center.impact_score <= 100:
            errors.append(ValidationError(
                field=f"{field_name}.impact_score",
                message=f"Impact score {center.impact_score} out of range [0, 100]",
            ))

    for i, region in enumerate(regions):
        field_name = f"market_regions[{i}]"
        errors.extend(validate_coordinates(region.latitude, region.longitude, field_name))
        if region.radius_km <= 0:
            errors.append(ValidationError(
                field=f"{field_name}.radius_km",
                message=f"Radius must be positive, got {region.radius_km}",
            ))
        if not region.markets or not all(region.markets):
            errors.append(ValidationError(
                field=f"{field_name}.markets",
                message="Market codes must be non-empty",
            ))
        if not region.currencies or not all(region.currencies):
            errors.append(ValidationError(
                field=f"{field_name}.currencies",
                message="Currency codes must be non-empty",
            ))

    errors.extend(_validate_unique_names([c.name for c in centers], "financial_centers"))
    errors.extend(_validate_unique_names([r.name for r in regions], "market_regions"))

    if not centers:
        errors.append(ValidationError(
            field="financial_centers",
            message="No financial centers configured",
            severity="warning",
        ))

    return _result(errors)


def ensure_valid_catalog(
    centers: tuple[FinancialCenter, ...] | list[FinancialCenter],
    regions: tuple[MarketRegion, ...] | list[MarketRegion],
) -> None:
    """Fail fast on an invalid catalog.

    Raises:
        ConfigurationError: Listing every critical catalog error
    """
    result = validate_catalog(centers, regions)
    if not result.valid:
        details = "; ".join(f"{e.field}: {e.message}" for e in result.critical_errors)
        raise ConfigurationError(f"Invalid financial catalog: {details}")


def validate_config(config: Config) -> ValidationResult:
    """Validate configuration for errors and warnings.

    Pure function.

    Args:
        config: Configuration to validate

    Returns:
        ValidationResult with any errors/warnings found
    """
    errors: list[ValidationError] = []

    if config.polling_interval_seconds <= 0:
        errors.append(ValidationError(
            field="polling_interval_seconds",
            message=f"Polling interval must be positive, got {config.polling_interval_seconds}",
        ))

    if config.lookback_hours <= 0:
        errors.append(ValidationError(
            field="lookback_hours",
            message=f"Lookback must be positive, got {config.lookback_hours}",
        ))

    if config.dedup_window_hours <= 0:
        errors.append(ValidationError(
            field="dedup_window_hours",
            message=f"Dedup window must be positive, got {config.dedup_window_hours}",
        ))

    if config.lookback_hours > config.dedup_window_hours:
        errors.append(ValidationError(
            field="lookback_hours",
            message=(
                f"Lookback of {config.lookback_hours}h exceeds the "
                f"{config.dedup_window_hours}h dedup window"
            ),
        ))

    if config.ledger is not None:
        if not config.ledger.base_url or config.ledger.base_url.startswith("${"):
            errors.append(ValidationError(
                field="ledger.base_url",
                message="Ledger URL not resolved (still contains placeholder)",
                severity="warning",
            ))
        if config.ledger.timeout <= 0:
            errors.append(ValidationError(
                field="ledger.timeout",
                message=f"Timeout must be positive, got {config.ledger.timeout}",
            ))

    for i, channel in enumerate(config.broadcast_channels):
        if not channel.webhook_url or channel.webhook_url.startswith("${"):
            errors.append(ValidationError(
                field=f"broadcast_channels[{i}].webhook_url",
                message="Webhook URL not resolved (still contains placeholder)",
                severity="warning",
            ))

    if not config.broadcast_channels:
        errors.append(ValidationError(
            field="broadcast_channels",
            message="No broadcast channels configured",
            severity="warning",
        ))

    errors.extend(validate_catalog(config.financial_centers, config.market_regions).errors)

    return _result(errors)
